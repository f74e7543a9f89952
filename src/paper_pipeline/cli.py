"""
Command Line Interface for the Paper Pipeline.

This module provides a command-line interface for running the pipeline over a
range of listing pages and for managing configurations.

Usage Examples:
--------------

# Run with built-in defaults (page 1 only)
paper-pipeline run

# Run pages 3 to 10 with a configuration file
paper-pipeline run -c config/production.yaml --start-page 3 --end-page 10

# Tune concurrency
paper-pipeline run --existence-workers 20 --transform-workers 1

# Create default configuration
paper-pipeline config --create-default -o config/default.yaml

# Validate configuration
paper-pipeline config --validate config/my_config.yaml

# Verbose logging
paper-pipeline -v run
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from dataclasses import replace
from pathlib import Path

from .config.pipeline_config import PipelineConfig, ConfigLoader, validate_config, ConfigurationError
from .core.pipeline_coordinator import PipelineCoordinator
from .core.services import open_services
from .pipeline.models import RunStats
from .pipeline.errors import FatalPipelineError

NOISY_LOGGERS = ('aiohttp', 'asyncio', 'botocore', 'boto3', 'urllib3')


def setup_logging(verbose: bool = False):
    """
    Setup logging configuration.

    Args:
        verbose: Enable debug-level logging if True
    """
    level = logging.DEBUG if verbose else logging.INFO

    log_dir = Path('logs')
    log_dir.mkdir(exist_ok=True)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_dir / 'pipeline.log', encoding='utf-8')
        ]
    )

    # Set third-party loggers to WARNING to reduce noise
    if not verbose:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def apply_overrides(config: PipelineConfig, args) -> PipelineConfig:
    """Command line flags win over the loaded configuration."""
    overrides = {}
    for name in ('start_page', 'end_page', 'existence_workers', 'transform_workers', 'publish_workers'):
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value

    if 'start_page' in overrides and 'end_page' not in overrides:
        overrides['end_page'] = max(config.end_page, overrides['start_page'])

    return replace(config, **overrides) if overrides else config


async def run_pipeline(config: PipelineConfig) -> RunStats:
    """Open services, run every page and print the summary."""
    logger = logging.getLogger(__name__)
    loop = asyncio.get_running_loop()

    async with open_services(config) as services:
        coordinator = PipelineCoordinator.build(
            config,
            fetcher=services.fetcher,
            checker=services.registry,
            renderer=services.renderer,
            classifier=services.classifier,
            converter=services.converter,
            submitter=services.registry,
            warning_sink=services.warning_sink,
            artifact_store=services.artifact_store,
        )

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, coordinator.cancel)
            except NotImplementedError:
                logger.debug(f"Signal handlers unsupported, {sig.name} not hooked")

        try:
            stats = await coordinator.run()
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                try:
                    loop.remove_signal_handler(sig)
                except NotImplementedError:
                    pass
            coordinator.print_status()

    return stats


def run_command(args):
    """
    Execute the run command.

    Args:
        args: Parsed command-line arguments
    """
    logger = logging.getLogger(__name__)

    try:
        if args.config:
            logger.info(f"Loading configuration from {args.config}")
            config = ConfigLoader.load_from_yaml(args.config)
        else:
            logger.info("Using default configuration")
            config = ConfigLoader.apply_environment(ConfigLoader.create_default_config(), os.environ)

        config = apply_overrides(config, args)
        validate_config(config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        print(f"✗ Configuration error: {e}")
        sys.exit(1)

    print("\n" + "="*60)
    print(f"STARTING PAPER PIPELINE (pages {config.start_page}-{config.end_page})")
    print("="*60)

    try:
        stats = asyncio.run(run_pipeline(config))
    except FatalPipelineError as e:
        logger.error(f"Run failed: {e}")
        print(f"✗ Run failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Run failed: {e}", exc_info=True)
        print(f"✗ Run failed: {e}")
        sys.exit(1)

    print("\n" + "="*60)
    print("FINAL STATISTICS")
    print("="*60)
    print(f"Success: {stats.success}")
    print(f"Exists:  {stats.exists}")
    print(f"Failed:  {stats.failed}")
    print(f"Total:   {stats.total}")

    logger.info("Run finished successfully")


def config_command(args):
    """
    Execute the config command.

    Args:
        args: Parsed command-line arguments
    """
    logger = logging.getLogger(__name__)

    try:
        if args.create_default:
            config = ConfigLoader.create_default_config()
            output_path = args.output or 'config/default.yaml'

            ConfigLoader.save_to_yaml(config, output_path)
            print(f"✓ Default configuration created at: {output_path}")
            logger.info(f"Default configuration created at {output_path}")

        elif args.validate:
            print(f"Validating configuration: {args.validate}")
            config = ConfigLoader.load_from_yaml(args.validate)
            validate_config(config)
            print(f"✓ Configuration is valid: {args.validate}")
            logger.info(f"Configuration {args.validate} is valid")

        else:
            print("Error: Please specify --create-default or --validate")
            sys.exit(1)

    except ConfigurationError as e:
        print(f"✗ Configuration error: {e}")
        logger.error(f"Configuration error: {e}")
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='paper-pipeline',
        description='Paper Pipeline - publish listed papers to the registry',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s run
  %(prog)s run -c config/production.yaml --start-page 3 --end-page 10
  %(prog)s config --create-default -o config/default.yaml
  %(prog)s config --validate config/my_config.yaml
        """
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose (debug) logging'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # ========================================================================
    # RUN COMMAND
    # ========================================================================
    run_parser = subparsers.add_parser(
        'run',
        help='Process a range of listing pages',
        description='Enumerate, filter, transform and publish every paper on the pages'
    )

    run_parser.add_argument(
        '-c', '--config',
        help='Path to YAML configuration file (default: use built-in defaults)'
    )

    run_parser.add_argument('--start-page', type=int, metavar='N', help='First page (inclusive)')
    run_parser.add_argument('--end-page', type=int, metavar='N', help='Last page (inclusive)')

    run_parser.add_argument(
        '--existence-workers',
        type=int,
        metavar='N',
        help='Concurrent registry existence checks'
    )

    run_parser.add_argument(
        '--transform-workers',
        type=int,
        metavar='N',
        help='Concurrent document renders'
    )

    run_parser.add_argument(
        '--publish-workers',
        type=int,
        metavar='N',
        help='Concurrent conversions/submissions'
    )

    run_parser.set_defaults(func=run_command)

    # ========================================================================
    # CONFIG COMMAND
    # ========================================================================
    config_parser = subparsers.add_parser(
        'config',
        help='Configuration management',
        description='Create or validate configuration files'
    )

    config_parser.add_argument(
        '--create-default',
        action='store_true',
        help='Create a default configuration file'
    )

    config_parser.add_argument(
        '--validate',
        metavar='FILE',
        help='Validate a configuration file'
    )

    config_parser.add_argument(
        '-o', '--output',
        metavar='FILE',
        help='Output path for created configuration (default: config/default.yaml)'
    )

    config_parser.set_defaults(func=config_command)

    return parser


def main():
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    setup_logging(args.verbose)

    if hasattr(args, 'func'):
        args.func(args)
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == '__main__':
    main()
