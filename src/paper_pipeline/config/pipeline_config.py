"""
Pipeline Configuration Management - Centralized configuration loading and validation.
Supports loading from YAML files with validation, defaults and environment overrides.
"""

import logging
import os
import yaml
from typing import Dict, Any, Optional
from pathlib import Path
from dataclasses import asdict, dataclass, field, replace

REGISTRY_TOKEN_ENV = "PAPER_PIPELINE_REGISTRY_TOKEN"
LLM_API_KEY_ENV = "PAPER_PIPELINE_LLM_API_KEY"

DEFAULT_USER_AGENT = ("Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                      "(KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36")


class ConfigurationError(Exception):
    """Raised when configuration is invalid."""
    pass


@dataclass(frozen=True)
class RegistryConfig:
    """Remote paper registry (existence check, conversion, submission)."""
    base_url: str = "https://tps-tiku-api.staff.xdf.cn"
    token: str = ""  # full Cookie header value
    tiku_token: str = ""
    referer: str = "https://tk-lpzx.xdf.cn/"
    origin: str = "https://tk-lpzx.xdf.cn"
    user_agent: str = DEFAULT_USER_AGENT
    timeout_seconds: float = 30.0
    school_name: str = "集团"
    school_number: str = "65"
    resource_type: str = "zbtiku_pc"


@dataclass(frozen=True)
class BrowserConfig:
    """Browser used for listing pages, rendering and screenshots."""
    cdp_url: Optional[str] = "http://127.0.0.1:2001"  # None launches a local browser
    headless: bool = True
    site_root: str = "https://zujuan.xkw.com"
    navigation_timeout_seconds: float = 60.0
    screenshot_settle_seconds: float = 0.8


@dataclass(frozen=True)
class ClassifierConfig:
    """OpenAI-compatible chat completion endpoint."""
    api_base_url: str = "http://menshen.xdf.cn/v1"
    api_key: str = ""
    model: str = "doubao-seed-1.6-flash"
    max_attempts: int = 4
    retry_interval_seconds: float = 1.0
    timeout_seconds: float = 60.0


@dataclass(frozen=True)
class StorageConfig:
    """Object storage the rendered PDF is uploaded to before conversion."""
    storage_type: str = "cos"
    security_level: int = 1
    presign_expires_seconds: int = 900


@dataclass(frozen=True)
class RetryConfig:
    """Local retry bounds."""
    conversion_attempts: int = 3
    conversion_interval_seconds: float = 2.0
    render_attempts: int = 3
    render_interval_seconds: float = 1.0


@dataclass(frozen=True)
class PipelineConfig:
    """Complete configuration of one run. Built once, never mutated."""
    listing_base_url: str = "https://zujuan.xkw.com/czyw/zj"
    start_page: int = 1
    end_page: int = 1

    existence_workers: int = 10
    transform_workers: int = 2
    publish_workers: int = 10

    output_dir: str = "PDF"
    warning_log_path: str = "logs/reconciliation.log"
    persist_artifacts: bool = False

    retry: RetryConfig = field(default_factory=RetryConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    @property
    def pages(self) -> range:
        return range(self.start_page, self.end_page + 1)


class ConfigLoader:
    """Loads and validates pipeline configuration from YAML files."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @staticmethod
    def load_from_yaml(config_path: str, environ: Optional[Dict[str, str]] = None) -> PipelineConfig:
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to YAML configuration file
            environ: Environment used for secret overrides (defaults to os.environ)

        Returns:
            PipelineConfig object

        Raises:
            ConfigurationError: If configuration is invalid
        """
        logger = logging.getLogger(__name__)

        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                config_dict = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")
        except OSError as e:
            raise ConfigurationError(f"Failed to read {config_path}: {e}")

        if not config_dict:
            raise ConfigurationError(f"Empty configuration file: {config_path}")

        if not isinstance(config_dict, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

        logger.info(f"Loaded configuration from {config_path}")

        try:
            config = ConfigLoader._parse_config(config_dict)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Failed to parse configuration: {e}")

        return ConfigLoader.apply_environment(config, os.environ if environ is None else environ)

    @staticmethod
    def _parse_config(config_dict: Dict[str, Any]) -> PipelineConfig:
        """Parse configuration dictionary into PipelineConfig object."""

        pipeline = config_dict.get('pipeline') or {}
        services = config_dict.get('services') or {}

        retry = RetryConfig(**_section(pipeline, 'retry', RetryConfig))
        registry = RegistryConfig(**_section(services, 'registry', RegistryConfig))
        browser = BrowserConfig(**_section(services, 'browser', BrowserConfig))
        classifier = ClassifierConfig(**_section(services, 'classifier', ClassifierConfig))
        storage = StorageConfig(**_section(services, 'storage', StorageConfig))

        defaults = PipelineConfig()
        return PipelineConfig(
            listing_base_url=pipeline.get('listing_base_url', defaults.listing_base_url),
            start_page=int(pipeline.get('start_page', defaults.start_page)),
            end_page=int(pipeline.get('end_page', defaults.end_page)),
            existence_workers=int(pipeline.get('existence_workers', defaults.existence_workers)),
            transform_workers=int(pipeline.get('transform_workers', defaults.transform_workers)),
            publish_workers=int(pipeline.get('publish_workers', defaults.publish_workers)),
            output_dir=pipeline.get('output_dir', defaults.output_dir),
            warning_log_path=pipeline.get('warning_log_path', defaults.warning_log_path),
            persist_artifacts=bool(pipeline.get('persist_artifacts', defaults.persist_artifacts)),
            retry=retry,
            registry=registry,
            browser=browser,
            classifier=classifier,
            storage=storage,
        )

    @staticmethod
    def apply_environment(config: PipelineConfig, environ: Dict[str, str]) -> PipelineConfig:
        """Secrets from the environment win over the file."""
        token = environ.get(REGISTRY_TOKEN_ENV)
        if token:
            config = replace(config, registry=replace(config.registry, token=token))

        api_key = environ.get(LLM_API_KEY_ENV)
        if api_key:
            config = replace(config, classifier=replace(config.classifier, api_key=api_key))

        return config

    @staticmethod
    def save_to_yaml(config: PipelineConfig, output_path: str):
        """Save configuration to YAML file."""
        logger = logging.getLogger(__name__)

        config_dict = {
            'pipeline': {
                'listing_base_url': config.listing_base_url,
                'start_page': config.start_page,
                'end_page': config.end_page,
                'existence_workers': config.existence_workers,
                'transform_workers': config.transform_workers,
                'publish_workers': config.publish_workers,
                'output_dir': config.output_dir,
                'warning_log_path': config.warning_log_path,
                'persist_artifacts': config.persist_artifacts,
                'retry': asdict(config.retry),
            },
            'services': {
                'registry': asdict(config.registry),
                'browser': asdict(config.browser),
                'classifier': asdict(config.classifier),
                'storage': asdict(config.storage),
            }
        }

        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(config_dict, f, default_flow_style=False, indent=2,
                               sort_keys=False, allow_unicode=True)
            logger.info(f"Configuration saved to {output_path}")
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration: {e}")

    @staticmethod
    def create_default_config() -> PipelineConfig:
        """Create a default configuration."""
        return PipelineConfig()


def _section(parent: Dict[str, Any], name: str, config_cls) -> Dict[str, Any]:
    """Known keys of one nested section; unknown keys are an error."""
    section = parent.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"section '{name}' must be a mapping")

    known = set(config_cls.__dataclass_fields__)
    unknown = set(section) - known
    if unknown:
        raise ValueError(f"unknown keys in '{name}': {', '.join(sorted(unknown))}")

    return dict(section)


def validate_config(config: PipelineConfig) -> bool:
    """Validate pipeline configuration."""
    logger = logging.getLogger(__name__)

    if config.start_page < 1:
        raise ConfigurationError("start_page must be at least 1")

    if config.end_page < config.start_page:
        raise ConfigurationError("end_page cannot be smaller than start_page")

    for name in ('existence_workers', 'transform_workers', 'publish_workers'):
        if getattr(config, name) < 1:
            raise ConfigurationError(f"{name} must be at least 1")

    if config.retry.conversion_attempts < 1:
        raise ConfigurationError("conversion_attempts must be at least 1")

    if config.retry.render_attempts < 1:
        raise ConfigurationError("render_attempts must be at least 1")

    if config.retry.conversion_interval_seconds < 0 or config.retry.render_interval_seconds < 0:
        raise ConfigurationError("retry intervals cannot be negative")

    if config.classifier.max_attempts < 1:
        raise ConfigurationError("classifier max_attempts must be at least 1")

    if config.classifier.retry_interval_seconds < 0:
        raise ConfigurationError("classifier retry_interval_seconds cannot be negative")

    logger.info("Configuration validated successfully")
    return True
