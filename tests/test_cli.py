import pytest

from paper_pipeline.cli import build_parser, apply_overrides, config_command
from paper_pipeline.config.pipeline_config import PipelineConfig, ConfigLoader


def test_run_flags_override_config():
    args = build_parser().parse_args(
        ['run', '--start-page', '3', '--end-page', '6', '--transform-workers', '1'])

    config = apply_overrides(PipelineConfig(), args)

    assert list(config.pages) == [3, 4, 5, 6]
    assert config.transform_workers == 1
    assert config.existence_workers == 10


def test_start_page_alone_extends_end_page():
    args = build_parser().parse_args(['run', '--start-page', '4'])
    config = apply_overrides(PipelineConfig(), args)
    assert (config.start_page, config.end_page) == (4, 4)


def test_no_flags_keep_config():
    config = PipelineConfig()
    assert apply_overrides(config, build_parser().parse_args(['run'])) is config


def test_config_create_default(tmp_path):
    output = tmp_path / "default.yaml"
    args = build_parser().parse_args(['config', '--create-default', '-o', str(output)])

    config_command(args)

    assert ConfigLoader.load_from_yaml(str(output), environ={}) == PipelineConfig()


def test_config_validate_exits_on_bad_file(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("pipeline:\n  start_page: 0\n", encoding='utf-8')
    args = build_parser().parse_args(['config', '--validate', str(path)])

    with pytest.raises(SystemExit) as excinfo:
        config_command(args)
    assert excinfo.value.code == 1
