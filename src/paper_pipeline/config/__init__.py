"""
Configuration Module - Configuration management and loading.

This module handles loading, saving, and validating pipeline configurations.

Components:
-----------
- PipelineConfig: Immutable configuration of one run
- ConfigLoader: Loads and saves configurations from/to YAML files
- validate_config: Validates configuration objects
- ConfigurationError: Exception raised for invalid configurations

Usage:
------
from paper_pipeline.config import ConfigLoader, validate_config

config = ConfigLoader.load_from_yaml('config/default.yaml')
validate_config(config)

Configuration File Format:
-------------------------
pipeline:
  start_page: 1
  end_page: 5
  existence_workers: 10
  transform_workers: 2
  retry:
    conversion_attempts: 3

services:
  registry:
    base_url: https://tps-tiku-api.staff.xdf.cn
  browser:
    cdp_url: http://127.0.0.1:2001

Secrets may come from PAPER_PIPELINE_REGISTRY_TOKEN and
PAPER_PIPELINE_LLM_API_KEY instead of the file.
"""

from .pipeline_config import (
    PipelineConfig,
    RegistryConfig,
    BrowserConfig,
    ClassifierConfig,
    StorageConfig,
    RetryConfig,
    ConfigLoader,
    validate_config,
    ConfigurationError,
)

__all__ = [
    'PipelineConfig',
    'RegistryConfig',
    'BrowserConfig',
    'ClassifierConfig',
    'StorageConfig',
    'RetryConfig',
    'ConfigLoader',
    'validate_config',
    'ConfigurationError',
]
