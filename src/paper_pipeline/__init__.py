"""
Paper Pipeline - An asyncio pipeline that publishes listed exam papers to a
remote paper registry.

Features:
- Page-by-page processing, each page fully drained before the next
- Registry existence check so reruns never publish duplicates
- Browser rendering, subject/metadata classification and per-question screenshots
- Conversion with bounded retry on empty results and a reconciliation log
- Bounded concurrency per stage with exact outcome accounting
- Configurable via YAML
"""

__version__ = "1.0.0"

from .core.pipeline_coordinator import PipelineCoordinator
from .config.pipeline_config import PipelineConfig, ConfigLoader, validate_config
from .pipeline.models import ItemDescriptor, Artifact, StageResult, Outcome, RunStats

__all__ = [
    'PipelineCoordinator',
    'PipelineConfig',
    'ConfigLoader',
    'validate_config',
    'ItemDescriptor',
    'Artifact',
    'StageResult',
    'Outcome',
    'RunStats',
]
