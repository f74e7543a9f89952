"""
Pipeline Framework Module

Base classes and data structures shared by all pipeline stages.

Components:
-----------
- PipelineStage: Abstract base class for fan-out stages
- StatsAggregator: Run-wide outcome counters
- models: ItemDescriptor, Artifact, ContentUnit, StageResult, RunStats
- errors: Page-, item- and run-level exceptions

Usage:
------
from paper_pipeline.pipeline import PipelineStage

class MyStage(PipelineStage):
    async def process(self, data):
        return data
"""

from .stage import PipelineStage
from .stats import StatsAggregator
from .models import (
    ItemDescriptor,
    ContentKind,
    ContentUnit,
    LocationMetadata,
    Classification,
    Artifact,
    Attachment,
    AttachmentSet,
    Outcome,
    StageResult,
    RunStats,
)

__all__ = [
    'PipelineStage',
    'StatsAggregator',
    'ItemDescriptor',
    'ContentKind',
    'ContentUnit',
    'LocationMetadata',
    'Classification',
    'Artifact',
    'Attachment',
    'AttachmentSet',
    'Outcome',
    'StageResult',
    'RunStats',
]
