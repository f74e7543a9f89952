"""
Core Module - High-level pipeline orchestration.

Components:
-----------
- PipelineCoordinator: Drives enumeration, filtering, transform and publish page by page
- open_services: Opens the browser/HTTP collaborators for a run

Usage:
------
from paper_pipeline.core import PipelineCoordinator, open_services
from paper_pipeline.config import ConfigLoader

config = ConfigLoader.load_from_yaml('config/default.yaml')

async with open_services(config) as services:
    coordinator = PipelineCoordinator.build(
        config, services.fetcher, services.registry, services.renderer,
        services.classifier, services.converter, services.registry,
        services.warning_sink, services.artifact_store,
    )
    stats = await coordinator.run()
"""

from .pipeline_coordinator import PipelineCoordinator, CoordinatorState, PageReport
from .services import Services, open_services

__all__ = [
    'PipelineCoordinator',
    'CoordinatorState',
    'PageReport',
    'Services',
    'open_services',
]
