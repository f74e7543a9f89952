"""
Pipeline Stages Module

Each stage is responsible for one step of publishing a listing page.

Pipeline Flow:
--------------
0. SourceEnumerator  - Lists the descriptors on one page
1. ExistenceFilter   - Skips titles the registry already holds
2. ItemTransformer   - Renders, classifies and screenshots each document
3. Publisher         - Converts the document and submits the artifact

Usage:
------
from paper_pipeline.pipeline.stages import ExistenceFilter

stage = ExistenceFilter(registry_client, num_workers=10)
skip, proceed = await stage.partition(descriptors)
"""

# Stage 0: Enumeration
from .enumeration_stage import SourceEnumerator

# Stage 1: Existence Filter
from .existence_filter_stage import ExistenceFilter

# Stage 2: Transform
from .transform_stage import ItemTransformer, TransformConfig, attach_images

# Stage 3: Publish
from .publish_stage import Publisher, PublishConfig


__all__ = [
    'SourceEnumerator',
    'ExistenceFilter',
    'ItemTransformer',
    'Publisher',
    'TransformConfig',
    'PublishConfig',
    'attach_images',
]
