"""
External collaborators: browser, registry, object storage, classifier and
the reconciliation log. Stages only see the contracts in `base`.
"""

from .base import (
    ListingFetcher,
    ExistenceChecker,
    DocumentRenderer,
    MetadataClassifier,
    DocumentConverter,
    ArtifactSubmitter,
    WarningSink,
    MetadataHints,
    RenderedDocument,
)
from .warning_sink import FileWarningSink
from .artifact_store import ArtifactStore

__all__ = [
    'ListingFetcher',
    'ExistenceChecker',
    'DocumentRenderer',
    'MetadataClassifier',
    'DocumentConverter',
    'ArtifactSubmitter',
    'WarningSink',
    'MetadataHints',
    'RenderedDocument',
    'FileWarningSink',
    'ArtifactStore',
]
