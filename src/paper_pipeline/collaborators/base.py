"""
Collaborator contracts consumed by the pipeline stages.

Concrete implementations live next to this module; tests substitute fakes.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..pipeline.models import ItemDescriptor, ContentUnit, Classification, AttachmentSet


@dataclass(frozen=True)
class MetadataHints:
    """Raw metadata scraped from a document page."""
    title: str = ""
    province: str = ""
    grade: str = ""
    subject_text: str = ""


@dataclass
class RenderedDocument:
    """Output of rendering one document page."""
    content_units: List[ContentUnit]
    document_file: Path
    hints: MetadataHints = field(default_factory=MetadataHints)
    styles: str = ""
    fragments: List[str] = field(default_factory=list)  # body unit HTML, same order as body units


class ListingFetcher(ABC):

    @abstractmethod
    async def fetch_listing(self, page_number: int) -> List[ItemDescriptor]:
        """Return the descriptors on one listing page. Raises on fetch failure."""
        pass


class ExistenceChecker(ABC):

    @abstractmethod
    async def check_exists(self, title: str) -> bool:
        pass


class DocumentRenderer(ABC):

    @abstractmethod
    async def render_document(self, descriptor: ItemDescriptor) -> RenderedDocument:
        """Extract content units and metadata hints and write the document file."""
        pass

    @abstractmethod
    async def capture_unit_images(self, document: RenderedDocument) -> List[str]:
        """Base64 PNG per body unit, in reading order."""
        pass


class MetadataClassifier(ABC):

    @abstractmethod
    async def classify_metadata(self, title: str) -> Classification:
        """Structured metadata for a title, or the conservative default."""
        pass

    @abstractmethod
    async def identify_subject(self, title: str) -> Optional[str]:
        """Canonical subject name for a title, or None when unsure."""
        pass


class DocumentConverter(ABC):

    @abstractmethod
    async def convert_document(self, document_file: Path) -> AttachmentSet:
        pass


class ArtifactSubmitter(ABC):

    @abstractmethod
    async def submit(self, payload: dict) -> str:
        """Publish a payload and return the registry id."""
        pass


class WarningSink(ABC):

    @abstractmethod
    async def append_warning(self, message: str) -> None:
        pass
