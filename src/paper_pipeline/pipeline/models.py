"""
Pipeline Data Models - Items and outcomes that flow between pipeline stages
File: src/paper_pipeline/pipeline/models.py
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Optional, List, Dict, Any


@dataclass(frozen=True)
class ItemDescriptor:
    """
    Lightweight reference to a document found on a listing page.
    The existence filter produces a copy with `already_exists` set.
    """
    source_url: str
    title: str
    already_exists: bool = False

    def with_existence(self, exists: bool) -> "ItemDescriptor":
        """Return a copy carrying the existence check result"""
        return replace(self, already_exists=exists)

    def __repr__(self) -> str:
        return f"ItemDescriptor(title='{self.title}', exists={self.already_exists})"


class ContentKind(Enum):
    """Kind of a content unit in reading order."""
    TITLE_MARKER = "title-marker"
    BODY = "body"


@dataclass(frozen=True)
class ContentUnit:
    """One section heading or one question body of a document."""
    kind: ContentKind
    text: str
    source_attribution: Optional[str] = None
    images: List[str] = field(default_factory=list)
    rendered_image: Optional[str] = None  # base64 PNG

    @property
    def is_title(self) -> bool:
        return self.kind is ContentKind.TITLE_MARKER

    def with_rendered_image(self, image: str) -> "ContentUnit":
        return replace(self, rendered_image=image)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind.value,
            'text': self.text,
            'source_attribution': self.source_attribution,
            'images': list(self.images),
            'rendered_image': self.rendered_image,
        }


@dataclass(frozen=True)
class LocationMetadata:
    """Where and for whom a paper was set."""
    province: str
    grade: str
    subject: str
    year: str


@dataclass(frozen=True)
class Classification:
    """Structured metadata produced by the classifier for a title."""
    category: str = ""
    parent_category: str = ""
    school_year_begin: Optional[int] = 2024
    school_year_end: Optional[int] = 2025
    term: Optional[str] = "1"
    month: Optional[int] = None
    year: Optional[int] = None

    @classmethod
    def default(cls) -> "Classification":
        """Conservative fallback used when classification is unavailable"""
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category': self.category,
            'parent_category': self.parent_category,
            'school_year_begin': self.school_year_begin,
            'school_year_end': self.school_year_end,
            'term': self.term,
            'month': self.month,
            'year': self.year,
        }


@dataclass
class Artifact:
    """
    Normalized, publish-ready representation of one document.
    Owned by exactly one stage at a time; only the publisher writes to it.
    """
    title: str
    source_url: str
    location: LocationMetadata
    content_items: List[ContentUnit]
    rendered_document_path: Path
    classification: Classification = field(default_factory=Classification.default)
    registry_id: Optional[str] = None

    @property
    def is_published(self) -> bool:
        return self.registry_id is not None

    def assign_registry_id(self, registry_id: str) -> None:
        """Record the id returned by the registry. May only happen once."""
        if self.registry_id is not None:
            raise ValueError(f"Artifact '{self.title}' already published as {self.registry_id}")
        self.registry_id = registry_id

    @property
    def descriptor(self) -> ItemDescriptor:
        """The descriptor this artifact was built from"""
        return ItemDescriptor(source_url=self.source_url, title=self.title)

    def body_units(self) -> List[ContentUnit]:
        return [unit for unit in self.content_items if not unit.is_title]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage/serialization"""
        return {
            'title': self.title,
            'source_url': self.source_url,
            'province': self.location.province,
            'grade': self.location.grade,
            'subject': self.location.subject,
            'year': self.location.year,
            'classification': self.classification.to_dict(),
            'registry_id': self.registry_id,
            'rendered_document_path': str(self.rendered_document_path),
            'content_items': [unit.to_dict() for unit in self.content_items],
        }

    def __repr__(self) -> str:
        return (f"Artifact(title='{self.title}', units={len(self.content_items)}, "
                f"registry_id={self.registry_id})")


@dataclass(frozen=True)
class Attachment:
    """A document attachment as returned by the conversion service."""
    attachment_id: str
    file_name: str
    file_url: str
    path: str
    file_type: str
    converter_files: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Attachment":
        return cls(
            attachment_id=str(data.get('attachmentId', '')),
            file_name=data.get('fileName', ''),
            file_url=data.get('fileUrl', ''),
            path=data.get('path', ''),
            file_type=data.get('fileType', ''),
            converter_files=list(data.get('converterFiles') or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'attachmentId': self.attachment_id,
            'fileName': self.file_name,
            'fileUrl': self.file_url,
            'path': self.path,
            'fileType': self.file_type,
            'converterFiles': list(self.converter_files),
        }


@dataclass(frozen=True)
class AttachmentSet:
    """Result of one conversion request."""
    attachments: List[Attachment] = field(default_factory=list)

    def is_empty(self) -> bool:
        """A valid response that carries no converted content"""
        return not any(attachment.converter_files for attachment in self.attachments)

    def to_payload(self) -> List[Dict[str, Any]]:
        return [attachment.to_dict() for attachment in self.attachments]


class Outcome(Enum):
    """Terminal outcome of one item."""
    SUCCESS = "success"
    ALREADY_EXISTS = "exists"
    FAILED = "failed"


@dataclass(frozen=True)
class StageResult:
    """
    Terminal result for one descriptor. Every descriptor observed by the
    coordinator produces exactly one of these.
    """
    descriptor: ItemDescriptor
    outcome: Outcome
    artifact: Optional[Artifact] = None
    reason: Optional[str] = None

    @classmethod
    def success(cls, descriptor: ItemDescriptor, artifact: Artifact) -> "StageResult":
        return cls(descriptor=descriptor, outcome=Outcome.SUCCESS, artifact=artifact)

    @classmethod
    def already_exists(cls, descriptor: ItemDescriptor) -> "StageResult":
        return cls(descriptor=descriptor, outcome=Outcome.ALREADY_EXISTS)

    @classmethod
    def failed(cls, descriptor: ItemDescriptor, reason: str) -> "StageResult":
        return cls(descriptor=descriptor, outcome=Outcome.FAILED, reason=reason)

    @property
    def title(self) -> str:
        return self.descriptor.title


@dataclass(frozen=True)
class RunStats:
    """Counts of terminal outcomes across a run."""
    success: int = 0
    exists: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.success + self.exists + self.failed

    def __sub__(self, other: "RunStats") -> "RunStats":
        return RunStats(
            success=self.success - other.success,
            exists=self.exists - other.exists,
            failed=self.failed - other.failed,
        )

    def to_dict(self) -> Dict[str, int]:
        return {'success': self.success, 'exists': self.exists,
                'failed': self.failed, 'total': self.total}
