"""
Shared fakes for the pipeline tests. No network, no browser.
"""
import asyncio
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional, Set

import pytest

from paper_pipeline.collaborators.base import (
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
from paper_pipeline.config.pipeline_config import PipelineConfig
from paper_pipeline.core.pipeline_coordinator import PipelineCoordinator
from paper_pipeline.pipeline.errors import Rejected, TransportError
from paper_pipeline.pipeline.models import (
    ItemDescriptor,
    ContentUnit,
    ContentKind,
    Classification,
    Attachment,
    AttachmentSet,
)
from paper_pipeline.pipeline.retry import NoDelay


def make_descriptor(title: str, page: int = 1) -> ItemDescriptor:
    return ItemDescriptor(source_url=f"https://example.test/p{page}/{title}", title=title)


def full_attachments(name: str = "doc.pdf") -> AttachmentSet:
    return AttachmentSet([Attachment(
        attachment_id="a1",
        file_name=name,
        file_url=f"https://cdn.example.test/{name}",
        path=f"/{name}",
        file_type="pdf",
        converter_files=[{'fileUrl': 'https://cdn.example.test/page1.png'}],
    )])


def empty_attachments() -> AttachmentSet:
    return AttachmentSet([Attachment(
        attachment_id="a1",
        file_name="doc.pdf",
        file_url="https://cdn.example.test/doc.pdf",
        path="/doc.pdf",
        file_type="pdf",
    )])


class FakeListingFetcher(ListingFetcher):
    """Pages map to lists of titles; `failing` pages raise."""

    def __init__(self, pages: Dict[int, List[str]], failing: Optional[Set[int]] = None,
                 events: Optional[List[str]] = None):
        self.pages = pages
        self.failing = failing or set()
        self.events = events if events is not None else []
        self.calls: List[int] = []

    async def fetch_listing(self, page_number: int) -> List[ItemDescriptor]:
        self.calls.append(page_number)
        self.events.append(f"enumerate:{page_number}")
        if page_number in self.failing:
            raise ConnectionError(f"page {page_number} timed out")
        return [make_descriptor(title, page_number) for title in self.pages.get(page_number, [])]


class FakeChecker(ExistenceChecker):
    """Titles in `existing` exist; titles in `failing` make the check raise."""

    def __init__(self, existing: Optional[Set[str]] = None, failing: Optional[Set[str]] = None):
        self.existing = existing if existing is not None else set()
        self.failing = failing or set()
        self.calls: List[str] = []

    async def check_exists(self, title: str) -> bool:
        self.calls.append(title)
        await asyncio.sleep(0)
        if title in self.failing:
            raise TimeoutError("registry timed out")
        return title in self.existing


class FakeRenderer(DocumentRenderer):
    """
    Two body units and one title marker per document.

    `render_failures[title]` is the number of render calls that raise before
    one succeeds. Tracks peak concurrency of render calls.
    """

    def __init__(self, subject_text: str = "初中语文", render_failures: Optional[Dict[str, int]] = None,
                 capture_counts: Optional[Dict[str, List[int]]] = None, hold_seconds: float = 0.0,
                 events: Optional[List[str]] = None):
        self.subject_text = subject_text
        self.render_failures = dict(render_failures or {})
        self.capture_counts = {k: list(v) for k, v in (capture_counts or {}).items()}
        self.hold_seconds = hold_seconds
        self.events = events if events is not None else []
        self.render_calls: List[str] = []
        self.capture_calls: List[str] = []
        self.in_flight = 0
        self.peak = 0

    async def render_document(self, descriptor: ItemDescriptor) -> RenderedDocument:
        self.render_calls.append(descriptor.title)
        self.events.append(f"render:{descriptor.title}")
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.hold_seconds)
            remaining = self.render_failures.get(descriptor.title, 0)
            if remaining > 0:
                self.render_failures[descriptor.title] = remaining - 1
                raise RuntimeError("navigation failed")
        finally:
            self.in_flight -= 1

        units = [
            ContentUnit(kind=ContentKind.TITLE_MARKER, text="一、选择题"),
            ContentUnit(kind=ContentKind.BODY, text="第一题", source_attribution="来源A"),
            ContentUnit(kind=ContentKind.BODY, text="第二题", source_attribution="来源B"),
        ]
        return RenderedDocument(
            content_units=units,
            document_file=Path(f"PDF/{descriptor.title}.pdf"),
            hints=MetadataHints(title=descriptor.title, province="北京", grade="七年级",
                                subject_text=self.subject_text),
            fragments=["<p>1</p>", "<p>2</p>"],
        )

    async def capture_unit_images(self, document: RenderedDocument) -> List[str]:
        title = document.hints.title
        self.capture_calls.append(title)
        counts = self.capture_counts.get(title)
        count = counts.pop(0) if counts else len(document.fragments)
        return [f"img{i}" for i in range(1, count + 1)]


class FakeClassifier(MetadataClassifier):

    def __init__(self, subject: Optional[str] = None, classification: Optional[Classification] = None,
                 fail: bool = False):
        self.subject = subject
        self.classification = classification or Classification(
            category="期中考试", parent_category="阶段测试", month=11, year=2024)
        self.fail = fail
        self.subject_calls: List[str] = []

    async def classify_metadata(self, title: str) -> Classification:
        if self.fail:
            raise RuntimeError("model unavailable")
        return self.classification

    async def identify_subject(self, title: str) -> Optional[str]:
        self.subject_calls.append(title)
        return self.subject


class FakeConverter(DocumentConverter):
    """
    `empties[file_stem]` empty results are returned before a full one.
    `always_empty` titles never convert; `transport_failures` raise.
    """

    def __init__(self, empties: Optional[Dict[str, int]] = None,
                 always_empty: Optional[Set[str]] = None,
                 transport_failures: Optional[Set[str]] = None):
        self.empties = dict(empties or {})
        self.always_empty = always_empty or set()
        self.transport_failures = transport_failures or set()
        self.calls: Dict[str, int] = {}

    async def convert_document(self, document_file: Path) -> AttachmentSet:
        key = Path(document_file).stem
        self.calls[key] = self.calls.get(key, 0) + 1

        if key in self.transport_failures:
            raise TransportError("conversion service unreachable")
        if key in self.always_empty:
            return empty_attachments()

        remaining = self.empties.get(key, 0)
        if remaining > 0:
            self.empties[key] = remaining - 1
            return empty_attachments()
        return full_attachments(f"{key}.pdf")


class FakeSubmitter(ArtifactSubmitter):
    """Returns sequential ids. Titles in `reject` are refused."""

    def __init__(self, reject: Optional[Set[str]] = None, registry: Optional[Set[str]] = None):
        self.reject = reject or set()
        self.registry = registry if registry is not None else set()
        self.payloads: List[dict] = []

    async def submit(self, payload: dict) -> str:
        self.payloads.append(payload)
        if payload['title'] in self.reject:
            raise Rejected("duplicate paper name")
        self.registry.add(payload['title'])
        return f"paper-{len(self.payloads)}"


class MemoryWarningSink(WarningSink):

    def __init__(self):
        self.messages: List[str] = []

    async def append_warning(self, message: str) -> None:
        self.messages.append(message)


def make_config(start_page: int = 1, end_page: int = 1, **overrides) -> PipelineConfig:
    return replace(PipelineConfig(), start_page=start_page, end_page=end_page, **overrides)


def make_coordinator(config: PipelineConfig, fetcher=None, checker=None, renderer=None,
                     classifier=None, converter=None, submitter=None, warning_sink=None,
                     cancel_event=None) -> PipelineCoordinator:
    return PipelineCoordinator.build(
        config,
        fetcher=fetcher or FakeListingFetcher({}),
        checker=checker or FakeChecker(),
        renderer=renderer or FakeRenderer(),
        classifier=classifier or FakeClassifier(),
        converter=converter or FakeConverter(),
        submitter=submitter or FakeSubmitter(),
        warning_sink=warning_sink or MemoryWarningSink(),
        transform_delay=NoDelay(),
        publish_delay=NoDelay(),
        cancel_event=cancel_event,
    )


@pytest.fixture
def warning_sink():
    return MemoryWarningSink()
