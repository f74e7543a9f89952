"""
Transform Stage - Turns a proceeding descriptor into a publish-ready artifact.

Per item:
1. Render the document page (content units, metadata hints, document file)
2. Resolve the subject (page text, then title, then classifier)
3. Classify the title (paper type, school year, term, month)
4. Capture one image per body unit and attach them in reading order

Rendering and capture are retried locally; an unknown subject fails the
item immediately.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Union, Callable, Awaitable, TypeVar

from ..stage import PipelineStage
from ..models import ItemDescriptor, Artifact, ContentUnit, LocationMetadata, StageResult, Classification
from ..errors import TransformError, UnclassifiedSubject, RenderFailed
from ..lookups import match_subject, extract_year, known_subjects
from ..retry import DelayStrategy, FixedDelay
from ...collaborators.base import DocumentRenderer, MetadataClassifier, RenderedDocument

T = TypeVar('T')


@dataclass
class TransformConfig:
    """Configuration for transform stage."""
    render_attempts: int = 3
    render_interval_seconds: float = 1.0


class ItemTransformer(PipelineStage):
    """
    Stage 2: Transform.

    Each item opens a rendering session, so `num_workers` should stay small.
    """

    def __init__(self, renderer: DocumentRenderer, classifier: MetadataClassifier,
                 config: Optional[TransformConfig] = None, num_workers: int = 2,
                 delay: Optional[DelayStrategy] = None):
        super().__init__(name="Transform", num_workers=num_workers)
        self.renderer = renderer
        self.classifier = classifier
        self.config = config or TransformConfig()
        self.delay = delay or FixedDelay(self.config.render_interval_seconds)
        self.logger = logging.getLogger(self.__class__.__name__)

        self.stats = {
            'artifacts': 0,
            'unclassified': 0,
            'render_failures': 0,
            'render_retries': 0,
        }

    async def transform(self, descriptor: ItemDescriptor) -> Artifact:
        """
        Build the artifact for one descriptor.

        Raises:
            UnclassifiedSubject: subject could not be determined
            RenderFailed: rendering or capture failed on every attempt
        """
        title = descriptor.title

        document = await self._with_retries(
            title, "render", lambda: self.renderer.render_document(descriptor))

        hints = document.hints
        if hints.title and hints.title != title:
            self.logger.debug(f"Page title '{hints.title}' differs from listing title '{title}'")

        subject = await self.resolve_subject(title, hints.subject_text)

        classification = await self._classify(title)

        images = await self._with_retries(
            title, "capture", lambda: self._capture(document))

        location = LocationMetadata(
            province=hints.province,
            grade=hints.grade,
            subject=subject,
            year=extract_year(title),
        )

        return Artifact(
            title=title,
            source_url=descriptor.source_url,
            location=location,
            content_items=attach_images(document.content_units, images),
            rendered_document_path=document.document_file,
            classification=classification,
        )

    async def resolve_subject(self, title: str, subject_text: str) -> str:
        """Page subject text first, then the title, then the classifier."""
        subject = match_subject(subject_text) or match_subject(title)
        if subject:
            return subject

        self.logger.info(f"Subject not found in text for '{title}', asking classifier")
        subject = await self.classifier.identify_subject(title)
        if subject in known_subjects():
            return subject

        raise UnclassifiedSubject(title, subject_text)

    async def process(self, data: ItemDescriptor) -> Union[Artifact, StageResult]:
        """
        Returns:
            Artifact on success, a Failed StageResult on item-level error
        """
        try:
            artifact = await self.transform(data)
        except UnclassifiedSubject as e:
            with self.stats_lock:
                self.stats['unclassified'] += 1
            self.logger.error(f"Transform failed for '{data.title}': {e}")
            return StageResult.failed(data, str(e))
        except TransformError as e:
            with self.stats_lock:
                self.stats['render_failures'] += 1
            self.logger.error(f"Transform failed for '{data.title}': {e}")
            return StageResult.failed(data, str(e))

        with self.stats_lock:
            self.stats['artifacts'] += 1

        self.logger.info(f"Transformed '{data.title}' ({len(artifact.content_items)} units, "
                         f"subject={artifact.location.subject})")
        return artifact

    async def _classify(self, title: str) -> Classification:
        try:
            return await self.classifier.classify_metadata(title)
        except Exception as e:
            self.logger.warning(f"Classification failed for '{title}', using defaults: {e}")
            return Classification.default()

    async def _capture(self, document: RenderedDocument) -> List[str]:
        images = await self.renderer.capture_unit_images(document)
        expected = sum(1 for unit in document.content_units if not unit.is_title)
        if len(images) != expected:
            raise ValueError(f"captured {len(images)} images for {expected} body units")
        return images

    async def _with_retries(self, title: str, step: str,
                            action: Callable[[], Awaitable[T]]) -> T:
        attempts = self.config.render_attempts
        last_error: Optional[BaseException] = None

        for attempt in range(1, attempts + 1):
            try:
                return await action()
            except TransformError:
                raise
            except Exception as e:
                last_error = e
                self.logger.warning(f"{step} attempt {attempt}/{attempts} failed for '{title}': {e}")

            if attempt < attempts:
                with self.stats_lock:
                    self.stats['render_retries'] += 1
                await self.delay.wait(attempt)

        raise RenderFailed(title, attempts, last_error)

    def get_stats(self) -> dict:
        base_stats = super().get_stats()

        with self.stats_lock:
            base_stats['transform_stats'] = self.stats.copy()

        return base_stats


def attach_images(units: List[ContentUnit], images: List[str]) -> List[ContentUnit]:
    """Give each body unit its image, keeping reading order."""
    remaining = iter(images)
    result = []
    for unit in units:
        if unit.is_title:
            result.append(unit)
        else:
            result.append(unit.with_rendered_image(next(remaining)))
    return result
