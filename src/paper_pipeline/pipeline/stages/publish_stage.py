"""
Publish Stage - Converts the rendered document and submits the artifact.

The conversion service sometimes answers with a well-formed but empty
attachment set. That case is retried on a fixed interval; transport errors
and registry rejections are not retried here.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..stage import PipelineStage
from ..models import Artifact, AttachmentSet, StageResult
from ..errors import PublishError, EmptyConversionPersisted
from ..payload import build_submission_payload, SchoolInfo
from ..retry import DelayStrategy, FixedDelay
from ...collaborators.base import DocumentConverter, ArtifactSubmitter, WarningSink


@dataclass
class PublishConfig:
    """Configuration for publish stage."""
    conversion_attempts: int = 3
    conversion_interval_seconds: float = 2.0
    school: SchoolInfo = SchoolInfo()


class Publisher(PipelineStage):
    """
    Stage 3: Publish.

    Attempts for one artifact are strictly sequential; the first non-empty
    conversion wins.
    """

    def __init__(self, converter: DocumentConverter, submitter: ArtifactSubmitter,
                 warning_sink: WarningSink, config: Optional[PublishConfig] = None,
                 num_workers: int = 10, delay: Optional[DelayStrategy] = None,
                 artifact_store=None):
        super().__init__(name="Publish", num_workers=num_workers)
        self.converter = converter
        self.submitter = submitter
        self.warning_sink = warning_sink
        self.config = config or PublishConfig()
        self.delay = delay or FixedDelay(self.config.conversion_interval_seconds)
        self.artifact_store = artifact_store
        self.logger = logging.getLogger(self.__class__.__name__)

        self.stats = {
            'published': 0,
            'conversion_attempts': 0,
            'empty_conversions': 0,
            'failed': 0,
            'store_failures': 0,
        }

    async def publish(self, artifact: Artifact) -> str:
        """
        Convert, submit and record the registry id on the artifact.

        Raises:
            EmptyConversionPersisted: every conversion attempt came back empty
            Rejected: the registry refused the payload
            TransportError: a remote service could not be reached
        """
        if artifact.is_published:
            raise PublishError(f"'{artifact.title}' already published as {artifact.registry_id}")

        attachments = await self.convert(artifact)

        payload = build_submission_payload(artifact, attachments, self.config.school)
        registry_id = await self.submitter.submit(payload)
        artifact.assign_registry_id(registry_id)

        self.logger.info(f"Published '{artifact.title}' as {registry_id}")

        if self.artifact_store is not None:
            # already published; a failed local copy does not change the outcome
            try:
                await asyncio.to_thread(self.artifact_store.save, artifact)
            except OSError as e:
                with self.stats_lock:
                    self.stats['store_failures'] += 1
                self.logger.error(f"Could not store published artifact '{artifact.title}': {e}")

        return registry_id

    async def convert(self, artifact: Artifact) -> AttachmentSet:
        """Request conversion until a non-empty attachment set comes back."""
        attempts = self.config.conversion_attempts

        for attempt in range(1, attempts + 1):
            with self.stats_lock:
                self.stats['conversion_attempts'] += 1

            attachments = await self.converter.convert_document(artifact.rendered_document_path)
            if not attachments.is_empty():
                if attempt > 1:
                    self.logger.info(f"Conversion for '{artifact.title}' succeeded on attempt {attempt}")
                return attachments

            with self.stats_lock:
                self.stats['empty_conversions'] += 1
            self.logger.warning(f"Empty conversion for '{artifact.title}' "
                                f"(attempt {attempt}/{attempts})")

            if attempt < attempts:
                await self.delay.wait(attempt)

        await self.warning_sink.append_warning(
            f"Conversion empty after {attempts} attempts: '{artifact.title}' "
            f"({artifact.source_url}, document {artifact.rendered_document_path})"
        )
        raise EmptyConversionPersisted(artifact.title, attempts)

    async def process(self, data: Artifact) -> StageResult:
        descriptor = data.descriptor
        try:
            await self.publish(data)
        except PublishError as e:
            with self.stats_lock:
                self.stats['failed'] += 1
            self.logger.error(f"Publish failed for '{data.title}': {e}")
            return StageResult.failed(descriptor, str(e))

        with self.stats_lock:
            self.stats['published'] += 1

        return StageResult.success(descriptor, data)

    def get_stats(self) -> dict:
        base_stats = super().get_stats()

        with self.stats_lock:
            base_stats['publish_stats'] = self.stats.copy()

        return base_stats
