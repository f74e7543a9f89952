"""
Pipeline Coordinator - Main orchestrator that drives the stages page by page.
This is the high-level interface for running the paper pipeline.

Per page:
    Enumerating -> Filtering -> Transforming -> Publishing -> Aggregating

Pages run strictly in ascending order and each page is fully drained before
the next one is enumerated.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..config.pipeline_config import PipelineConfig
from ..pipeline.models import ItemDescriptor, StageResult, RunStats, Artifact
from ..pipeline.errors import SourceUnavailable, FatalPipelineError
from ..pipeline.payload import SchoolInfo
from ..pipeline.retry import DelayStrategy
from ..pipeline.stats import StatsAggregator
from ..pipeline.stages.enumeration_stage import SourceEnumerator
from ..pipeline.stages.existence_filter_stage import ExistenceFilter
from ..pipeline.stages.transform_stage import ItemTransformer, TransformConfig
from ..pipeline.stages.publish_stage import Publisher, PublishConfig
from ..collaborators.base import (
    ListingFetcher,
    ExistenceChecker,
    DocumentRenderer,
    MetadataClassifier,
    DocumentConverter,
    ArtifactSubmitter,
    WarningSink,
)


class CoordinatorState(Enum):
    IDLE = "idle"
    ENUMERATING = "enumerating"
    FILTERING = "filtering"
    TRANSFORMING = "transforming"
    PUBLISHING = "publishing"
    AGGREGATING = "aggregating"
    DONE = "done"


@dataclass
class PageReport:
    """Outcome counts for one page."""
    page_number: int
    descriptors: int = 0
    stats: RunStats = field(default_factory=RunStats)
    unavailable: bool = False
    reason: Optional[str] = None


class PipelineCoordinator:
    """
    Main pipeline orchestrator.

    Owns the four stages and the stats aggregator for one run.
    """

    def __init__(self, config: PipelineConfig, enumerator: SourceEnumerator,
                 existence_filter: ExistenceFilter, transformer: ItemTransformer,
                 publisher: Publisher, stats: Optional[StatsAggregator] = None,
                 cancel_event: Optional[asyncio.Event] = None):
        """
        Initialize pipeline coordinator.

        Args:
            config: Immutable run configuration (page range, limits)
            enumerator, existence_filter, transformer, publisher: the stages
            stats: Aggregator to record into (a fresh one by default)
            cancel_event: Set to stop before the next page begins
        """
        self.config = config
        self.enumerator = enumerator
        self.existence_filter = existence_filter
        self.transformer = transformer
        self.publisher = publisher
        self.stats = stats or StatsAggregator()
        self.cancel_event = cancel_event or asyncio.Event()
        self.logger = logging.getLogger(self.__class__.__name__)

        self.state = CoordinatorState.IDLE
        self.current_page: Optional[int] = None
        self.page_reports: List[PageReport] = []
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None

    @classmethod
    def build(cls, config: PipelineConfig, fetcher: ListingFetcher, checker: ExistenceChecker,
              renderer: DocumentRenderer, classifier: MetadataClassifier,
              converter: DocumentConverter, submitter: ArtifactSubmitter,
              warning_sink: WarningSink, artifact_store=None,
              transform_delay: Optional[DelayStrategy] = None,
              publish_delay: Optional[DelayStrategy] = None,
              cancel_event: Optional[asyncio.Event] = None) -> "PipelineCoordinator":
        """Wire the stages from collaborators according to `config`."""
        enumerator = SourceEnumerator(fetcher)

        existence_filter = ExistenceFilter(checker, num_workers=config.existence_workers)

        transformer = ItemTransformer(
            renderer,
            classifier,
            config=TransformConfig(
                render_attempts=config.retry.render_attempts,
                render_interval_seconds=config.retry.render_interval_seconds,
            ),
            num_workers=config.transform_workers,
            delay=transform_delay,
        )

        publisher = Publisher(
            converter,
            submitter,
            warning_sink,
            config=PublishConfig(
                conversion_attempts=config.retry.conversion_attempts,
                conversion_interval_seconds=config.retry.conversion_interval_seconds,
                school=SchoolInfo(name=config.registry.school_name,
                                  number=config.registry.school_number),
            ),
            num_workers=config.publish_workers,
            delay=publish_delay,
            artifact_store=artifact_store if config.persist_artifacts else None,
        )

        return cls(config, enumerator, existence_filter, transformer, publisher,
                   cancel_event=cancel_event)

    def cancel(self):
        """Finish the current page, then stop."""
        if not self.cancel_event.is_set():
            self.logger.warning("Cancellation requested, no new page will start")
        self.cancel_event.set()

    @property
    def is_cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def _enter(self, state: CoordinatorState):
        self.state = state
        self.logger.debug(f"Page {self.current_page}: {state.value}")

    async def run(self) -> RunStats:
        """
        Process every page of the configured range.

        Returns:
            RunStats accumulated over the run

        Raises:
            FatalPipelineError: any error that is not item- or page-local
        """
        self.start_time = time.time()
        pages = self.config.pages
        self.logger.info(f"Starting run over pages {pages.start}..{pages.stop - 1}")

        try:
            for page_number in pages:
                if self.is_cancelled:
                    self.logger.info(f"Cancelled before page {page_number}")
                    break
                await self.run_page(page_number)
        except FatalPipelineError:
            raise
        except Exception as e:
            self.logger.error(f"Run aborted on page {self.current_page}: {e}", exc_info=True)
            raise FatalPipelineError(f"Run aborted on page {self.current_page}: {e}") from e
        finally:
            self.end_time = time.time()

        self._enter(CoordinatorState.DONE)
        totals = self.stats.snapshot()
        self.logger.info(f"Run finished: success={totals.success} exists={totals.exists} "
                         f"failed={totals.failed}")
        return totals

    async def run_page(self, page_number: int) -> PageReport:
        """Drive one page through every stage."""
        self.current_page = page_number
        before = self.stats.snapshot()
        report = PageReport(page_number=page_number)
        self.page_reports.append(report)

        self._enter(CoordinatorState.ENUMERATING)
        try:
            descriptors = await self.enumerator.enumerate(page_number)
        except SourceUnavailable as e:
            self.logger.error(f"Skipping page {page_number}: {e}")
            report.unavailable = True
            report.reason = str(e)
            return report

        report.descriptors = len(descriptors)

        if descriptors:
            artifacts = await self._filter_and_transform(descriptors)

            self._enter(CoordinatorState.PUBLISHING)
            for result in await self.publisher.run(artifacts):
                self._record(result)

        self._enter(CoordinatorState.AGGREGATING)
        report.stats = self.stats.snapshot() - before

        if report.stats.total != report.descriptors:
            raise FatalPipelineError(
                f"Page {page_number}: {report.descriptors} descriptors but "
                f"{report.stats.total} results recorded")

        self.logger.info(f"Page {page_number} done: success={report.stats.success} "
                         f"exists={report.stats.exists} failed={report.stats.failed}")
        return report

    async def _filter_and_transform(self, descriptors: List[ItemDescriptor]) -> List[Artifact]:
        self._enter(CoordinatorState.FILTERING)
        skip, proceed = await self.existence_filter.partition(descriptors)
        for descriptor in skip:
            self._record(StageResult.already_exists(descriptor))

        self._enter(CoordinatorState.TRANSFORMING)
        artifacts = []
        for result in await self.transformer.run(proceed):
            if isinstance(result, StageResult):
                self._record(result)
            else:
                artifacts.append(result)
        return artifacts

    def _record(self, result: StageResult):
        self.stats.record(result)
        if result.reason:
            self.logger.warning(f"Failed: '{result.title}': {result.reason}")

    def get_status(self) -> dict:
        """Current state, totals and per-stage statistics."""
        totals = self.stats.snapshot()
        runtime = 0.0
        if self.start_time:
            runtime = (self.end_time or time.time()) - self.start_time

        return {
            'state': self.state.value,
            'current_page': self.current_page,
            'cancelled': self.is_cancelled,
            'runtime_seconds': round(runtime, 2),
            'totals': totals.to_dict(),
            'pages': [
                {
                    'page': r.page_number,
                    'descriptors': r.descriptors,
                    'unavailable': r.unavailable,
                    **r.stats.to_dict(),
                }
                for r in self.page_reports
            ],
            'stages': {
                'enumeration': self.enumerator.get_stats(),
                'existence': self.existence_filter.get_stats(),
                'transform': self.transformer.get_stats(),
                'publish': self.publisher.get_stats(),
            },
        }

    def print_status(self):
        """Print a human-readable summary."""
        status = self.get_status()
        totals = status['totals']

        print("\n" + "="*60)
        print("PIPELINE STATUS")
        print("="*60)
        print(f"State: {status['state']}")
        print(f"Runtime: {status['runtime_seconds']:.2f} seconds")
        print(f"Success: {totals['success']}")
        print(f"Exists:  {totals['exists']}")
        print(f"Failed:  {totals['failed']}")
        print(f"Total:   {totals['total']}")

        print("\nPages:")
        print("-"*60)
        for page in status['pages']:
            if page['unavailable']:
                print(f"  Page {page['page']:4} | unavailable")
            else:
                print(f"  Page {page['page']:4} | items: {page['descriptors']:3} | "
                      f"success: {page['success']:3} | exists: {page['exists']:3} | "
                      f"failed: {page['failed']:3}")
        print("="*60 + "\n")

    def __repr__(self) -> str:
        return (f"<PipelineCoordinator pages={self.config.start_page}..{self.config.end_page} "
                f"state={self.state.value}>")
