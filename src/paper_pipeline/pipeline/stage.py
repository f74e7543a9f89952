"""
Pipeline Stage - Abstract base class for all fan-out stages.

This module defines the PipelineStage abstract base class that all concrete
stages must inherit from. It provides common functionality for:
- Bounded-concurrency fan-out over asyncio tasks
- Draining a batch completely before returning
- Error handling (item errors stay local, anything else is re-raised)
- Statistics tracking
"""

import asyncio
import threading
import logging
import time
from typing import Optional, Any, List, Iterable
from abc import ABC, abstractmethod


class PipelineStage(ABC):
    """
    Abstract base class for all pipeline stages.

    Each stage:
    - Receives a batch of items from the coordinator
    - Processes each item (implemented by subclass) as its own task
    - Never runs more than `num_workers` items at once
    - Returns only after every item has resolved

    Lifecycle:
    ---------
    1. Create stage instance
    2. Call `await stage.run(items)` once per page
    3. Inspect `get_stats()` for counters
    """

    def __init__(self, name: str, num_workers: int = 1):
        """
        Initialize pipeline stage.

        Args:
            name: Stage name (for logging/monitoring)
            num_workers: Maximum number of items processed concurrently
        """
        if num_workers < 1:
            raise ValueError(f"Stage '{name}' needs at least one worker, got {num_workers}")

        self.name = name
        self.num_workers = num_workers

        # Statistics
        self.processed_count = 0
        self.error_count = 0
        self.in_flight = 0
        self.peak_in_flight = 0
        self.start_time = None
        self.total_processing_time = 0.0

        # Thread safety
        self.stats_lock = threading.Lock()

        # Logging
        self.logger = logging.getLogger(f"{self.__class__.__name__}:{self.name}")

        self.logger.info(f"Initialized stage '{self.name}' with {num_workers} workers")

    @abstractmethod
    async def process(self, data: Any) -> Any:
        """
        Process a single item.

        This method MUST be implemented by all concrete stages. Item-level
        failures should be converted to a result here; anything raised is
        treated as fatal for the batch.

        Args:
            data: Input item

        Returns:
            Processed result for this item
        """
        pass

    async def run(self, items: Iterable[Any]) -> List[Any]:
        """
        Process a batch with bounded concurrency.

        Every item gets its own task. No task is cancelled when a sibling
        fails; the first unexpected exception is re-raised once all tasks
        have finished.

        Returns:
            Results in input order
        """
        items = list(items)
        if not items:
            return []

        if self.start_time is None:
            self.start_time = time.time()

        semaphore = asyncio.Semaphore(self.num_workers)
        self.logger.debug(f"Stage '{self.name}' processing {len(items)} items")

        tasks = [asyncio.ensure_future(self._run_one(semaphore, item)) for item in items]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        first_error: Optional[BaseException] = None
        results = []
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                if first_error is None:
                    first_error = outcome
                continue
            results.append(outcome)

        if first_error is not None:
            self.logger.error(f"Stage '{self.name}' aborted: {first_error}")
            raise first_error

        return results

    async def _run_one(self, semaphore: asyncio.Semaphore, item: Any) -> Any:
        async with semaphore:
            with self.stats_lock:
                self.in_flight += 1
                self.peak_in_flight = max(self.peak_in_flight, self.in_flight)

            start_time = time.time()
            try:
                result = await self.process(item)
            except Exception:
                with self.stats_lock:
                    self.error_count += 1
                raise
            finally:
                processing_time = time.time() - start_time
                with self.stats_lock:
                    self.in_flight -= 1
                    self.total_processing_time += processing_time

            with self.stats_lock:
                self.processed_count += 1

            self.logger.debug(f"Processed item in {processing_time:.3f}s")
            return result

    def get_stats(self) -> dict:
        """
        Get stage statistics.

        Returns:
            dict with statistics
        """
        with self.stats_lock:
            runtime = time.time() - self.start_time if self.start_time else 0

            stats = {
                'name': self.name,
                'workers': self.num_workers,
                'processed': self.processed_count,
                'errors': self.error_count,
                'in_flight': self.in_flight,
                'peak_in_flight': self.peak_in_flight,
                'runtime_seconds': round(runtime, 2),
            }

            if self.processed_count > 0:
                stats['avg_processing_time_seconds'] = round(
                    self.total_processing_time / self.processed_count, 3
                )
            else:
                stats['avg_processing_time_seconds'] = 0.0

            return stats

    def reset_stats(self):
        """Reset statistics counters."""
        with self.stats_lock:
            self.processed_count = 0
            self.error_count = 0
            self.peak_in_flight = self.in_flight
            self.total_processing_time = 0.0
            self.start_time = None

        self.logger.info(f"Reset statistics for stage '{self.name}'")

    def __repr__(self) -> str:
        return (f"<{self.__class__.__name__} name='{self.name}' "
                f"workers={self.num_workers}>")
