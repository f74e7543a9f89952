"""
Stats Aggregator - Run-wide outcome counters.
"""
import threading
import logging

from .models import StageResult, RunStats, Outcome


class StatsAggregator:
    """
    Accumulates terminal outcomes across every page of a run.

    Safe to call from concurrent stage workers; counters only ever grow.
    """

    def __init__(self):
        self._success = 0
        self._exists = 0
        self._failed = 0
        self.lock = threading.Lock()
        self.logger = logging.getLogger(self.__class__.__name__)

    def record(self, result: StageResult) -> None:
        with self.lock:
            if result.outcome is Outcome.SUCCESS:
                self._success += 1
            elif result.outcome is Outcome.ALREADY_EXISTS:
                self._exists += 1
            else:
                self._failed += 1

        self.logger.debug(f"Recorded {result.outcome.value}: {result.title}")

    def snapshot(self) -> RunStats:
        with self.lock:
            return RunStats(success=self._success, exists=self._exists, failed=self._failed)

    def __repr__(self) -> str:
        stats = self.snapshot()
        return (f"<StatsAggregator success={stats.success} "
                f"exists={stats.exists} failed={stats.failed}>")
