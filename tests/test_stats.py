import threading

from paper_pipeline.pipeline.models import StageResult, RunStats
from paper_pipeline.pipeline.stats import StatsAggregator

from conftest import make_descriptor


def test_record_counts_each_outcome():
    stats = StatsAggregator()
    d = make_descriptor("a")

    stats.record(StageResult.already_exists(d))
    stats.record(StageResult.failed(d, "render failed"))
    stats.record(StageResult.failed(d, "rejected"))

    snapshot = stats.snapshot()
    assert snapshot == RunStats(success=0, exists=1, failed=2)
    assert snapshot.total == 3


def test_concurrent_records_are_not_lost():
    stats = StatsAggregator()
    d = make_descriptor("a")

    def worker():
        for _ in range(500):
            stats.record(StageResult.already_exists(d))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert stats.snapshot().exists == 4000


def test_run_stats_difference():
    before = RunStats(success=1, exists=2, failed=0)
    after = RunStats(success=4, exists=2, failed=1)

    delta = after - before
    assert delta == RunStats(success=3, exists=0, failed=1)
    assert delta.to_dict() == {'success': 3, 'exists': 0, 'failed': 1, 'total': 4}
