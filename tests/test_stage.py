import asyncio

import pytest

from paper_pipeline.pipeline.stage import PipelineStage


class SleepyStage(PipelineStage):
    """Doubles numbers; tracks concurrency; raises on 'boom'."""

    def __init__(self, num_workers):
        super().__init__(name="Sleepy", num_workers=num_workers)
        self.active = 0
        self.peak = 0
        self.finished = []

    async def process(self, data):
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(0.01)
            if data == "boom":
                raise RuntimeError("unexpected")
            self.finished.append(data)
            return data * 2
        finally:
            self.active -= 1


def test_rejects_zero_workers():
    with pytest.raises(ValueError):
        SleepyStage(num_workers=0)


def test_results_keep_input_order():
    stage = SleepyStage(num_workers=3)
    results = asyncio.run(stage.run([5, 1, 4, 2, 3]))
    assert results == [10, 2, 8, 4, 6]


def test_concurrency_never_exceeds_workers():
    stage = SleepyStage(num_workers=2)
    asyncio.run(stage.run(list(range(10))))

    assert stage.peak == 2
    assert stage.peak_in_flight == 2
    assert stage.get_stats()['processed'] == 10


def test_empty_batch():
    stage = SleepyStage(num_workers=2)
    assert asyncio.run(stage.run([])) == []


def test_unexpected_error_reraised_after_siblings_finish():
    stage = SleepyStage(num_workers=4)

    with pytest.raises(RuntimeError, match="unexpected"):
        asyncio.run(stage.run([1, "boom", 2, 3, 4, 5]))

    # no sibling was cancelled
    assert sorted(stage.finished) == [1, 2, 3, 4, 5]
    stats = stage.get_stats()
    assert stats['errors'] == 1
    assert stats['processed'] == 5
    assert stats['in_flight'] == 0


def test_reset_stats():
    stage = SleepyStage(num_workers=1)
    asyncio.run(stage.run([1, 2]))
    stage.reset_stats()

    stats = stage.get_stats()
    assert stats['processed'] == 0
    assert stats['runtime_seconds'] == 0
