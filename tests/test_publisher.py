import asyncio
from pathlib import Path

import pytest

from paper_pipeline.pipeline.errors import EmptyConversionPersisted, PublishError, Rejected
from paper_pipeline.pipeline.models import Artifact, LocationMetadata, Classification, Outcome
from paper_pipeline.pipeline.retry import NoDelay, DelayStrategy
from paper_pipeline.pipeline.stages.publish_stage import Publisher, PublishConfig

from conftest import FakeConverter, FakeSubmitter, MemoryWarningSink


class RecordingDelay(DelayStrategy):

    def __init__(self):
        self.waits = []

    async def wait(self, attempt: int) -> None:
        self.waits.append(attempt)


def make_artifact(title: str = "2024北京七年级语文期中") -> Artifact:
    return Artifact(
        title=title,
        source_url=f"https://example.test/{title}",
        location=LocationMetadata(province="北京", grade="七年级", subject="语文", year="2024"),
        content_items=[],
        rendered_document_path=Path(f"PDF/{title}.pdf"),
        classification=Classification(category="期中考试", parent_category="阶段测试"),
    )


def make_publisher(converter, submitter=None, sink=None, delay=None, attempts=3):
    return Publisher(
        converter,
        submitter or FakeSubmitter(),
        sink or MemoryWarningSink(),
        config=PublishConfig(conversion_attempts=attempts),
        delay=delay or NoDelay(),
    )


@pytest.mark.parametrize("empties", [0, 1, 2])
def test_empty_conversions_retried_until_content(empties):
    artifact = make_artifact()
    key = artifact.rendered_document_path.stem
    converter = FakeConverter(empties={key: empties})
    sink = MemoryWarningSink()
    delay = RecordingDelay()
    publisher = make_publisher(converter, sink=sink, delay=delay)

    result = asyncio.run(publisher.process(artifact))

    assert result.outcome is Outcome.SUCCESS
    assert converter.calls[key] == empties + 1
    assert delay.waits == list(range(1, empties + 1))
    assert sink.messages == []
    assert artifact.registry_id == "paper-1"


def test_persistent_empty_writes_one_warning():
    artifact = make_artifact()
    key = artifact.rendered_document_path.stem
    converter = FakeConverter(always_empty={key})
    submitter = FakeSubmitter()
    sink = MemoryWarningSink()
    delay = RecordingDelay()
    publisher = make_publisher(converter, submitter=submitter, sink=sink, delay=delay)

    result = asyncio.run(publisher.process(artifact))

    assert result.outcome is Outcome.FAILED
    assert converter.calls[key] == 3
    assert delay.waits == [1, 2]
    assert len(sink.messages) == 1
    assert artifact.title in sink.messages[0]
    assert submitter.payloads == []
    assert not artifact.is_published


def test_persistent_empty_raises_from_publish():
    artifact = make_artifact()
    converter = FakeConverter(always_empty={artifact.rendered_document_path.stem})
    publisher = make_publisher(converter)

    with pytest.raises(EmptyConversionPersisted):
        asyncio.run(publisher.publish(artifact))


def test_rejection_is_not_retried():
    artifact = make_artifact()
    key = artifact.rendered_document_path.stem
    converter = FakeConverter()
    submitter = FakeSubmitter(reject={artifact.title})
    sink = MemoryWarningSink()
    publisher = make_publisher(converter, submitter=submitter, sink=sink)

    result = asyncio.run(publisher.process(artifact))

    assert result.outcome is Outcome.FAILED
    assert "rejected" in result.reason
    assert converter.calls[key] == 1
    assert len(submitter.payloads) == 1
    assert sink.messages == []


def test_transport_error_is_not_retried():
    artifact = make_artifact()
    key = artifact.rendered_document_path.stem
    converter = FakeConverter(transport_failures={key})
    sink = MemoryWarningSink()
    publisher = make_publisher(converter, sink=sink)

    result = asyncio.run(publisher.process(artifact))

    assert result.outcome is Outcome.FAILED
    assert converter.calls[key] == 1
    assert sink.messages == []


def test_already_published_artifact_is_refused():
    artifact = make_artifact()
    artifact.assign_registry_id("paper-9")
    converter = FakeConverter()
    publisher = make_publisher(converter)

    with pytest.raises(PublishError):
        asyncio.run(publisher.publish(artifact))
    assert converter.calls == {}


def test_registry_id_assigned_once():
    artifact = make_artifact()
    artifact.assign_registry_id("paper-1")
    with pytest.raises(ValueError):
        artifact.assign_registry_id("paper-2")


def test_submitted_payload_fields():
    artifact = make_artifact()
    submitter = FakeSubmitter()
    publisher = make_publisher(FakeConverter(), submitter=submitter)

    asyncio.run(publisher.publish(artifact))

    payload = submitter.payloads[0]
    assert payload['title'] == artifact.title
    assert payload['subject'] == "55"
    assert payload['grade'] == "161"
    assert payload['parentPaperType'] == "ppt3"
    assert payload['address'] == [{'province': "110000", 'city': "0"}]
    assert payload['attachments'][0]['converterFiles']


def test_persists_artifact_when_store_given(tmp_path):
    from paper_pipeline.collaborators.artifact_store import ArtifactStore

    store = ArtifactStore(str(tmp_path))
    artifact = make_artifact()
    publisher = Publisher(FakeConverter(), FakeSubmitter(), MemoryWarningSink(),
                          delay=NoDelay(), artifact_store=store)

    asyncio.run(publisher.publish(artifact))

    assert store.path_for(artifact).exists()


def test_store_failure_keeps_success():
    class FailingStore:
        def save(self, artifact):
            raise OSError("disk full")

    artifact = make_artifact()
    publisher = Publisher(FakeConverter(), FakeSubmitter(), MemoryWarningSink(),
                          delay=NoDelay(), artifact_store=FailingStore())

    result = asyncio.run(publisher.process(artifact))

    assert result.outcome is Outcome.SUCCESS
    assert artifact.registry_id == "paper-1"
    assert publisher.get_stats()['publish_stats']['store_failures'] == 1
