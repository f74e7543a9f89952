import asyncio

import pytest

from paper_pipeline.pipeline.errors import RenderFailed, UnclassifiedSubject
from paper_pipeline.pipeline.models import Artifact, Classification, ContentKind, ContentUnit, Outcome, StageResult
from paper_pipeline.pipeline.retry import NoDelay
from paper_pipeline.pipeline.stages.transform_stage import ItemTransformer, TransformConfig, attach_images

from conftest import FakeRenderer, FakeClassifier, make_descriptor


def make_transformer(renderer=None, classifier=None, num_workers=2, attempts=3):
    return ItemTransformer(
        renderer or FakeRenderer(),
        classifier or FakeClassifier(),
        config=TransformConfig(render_attempts=attempts),
        num_workers=num_workers,
        delay=NoDelay(),
    )


def test_builds_artifact():
    transformer = make_transformer()
    descriptor = make_descriptor("2024-2025学年北京七年级语文期中试卷")

    artifact = asyncio.run(transformer.transform(descriptor))

    assert isinstance(artifact, Artifact)
    assert artifact.title == descriptor.title
    assert artifact.source_url == descriptor.source_url
    assert artifact.location.subject == "语文"
    assert artifact.location.year == "2024"
    assert artifact.location.province == "北京"
    assert artifact.classification.category == "期中考试"
    assert not artifact.is_published


def test_images_attached_in_reading_order():
    transformer = make_transformer()
    artifact = asyncio.run(transformer.transform(make_descriptor("语文卷")))

    assert [u.kind for u in artifact.content_items] == [
        ContentKind.TITLE_MARKER, ContentKind.BODY, ContentKind.BODY]
    assert artifact.content_items[0].rendered_image is None
    assert [u.rendered_image for u in artifact.body_units()] == ["img1", "img2"]


def test_concurrency_bounded_by_workers():
    renderer = FakeRenderer(hold_seconds=0.01)
    transformer = make_transformer(renderer=renderer, num_workers=2)
    descriptors = [make_descriptor(f"语文{i}") for i in range(6)]

    results = asyncio.run(transformer.run(descriptors))

    assert len(results) == 6
    assert renderer.peak == 2


def test_unclassified_subject_fails_item():
    renderer = FakeRenderer(subject_text="")
    classifier = FakeClassifier(subject=None)
    transformer = make_transformer(renderer=renderer, classifier=classifier)
    descriptor = make_descriptor("期中测试卷")

    with pytest.raises(UnclassifiedSubject):
        asyncio.run(transformer.transform(descriptor))

    result = asyncio.run(transformer.process(descriptor))
    assert isinstance(result, StageResult)
    assert result.outcome is Outcome.FAILED
    assert transformer.get_stats()['transform_stats']['unclassified'] == 1
    # no capture happened for an unclassified document
    assert renderer.capture_calls == []


def test_subject_resolution_order():
    classifier = FakeClassifier(subject="物理")
    transformer = make_transformer(classifier=classifier)

    assert asyncio.run(transformer.resolve_subject("初中数学卷", "初中英语")) == "英语"
    assert asyncio.run(transformer.resolve_subject("初中数学卷", "")) == "数学"
    assert classifier.subject_calls == []

    assert asyncio.run(transformer.resolve_subject("期末卷", "")) == "物理"
    assert classifier.subject_calls == ["期末卷"]


def test_classifier_answer_outside_known_subjects_is_rejected():
    transformer = make_transformer(classifier=FakeClassifier(subject="音乐"))
    with pytest.raises(UnclassifiedSubject):
        asyncio.run(transformer.resolve_subject("期末卷", ""))


def test_render_retried_then_succeeds():
    renderer = FakeRenderer(render_failures={"语文卷": 2})
    transformer = make_transformer(renderer=renderer)

    result = asyncio.run(transformer.process(make_descriptor("语文卷")))

    assert isinstance(result, Artifact)
    assert renderer.render_calls == ["语文卷"] * 3
    assert transformer.get_stats()['transform_stats']['render_retries'] == 2


def test_render_failure_after_all_attempts():
    renderer = FakeRenderer(render_failures={"语文卷": 5})
    transformer = make_transformer(renderer=renderer, attempts=3)

    with pytest.raises(RenderFailed) as excinfo:
        asyncio.run(transformer.transform(make_descriptor("语文卷")))

    assert excinfo.value.attempts == 3
    assert len(renderer.render_calls) == 3


def test_capture_count_mismatch_is_retried():
    renderer = FakeRenderer(capture_counts={"语文卷": [1, 2]})
    transformer = make_transformer(renderer=renderer)

    artifact = asyncio.run(transformer.transform(make_descriptor("语文卷")))

    assert renderer.capture_calls == ["语文卷", "语文卷"]
    assert len(artifact.body_units()) == 2


def test_classifier_failure_falls_back_to_defaults():
    transformer = make_transformer(classifier=FakeClassifier(fail=True))
    artifact = asyncio.run(transformer.transform(make_descriptor("语文卷")))
    assert artifact.classification == Classification.default()


def test_attach_images_skips_title_markers():
    units = [
        ContentUnit(kind=ContentKind.BODY, text="q1"),
        ContentUnit(kind=ContentKind.TITLE_MARKER, text="二、填空题"),
        ContentUnit(kind=ContentKind.BODY, text="q2"),
    ]

    attached = attach_images(units, ["a", "b"])

    assert [u.rendered_image for u in attached] == ["a", None, "b"]
    assert units[0].rendered_image is None
