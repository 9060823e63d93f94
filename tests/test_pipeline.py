"""Tests for the classifier pipeline."""

from __future__ import annotations

import threading

import numpy as np
import pytest
from conftest import SHRIMP_RESULTS, RecordingObserver, StubClassifier, make_frame

from liveclass.camera.types import Frame, PixelFormat
from liveclass.exceptions import ConversionError, InferenceError
from liveclass.pipeline.classifier_pipeline import ClassifierPipeline, PipelineState
from liveclass.pipeline.publishing import UNCLASSIFIED_LABEL


@pytest.fixture()
def make_pipeline(observer: RecordingObserver):
    pipelines: list[ClassifierPipeline] = []

    def factory(classifier: StubClassifier, **kwargs: object) -> ClassifierPipeline:
        pipeline = ClassifierPipeline(classifier, observer, **kwargs)  # type: ignore[arg-type]
        pipelines.append(pipeline)
        return pipeline

    yield factory
    for pipeline in pipelines:
        pipeline.shutdown()


class TestClassify:
    def test_returns_model_results_in_order(self, make_pipeline) -> None:
        pipeline = make_pipeline(StubClassifier())
        assert pipeline.classify(make_frame()) == SHRIMP_RESULTS

    def test_converts_frame_to_rgb(self, make_pipeline) -> None:
        classifier = StubClassifier()
        pipeline = make_pipeline(classifier)
        pipeline.classify(make_frame((0, 0, 255)))

        assert classifier.images[0].shape == (1, 1, 3)
        assert tuple(classifier.images[0][0, 0]) == (255, 0, 0)

    def test_unconvertible_frame_raises(self, make_pipeline) -> None:
        classifier = StubClassifier()
        pipeline = make_pipeline(classifier)
        with pytest.raises(ConversionError):
            pipeline.classify(make_frame(pixel_format=PixelFormat.GRAY))
        assert classifier.images == []

    def test_inference_error_propagates(self, make_pipeline) -> None:
        pipeline = make_pipeline(StubClassifier(error=InferenceError("runtime failed")))
        with pytest.raises(InferenceError):
            pipeline.classify(make_frame())


class TestProcess:
    def test_publishes_top_label(self, make_pipeline, observer: RecordingObserver) -> None:
        pipeline = make_pipeline(StubClassifier())
        frame = make_frame()
        pipeline.process(frame)

        assert observer.results == [(frame, "shrimp", 0.92)]
        assert pipeline.classifications == 1

    def test_empty_results_publish_placeholder(self, make_pipeline, observer: RecordingObserver) -> None:
        pipeline = make_pipeline(StubClassifier([]))
        pipeline.process(make_frame())

        assert observer.labels == [UNCLASSIFIED_LABEL]
        assert observer.results[0][2] is None
        assert UNCLASSIFIED_LABEL == "Unable to classify image."

    def test_placeholder_replaces_previous_label(self, observer: RecordingObserver) -> None:
        good = ClassifierPipeline(StubClassifier(), observer)
        empty = ClassifierPipeline(StubClassifier([]), observer)
        try:
            good.process(make_frame(sequence=1))
            empty.process(make_frame(sequence=2))
        finally:
            good.shutdown()
            empty.shutdown()

        assert observer.labels == ["shrimp", UNCLASSIFIED_LABEL]

    def test_conversion_failure_publishes_placeholder(self, make_pipeline, observer: RecordingObserver) -> None:
        pipeline = make_pipeline(StubClassifier())
        pipeline.process(make_frame(pixel_format=PixelFormat.BGRA))

        assert observer.labels == [UNCLASSIFIED_LABEL]
        assert pipeline.failures == 1

    def test_inference_failure_publishes_placeholder(self, make_pipeline, observer: RecordingObserver) -> None:
        pipeline = make_pipeline(StubClassifier(error=InferenceError("runtime failed")))
        pipeline.process(make_frame())
        pipeline.process(make_frame(sequence=2))

        assert observer.labels == [UNCLASSIFIED_LABEL, UNCLASSIFIED_LABEL]
        assert pipeline.failures == 2
        assert pipeline.state is PipelineState.IDLE

    def test_inactive_session_is_not_published(self, make_pipeline, observer: RecordingObserver) -> None:
        pipeline = make_pipeline(StubClassifier(), is_session_active=lambda session_id: session_id == 2)
        pipeline.process(make_frame(session_id=1))
        pipeline.process(make_frame(session_id=2))

        assert [frame.session_id for frame, _, _ in observer.results] == [2]
        assert pipeline.stale_results == 1

    def test_confidence_within_unit_interval(self, make_pipeline, observer: RecordingObserver) -> None:
        pipeline = make_pipeline(StubClassifier())
        pipeline.process(make_frame())
        confidence = observer.results[0][2]
        assert confidence is not None
        assert 0.0 <= confidence <= 1.0


class TestSubmit:
    def test_submit_classifies_in_background(self, make_pipeline, observer: RecordingObserver) -> None:
        pipeline = make_pipeline(StubClassifier())
        pipeline.submit(make_frame())

        assert observer.published.wait(timeout=5)
        assert pipeline.wait_until_idle(timeout=5)
        assert observer.labels == ["shrimp"]

    def test_busy_pipeline_replaces_pending_frame(self, make_pipeline, observer: RecordingObserver) -> None:
        classifier = StubClassifier(block=True)
        pipeline = make_pipeline(classifier)

        pipeline.submit(make_frame(sequence=1))
        assert classifier.started.wait(timeout=5)
        assert pipeline.state is PipelineState.CLASSIFYING
        pipeline.submit(make_frame(sequence=2))
        pipeline.submit(make_frame(sequence=3))
        classifier.release.set()

        assert pipeline.wait_until_idle(timeout=5)
        assert [frame.sequence for frame, _, _ in observer.results] == [1, 3]
        assert len(classifier.images) == 2
        assert pipeline.dropped_frames == 1

    def test_result_after_session_end_is_discarded(self, make_pipeline, observer: RecordingObserver) -> None:
        active = threading.Event()
        active.set()
        classifier = StubClassifier(block=True)
        pipeline = make_pipeline(classifier, is_session_active=lambda _session_id: active.is_set())

        pipeline.submit(make_frame())
        assert classifier.started.wait(timeout=5)
        active.clear()
        classifier.release.set()

        assert pipeline.wait_until_idle(timeout=5)
        assert observer.results == []
        assert pipeline.stale_results == 1

    def test_stale_pending_frame_is_skipped(self, make_pipeline, observer: RecordingObserver) -> None:
        current = {"session": 1}
        classifier = StubClassifier(block=True)
        pipeline = make_pipeline(classifier, is_session_active=lambda session_id: session_id == current["session"])

        pipeline.submit(make_frame(session_id=1, sequence=1))
        assert classifier.started.wait(timeout=5)
        pipeline.submit(make_frame(session_id=1, sequence=2))
        current["session"] = 2
        classifier.release.set()

        assert pipeline.wait_until_idle(timeout=5)
        assert observer.results == []
        assert len(classifier.images) == 1

    def test_submit_after_shutdown_is_ignored(self, observer: RecordingObserver) -> None:
        classifier = StubClassifier()
        pipeline = ClassifierPipeline(classifier, observer)
        pipeline.shutdown()
        pipeline.submit(make_frame())

        assert classifier.images == []
        assert pipeline.state is PipelineState.IDLE


class TestEndToEnd:
    def test_solid_color_frame_with_stub_model(self, make_pipeline, observer: RecordingObserver) -> None:
        pixels = np.full((1, 1, 3), 200, dtype=np.uint8)
        frame = Frame(pixels=pixels)
        pipeline = make_pipeline(StubClassifier(list(SHRIMP_RESULTS)))

        assert [(r.label, r.confidence) for r in pipeline.classify(frame)] == [("shrimp", 0.92), ("fish", 0.08)]
        pipeline.submit(frame)
        assert observer.published.wait(timeout=5)

        _, label, confidence = observer.results[0]
        assert label == "shrimp"
        assert confidence == 0.92

    def test_empty_model_output_publishes_placeholder_verbatim(
        self, make_pipeline, observer: RecordingObserver
    ) -> None:
        pipeline = make_pipeline(StubClassifier([]))
        pipeline.submit(make_frame())
        assert observer.published.wait(timeout=5)

        assert observer.results[0][1] == "Unable to classify image."
