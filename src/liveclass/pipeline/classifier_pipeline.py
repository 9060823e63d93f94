"""Classifier pipeline: classify one frame at a time and publish the top label.

Architecture:
    FrameSource worker -> submit() -> ThreadPoolExecutor(1) -> classifier -> observer

At most one classification runs at a time. A frame arriving while the
worker is busy replaces the single pending frame; the replaced frame is
counted as dropped. Results from sessions that are no longer current are
discarded before publication.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from enum import StrEnum
from typing import TYPE_CHECKING

from liveclass.exceptions import ConversionError, InferenceError
from liveclass.ml.preprocessing import frame_to_rgb
from liveclass.pipeline.publishing import UNCLASSIFIED_LABEL

if TYPE_CHECKING:
    from collections.abc import Callable

    from liveclass.camera.types import Frame
    from liveclass.ml.image_classifier import ClassificationResult, ImageClassifier
    from liveclass.pipeline.publishing import ResultObserver

logger = logging.getLogger(__name__)


class PipelineState(StrEnum):
    IDLE = "idle"
    CLASSIFYING = "classifying"


class ClassifierPipeline:
    """Runs a pre-loaded classifier over frames and reports the best label."""

    def __init__(
        self,
        classifier: ImageClassifier,
        observer: ResultObserver,
        *,
        is_session_active: Callable[[int], bool] | None = None,
    ) -> None:
        self._classifier = classifier
        self._observer = observer
        self._is_session_active = is_session_active

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="classifier")
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._state = PipelineState.IDLE
        self._pending: Frame | None = None
        self._closed = False

        self._classifications = 0
        self._failures = 0
        self._dropped = 0
        self._stale = 0

    # -- Public API ---------------------------------------------------------

    def classify(self, frame: Frame) -> list[ClassificationResult]:
        """Classify a single frame.

        Raises:
            ConversionError: If the frame cannot be converted to RGB.
            InferenceError: If the model invocation fails.
        """
        image = frame_to_rgb(frame)
        return self._classifier.classify(image)

    def process(self, frame: Frame) -> None:
        """Classify ``frame`` on the calling thread and publish the outcome.

        Per-frame failures publish the placeholder label instead of raising.
        """
        results: list[ClassificationResult] = []
        try:
            results = self.classify(frame)
        except ConversionError as exc:
            logger.warning("Frame %d could not be converted: %s", frame.sequence, exc)
            self._count_failure()
        except InferenceError as exc:
            logger.warning("Classification failed for frame %d: %s", frame.sequence, exc)
            self._count_failure()

        if not self._is_current(frame):
            with self._lock:
                self._stale += 1
            logger.debug("Discarding result from inactive session %d", frame.session_id)
            return

        if results:
            best = results[0]
            with self._lock:
                self._classifications += 1
            self._observer.on_result(frame, best.label, best.confidence)
        else:
            self._observer.on_result(frame, UNCLASSIFIED_LABEL, None)

    def submit(self, frame: Frame) -> None:
        """Queue ``frame`` for classification without blocking the caller."""
        with self._lock:
            if self._closed:
                return
            if self._state is PipelineState.CLASSIFYING:
                if self._pending is not None:
                    self._dropped += 1
                self._pending = frame
                return
            self._state = PipelineState.CLASSIFYING
            self._executor.submit(self._drain, frame)

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        """Block until no classification is running or pending."""
        with self._idle:
            return self._idle.wait_for(lambda: self._state is PipelineState.IDLE, timeout=timeout)

    def shutdown(self) -> None:
        """Stop accepting frames and wait for the in-flight classification."""
        with self._lock:
            self._closed = True
            self._pending = None
        self._executor.shutdown(wait=True)

    @property
    def state(self) -> PipelineState:
        with self._lock:
            return self._state

    @property
    def classifications(self) -> int:
        """Number of results published with a real label."""
        with self._lock:
            return self._classifications

    @property
    def failures(self) -> int:
        with self._lock:
            return self._failures

    @property
    def dropped_frames(self) -> int:
        """Frames replaced in the pending slot before they were classified."""
        with self._lock:
            return self._dropped

    @property
    def stale_results(self) -> int:
        with self._lock:
            return self._stale

    # -- Internal -----------------------------------------------------------

    def _drain(self, frame: Frame | None) -> None:
        while frame is not None:
            try:
                self.process(frame)
            except Exception:
                logger.exception("Unexpected error publishing frame %d", frame.sequence)

            with self._lock:
                frame = self._pending
                self._pending = None
                if frame is not None and not self._is_current(frame):
                    self._stale += 1
                    frame = None
                if frame is None:
                    self._state = PipelineState.IDLE
                    self._idle.notify_all()

    def _is_current(self, frame: Frame) -> bool:
        if self._is_session_active is None:
            return True
        return self._is_session_active(frame.session_id)

    def _count_failure(self) -> None:
        with self._lock:
            self._failures += 1
