"""Controller wiring the frame source, classifier pipeline and published state."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from liveclass.pipeline.classifier_pipeline import ClassifierPipeline

if TYPE_CHECKING:
    from liveclass.camera.frame_source import FrameSource
    from liveclass.camera.types import CameraSelection
    from liveclass.ml.image_classifier import ImageClassifier
    from liveclass.pipeline.publishing import ResultObserver

logger = logging.getLogger(__name__)


class LiveClassificationController:
    """Owns one frame source and one pipeline; exposes the camera controls."""

    def __init__(
        self,
        frame_source: FrameSource,
        classifier: ImageClassifier,
        observer: ResultObserver,
        *,
        default_camera: CameraSelection,
    ) -> None:
        self.frame_source = frame_source
        self.classifier = classifier
        self.pipeline = ClassifierPipeline(
            classifier,
            observer,
            is_session_active=frame_source.is_session_active,
        )
        self._default_camera = default_camera
        frame_source.register_callback(self.pipeline.submit)

    @property
    def camera(self) -> CameraSelection:
        return self.frame_source.camera or self._default_camera

    @property
    def camera_running(self) -> bool:
        return self.frame_source.is_running

    def setup_camera(self) -> None:
        """Start capturing from the default camera."""
        self.frame_source.start(self._default_camera)

    def start_camera(self, camera: CameraSelection | None = None) -> CameraSelection:
        target = camera or self.camera
        self.frame_source.start(target)
        return target

    def stop_camera(self) -> None:
        self.frame_source.stop()

    def toggle_camera(self) -> CameraSelection:
        """Switch to the opposite camera and return it.

        Raises:
            CameraError: If the new camera cannot be started; the source is
                left stopped.
        """
        target = self.camera.opposite()
        logger.info("Switching camera to %s", target)
        self.frame_source.switch_camera(target)
        return target

    def shutdown(self) -> None:
        self.frame_source.stop()
        self.pipeline.shutdown()
