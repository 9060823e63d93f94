"""Shared fakes for camera devices, classifiers and observers."""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING

import numpy as np
import pytest

from liveclass.camera.frame_source import FrameSource
from liveclass.camera.types import CameraDevice, CameraSelection, Frame, PixelFormat
from liveclass.exceptions import InputAttachError
from liveclass.ml.image_classifier import ClassificationResult

if TYPE_CHECKING:
    from collections.abc import Iterator

    from numpy.typing import NDArray


def make_frame(
    color: tuple[int, int, int] = (0, 0, 255),
    *,
    pixel_format: PixelFormat = PixelFormat.BGR,
    session_id: int = 1,
    sequence: int = 1,
) -> Frame:
    """A 1x1 solid-color frame."""
    pixels = np.zeros((1, 1, 3), dtype=np.uint8)
    pixels[0, 0] = color
    return Frame(pixels=pixels, pixel_format=pixel_format, session_id=session_id, sequence=sequence)


SHRIMP_RESULTS = [
    ClassificationResult(label="shrimp", confidence=0.92),
    ClassificationResult(label="fish", confidence=0.08),
]


class FakeCaptureDevice:
    """Returns a fixed image until released."""

    def __init__(self, device: CameraDevice, image: NDArray[np.uint8], delay: float = 0.005) -> None:
        self.device = device
        self._image = image
        self._delay = delay
        self.released = False
        self.reads = 0
        self.fail_reads = 0

    def read(self) -> NDArray[np.uint8] | None:
        time.sleep(self._delay)
        if self.released:
            return None
        if self.fail_reads > 0:
            self.fail_reads -= 1
            return None
        self.reads += 1
        return self._image.copy()

    def release(self) -> None:
        self.released = True


class FakeOpener:
    """Opens fake devices and records every handle it hands out."""

    def __init__(
        self,
        *,
        fail_for: set[CameraSelection] | None = None,
        image: NDArray[np.uint8] | None = None,
    ) -> None:
        self._fail_for = fail_for or set()
        self._image = image if image is not None else np.full((2, 4, 3), 128, dtype=np.uint8)
        self.handles: list[FakeCaptureDevice] = []

    def open(self, device: CameraDevice) -> FakeCaptureDevice:
        if device.position in self._fail_for:
            raise InputAttachError(f"cannot attach {device.position}")
        handle = FakeCaptureDevice(device, self._image)
        self.handles.append(handle)
        return handle

    @property
    def active_handles(self) -> list[FakeCaptureDevice]:
        return [h for h in self.handles if not h.released]


class FakeDiscovery:
    """Reports one device for each available position."""

    def __init__(self, available: set[CameraSelection] | None = None) -> None:
        self._available = available if available is not None else {CameraSelection.FRONT, CameraSelection.BACK}

    def devices_for(self, position: CameraSelection) -> list[CameraDevice]:
        if position not in self._available:
            return []
        index = 1 if position is CameraSelection.FRONT else 0
        return [CameraDevice(source=index, position=position, name=f"fake-{position}")]


class StubClassifier:
    """Returns canned results, optionally blocking until released."""

    model_name = "stub"

    def __init__(
        self,
        results: list[ClassificationResult] | None = None,
        *,
        error: Exception | None = None,
        block: bool = False,
    ) -> None:
        self._results = results if results is not None else list(SHRIMP_RESULTS)
        self._error = error
        self.started = threading.Event()
        self.release = threading.Event()
        if not block:
            self.release.set()
        self.images: list[NDArray[np.uint8]] = []

    def classify(self, image: NDArray[np.uint8]) -> list[ClassificationResult]:
        self.images.append(image)
        self.started.set()
        self.release.wait(timeout=5)
        if self._error is not None:
            raise self._error
        return list(self._results)


class RecordingObserver:
    """Collects every published result."""

    def __init__(self) -> None:
        self.results: list[tuple[Frame, str, float | None]] = []
        self.published = threading.Event()

    def on_result(self, frame: Frame, label: str, confidence: float | None = None) -> None:
        self.results.append((frame, label, confidence))
        self.published.set()

    @property
    def labels(self) -> list[str]:
        return [label for _, label, _ in self.results]


@pytest.fixture()
def discovery() -> FakeDiscovery:
    return FakeDiscovery()


@pytest.fixture()
def opener() -> FakeOpener:
    return FakeOpener()


@pytest.fixture()
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture()
def frame_source(discovery: FakeDiscovery, opener: FakeOpener) -> Iterator[FrameSource]:
    source = FrameSource(discovery, opener, read_retry_delay=0.001)
    yield source
    source.stop()
