"""Camera discovery and OpenCV capture devices."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import cv2

from liveclass.camera.types import CameraDevice, CameraSelection
from liveclass.exceptions import InputAttachError

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray

    from liveclass.config import Settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


class DeviceDiscovery(Protocol):
    """Lists candidate cameras for a position."""

    def devices_for(self, position: CameraSelection) -> list[CameraDevice]:
        """Return the devices matching ``position``, best candidate first."""
        ...


class CaptureDevice(Protocol):
    """An opened camera handle."""

    def read(self) -> NDArray[np.uint8] | None:
        """Return the next BGR image, or None if the read failed."""
        ...

    def release(self) -> None:
        """Release the underlying device handle."""
        ...


class DeviceOpener(Protocol):
    """Opens a discovered camera into a capture device."""

    def open(self, device: CameraDevice) -> CaptureDevice:
        """Open ``device``.

        Raises:
            InputAttachError: If the platform rejects the capture configuration.
        """
        ...


# ---------------------------------------------------------------------------
# Settings-backed discovery
# ---------------------------------------------------------------------------


def parse_source(raw: str) -> int | str:
    """Interpret a configured source: digits are device indexes, anything else a path/URL."""
    raw = raw.strip()
    return int(raw) if raw.isdigit() else raw


class ConfiguredDeviceDiscovery:
    """Maps front/back positions to the OpenCV sources configured in settings."""

    def __init__(self, settings: Settings) -> None:
        self._sources: dict[CameraSelection, str | None] = {
            CameraSelection.BACK: settings.back_camera_source,
            CameraSelection.FRONT: settings.front_camera_source,
        }

    def devices_for(self, position: CameraSelection) -> list[CameraDevice]:
        raw = self._sources.get(position)
        if raw is None or not raw.strip():
            return []
        source = parse_source(raw)
        return [CameraDevice(source=source, position=position, name=f"{position}:{source}")]


# ---------------------------------------------------------------------------
# OpenCV
# ---------------------------------------------------------------------------


class OpenCVCaptureDevice:
    """Reads frames from an OpenCV VideoCapture."""

    def __init__(self, capture: cv2.VideoCapture, name: str) -> None:
        self._cap: cv2.VideoCapture | None = capture
        self._name = name

    def read(self) -> NDArray[np.uint8] | None:
        if self._cap is None:
            return None
        ok, image = self._cap.read()
        if not ok or image is None:
            return None
        return image

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.debug("Released %s", self._name)


class OpenCVDeviceOpener:
    """Opens cameras with ``cv2.VideoCapture`` and applies the configured resolution."""

    def __init__(
        self,
        *,
        resolution: tuple[int, int] | None = None,
        warmup_frames: int = 2,
    ) -> None:
        self._resolution = resolution
        self._warmup_frames = warmup_frames

    @classmethod
    def from_settings(cls, settings: Settings) -> OpenCVDeviceOpener:
        resolution = None
        if settings.capture_width and settings.capture_height:
            resolution = (settings.capture_width, settings.capture_height)
        return cls(resolution=resolution, warmup_frames=settings.warmup_frames)

    def open(self, device: CameraDevice) -> OpenCVCaptureDevice:
        cap = cv2.VideoCapture(device.source)
        if not cap.isOpened():
            cap.release()
            raise InputAttachError(f"Unable to open camera source {device.source!r}")
        if self._resolution:
            width, height = self._resolution
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, float(width))
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, float(height))
        for _ in range(self._warmup_frames):
            ok, _ = cap.read()
            if not ok:
                break
        logger.info("Opened camera %s", device.name or device.source)
        return OpenCVCaptureDevice(cap, device.name or str(device.source))
