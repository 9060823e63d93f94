"""Core camera types: selections, orientations, and frames."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray


class CameraSelection(StrEnum):
    FRONT = "front"
    BACK = "back"

    def opposite(self) -> CameraSelection:
        """Return the other camera."""
        return CameraSelection.FRONT if self is CameraSelection.BACK else CameraSelection.BACK


class FrameOrientation(StrEnum):
    """Orientation the frame pixels are delivered in.

    Sensors deliver landscape images; the other values are produced by
    rotating the sensor image before delivery.
    """

    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    LANDSCAPE_FLIPPED = "landscape_flipped"
    PORTRAIT_UPSIDE_DOWN = "portrait_upside_down"


class PixelFormat(StrEnum):
    BGR = "bgr"
    RGB = "rgb"
    BGRA = "bgra"
    GRAY = "gray"


@dataclass(frozen=True)
class CameraDevice:
    """A discovered camera that can be opened by a device opener."""

    source: int | str
    position: CameraSelection
    name: str = ""


@dataclass(frozen=True, eq=False)
class Frame:
    """One captured camera image plus its metadata.

    ``session_id`` identifies the capture session that produced the frame and
    is used to discard results that finish after the session ended.
    """

    pixels: NDArray[np.uint8]
    pixel_format: PixelFormat = PixelFormat.BGR
    orientation: FrameOrientation = FrameOrientation.LANDSCAPE
    camera: CameraSelection = CameraSelection.BACK
    session_id: int = 0
    sequence: int = 0
    captured_at: float = field(default_factory=time.time)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1]) if self.pixels.ndim >= 2 else 0

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0]) if self.pixels.ndim >= 1 else 0
