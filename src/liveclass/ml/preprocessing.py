"""Frame preprocessing: pixel format conversion and model input tensors."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

import cv2
import numpy as np

from liveclass.camera.types import PixelFormat
from liveclass.exceptions import ConversionError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from liveclass.camera.types import Frame

TensorLayout = Literal["nchw", "nhwc"]

_CHANNELS: dict[PixelFormat, int] = {
    PixelFormat.BGR: 3,
    PixelFormat.RGB: 3,
    PixelFormat.BGRA: 4,
    PixelFormat.GRAY: 1,
}

_TO_RGB: dict[PixelFormat, int] = {
    PixelFormat.BGR: cv2.COLOR_BGR2RGB,
    PixelFormat.BGRA: cv2.COLOR_BGRA2RGB,
    PixelFormat.GRAY: cv2.COLOR_GRAY2RGB,
}


def frame_to_rgb(frame: Frame) -> NDArray[np.uint8]:
    """Convert a frame's pixels to an HxWx3 RGB uint8 array.

    Raises:
        ConversionError: If the pixel format is unsupported or the array
            does not match it.
    """
    pixels = frame.pixels
    expected = _CHANNELS.get(frame.pixel_format)
    if expected is None:
        raise ConversionError(f"Unsupported pixel format: {frame.pixel_format!r}")
    if not isinstance(pixels, np.ndarray) or pixels.dtype != np.uint8:
        raise ConversionError("Frame pixels must be a uint8 numpy array")
    if pixels.size == 0:
        raise ConversionError("Frame is empty")

    if pixels.ndim == 2 and expected == 1:
        channels = 1
    elif pixels.ndim == 3:
        channels = pixels.shape[2]
    else:
        raise ConversionError(f"Unexpected frame shape {pixels.shape} for {frame.pixel_format}")
    if channels != expected:
        raise ConversionError(f"Frame has {channels} channels, {frame.pixel_format} needs {expected}")

    if frame.pixel_format is PixelFormat.RGB:
        return np.ascontiguousarray(pixels)
    if pixels.ndim == 3 and channels == 1:
        pixels = pixels[:, :, 0]
    return cv2.cvtColor(pixels, _TO_RGB[frame.pixel_format])


def to_input_tensor(
    image: NDArray[np.uint8],
    *,
    size: tuple[int, int],
    mean: tuple[float, float, float],
    std: tuple[float, float, float],
    layout: TensorLayout = "nchw",
) -> NDArray[np.float32]:
    """Resize and normalize an RGB image into a batch of one.

    Args:
        image: HxWx3 RGB uint8 array.
        size: Target (width, height).
        mean: Per-channel mean applied after scaling to [0, 1].
        std: Per-channel standard deviation.
        layout: ``"nchw"`` -> (1, 3, H, W), ``"nhwc"`` -> (1, H, W, 3).
    """
    resized = cv2.resize(image, size, interpolation=cv2.INTER_LINEAR)
    scaled = resized.astype(np.float32) / 255.0
    normalized = (scaled - np.asarray(mean, dtype=np.float32)) / np.asarray(std, dtype=np.float32)
    if layout == "nchw":
        normalized = normalized.transpose(2, 0, 1)
    return np.ascontiguousarray(normalized[np.newaxis, ...], dtype=np.float32)


def softmax(logits: NDArray[np.float32]) -> NDArray[np.float32]:
    """Softmax over the last axis."""
    exp = np.exp(logits - logits.max(axis=-1, keepdims=True))
    return exp / exp.sum(axis=-1, keepdims=True)


def frame_to_jpeg(frame: Frame, quality: int = 85) -> bytes:
    """Encode a frame as JPEG for display.

    Raises:
        ConversionError: If the frame cannot be converted or encoded.
    """
    bgr = cv2.cvtColor(frame_to_rgb(frame), cv2.COLOR_RGB2BGR)
    ok, buf = cv2.imencode(".jpg", bgr, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise ConversionError("JPEG encoding failed")
    return buf.tobytes()
