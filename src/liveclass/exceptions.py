"""Exception hierarchy for LiveClass."""

from __future__ import annotations


class LiveClassError(Exception):
    """Base class for all LiveClass errors."""


# ---------------------------------------------------------------------------
# Model / inference
# ---------------------------------------------------------------------------


class ModelLoadError(LiveClassError):
    """The classifier model is missing or malformed. Fatal at startup."""


class ConversionError(LiveClassError):
    """A frame could not be converted to the classifier's input representation."""


class InferenceError(LiveClassError):
    """The model invocation failed."""


# ---------------------------------------------------------------------------
# Camera
# ---------------------------------------------------------------------------


class CameraError(LiveClassError):
    """Base class for frame source errors."""


class DeviceUnavailableError(CameraError):
    """No camera matches the requested selection."""


class InputAttachError(CameraError):
    """The camera exists but could not be opened or configured."""
