"""Environment-based configuration for LiveClass."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from liveclass.camera.types import CameraSelection, FrameOrientation


class Settings(BaseSettings):
    """Application settings loaded from LIVECLASS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LIVECLASS_",
        case_sensitive=False,
        protected_namespaces=("settings_",),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080
    log_level: str = "INFO"

    # Authentication (None = disabled)
    api_key: str | None = None

    # ML device
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)
    gpu_mem_limit: int = Field(default=2_147_483_648, ge=0)

    # Classifier model
    model_path: Path = Path("models/classifier.onnx")
    labels_path: Path | None = None  # None = labels.txt beside the model
    input_size: int = Field(default=224, ge=1)
    mean: tuple[float, float, float] = (0.485, 0.456, 0.406)
    std: tuple[float, float, float] = (0.229, 0.224, 0.225)
    output_activation: Literal["softmax", "none"] = "softmax"
    top_k: int = Field(default=5, ge=1)

    # Camera
    camera: CameraSelection = CameraSelection.BACK
    back_camera_source: str | None = "0"
    front_camera_source: str | None = None
    capture_width: int | None = Field(default=None, ge=1)
    capture_height: int | None = Field(default=None, ge=1)
    warmup_frames: int = Field(default=2, ge=0)
    orientation: FrameOrientation = FrameOrientation.LANDSCAPE
    jpeg_quality: int = Field(default=85, ge=1, le=100)

    def resolved_labels_path(self) -> Path:
        """Return the labels file, defaulting to ``labels.txt`` next to the model."""
        if self.labels_path is not None:
            return self.labels_path
        return self.model_path.with_name("labels.txt")


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
