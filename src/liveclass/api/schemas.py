"""Pydantic response schemas for the LiveClass API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class StateResponse(BaseModel):
    """The most recently published classification."""

    label: str
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    display_text: str = Field(description="Label as shown on the page, e.g. 'shrimp - 92.00%'")
    camera: str = Field(description="Selected camera: 'front' or 'back'")
    camera_running: bool
    frame_available: bool
    frame_sequence: int | None = None
    frame_width: int | None = None
    frame_height: int | None = None
    orientation: str | None = None
    updated_at: float | None = Field(default=None, description="Unix timestamp of the last publication")


class CameraResponse(BaseModel):
    """Camera status after a control action."""

    camera: str
    running: bool


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    gpu: bool
    models_loaded: list[str]
    camera: str
    camera_running: bool
    pipeline_state: str = Field(description="'idle' or 'classifying'")
    classifications: int
    failures: int
    dropped_frames: int


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
