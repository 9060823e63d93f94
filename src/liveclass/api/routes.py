"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import Response

from liveclass.api.middleware import verify_api_key
from liveclass.api.schemas import (
    CameraResponse,
    ErrorResponse,
    HealthResponse,
    StateResponse,
)
from liveclass.camera.types import CameraSelection
from liveclass.exceptions import CameraError, ConversionError, InputAttachError
from liveclass.ml.preprocessing import frame_to_jpeg

if TYPE_CHECKING:
    from liveclass.config import Settings
    from liveclass.controller import LiveClassificationController
    from liveclass.ml.model_manager import ModelManager
    from liveclass.pipeline.publishing import StateStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])

_CAMERA_ERRORS = {
    status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
}


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_controller(request: Request) -> LiveClassificationController:
    controller: LiveClassificationController = request.app.state.controller
    return controller


def _get_state_store(request: Request) -> StateStore:
    store: StateStore = request.app.state.state_store
    return store


def _get_model_manager(request: Request) -> ModelManager:
    manager: ModelManager = request.app.state.model_manager
    return manager


def _camera_http_error(exc: CameraError) -> HTTPException:
    if isinstance(exc, InputAttachError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


def _camera_response(controller: LiveClassificationController) -> CameraResponse:
    return CameraResponse(camera=controller.camera.value, running=controller.camera_running)


@router.get(
    "/state",
    response_model=StateResponse,
    summary="Latest classification",
)
async def get_state(request: Request) -> StateResponse:
    """Return the most recently published label, confidence and frame metadata."""
    current = _get_state_store(request).current
    controller = _get_controller(request)
    frame = current.frame
    return StateResponse(
        label=current.label,
        confidence=current.confidence,
        display_text=current.display_text,
        camera=controller.camera.value,
        camera_running=controller.camera_running,
        frame_available=frame is not None,
        frame_sequence=frame.sequence if frame is not None else None,
        frame_width=frame.width if frame is not None else None,
        frame_height=frame.height if frame is not None else None,
        orientation=frame.orientation.value if frame is not None else None,
        updated_at=current.updated_at,
    )


@router.get(
    "/frame",
    response_class=Response,
    responses={
        status.HTTP_200_OK: {"content": {"image/jpeg": {}}},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    },
    summary="Latest classified frame",
)
async def get_frame(request: Request) -> Response:
    """Return the most recently published frame as JPEG."""
    frame = _get_state_store(request).current.frame
    if frame is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No frame published yet")
    try:
        body = frame_to_jpeg(frame, quality=_get_settings(request).jpeg_quality)
    except ConversionError as exc:
        logger.warning("Could not encode frame %d: %s", frame.sequence, exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    return Response(content=body, media_type="image/jpeg", headers={"Cache-Control": "no-store"})


@router.post(
    "/camera/toggle",
    response_model=CameraResponse,
    responses=_CAMERA_ERRORS,
    summary="Switch to the opposite camera",
)
def toggle_camera(request: Request) -> CameraResponse:
    """Stop the current camera and start the other one."""
    controller = _get_controller(request)
    try:
        controller.toggle_camera()
    except CameraError as exc:
        raise _camera_http_error(exc) from exc
    return _camera_response(controller)


@router.post(
    "/camera/start",
    response_model=CameraResponse,
    responses=_CAMERA_ERRORS,
    summary="Start capturing",
)
def start_camera(request: Request, camera: CameraSelection | None = None) -> CameraResponse:
    """Start the selected camera, or the current selection when omitted."""
    controller = _get_controller(request)
    try:
        controller.start_camera(camera)
    except CameraError as exc:
        raise _camera_http_error(exc) from exc
    return _camera_response(controller)


@router.post(
    "/camera/stop",
    response_model=CameraResponse,
    summary="Stop capturing",
)
def stop_camera(request: Request) -> CameraResponse:
    """Stop capturing. Stopping a stopped camera is a no-op."""
    controller = _get_controller(request)
    controller.stop_camera()
    return _camera_response(controller)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    settings = _get_settings(request)
    controller = _get_controller(request)
    pipeline = controller.pipeline
    return HealthResponse(
        status="ok",
        gpu=settings.device == "cuda",
        models_loaded=_get_model_manager(request).get_loaded_models(),
        camera=controller.camera.value,
        camera_running=controller.camera_running,
        pipeline_state=pipeline.state.value,
        classifications=pipeline.classifications,
        failures=pipeline.failures,
        dropped_frames=pipeline.dropped_frames,
    )
