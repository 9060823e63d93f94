"""FastAPI application entry point."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from liveclass.camera.devices import DeviceDiscovery, DeviceOpener
    from liveclass.config import Settings
    from liveclass.ml.image_classifier import ImageClassifier
    from liveclass.ml.model_manager import ModelManager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from liveclass.api import page
from liveclass.api.routes import router
from liveclass.camera.devices import ConfiguredDeviceDiscovery, OpenCVDeviceOpener
from liveclass.camera.frame_source import FrameSource
from liveclass.config import get_settings
from liveclass.controller import LiveClassificationController
from liveclass.exceptions import CameraError
from liveclass.ml.model_manager import OnnxModelManager
from liveclass.ml.onnx_classifier import OnnxImageClassifier
from liveclass.pipeline.publishing import LoopPublisher, StateStore

logger = logging.getLogger(__name__)


def init_app_state(
    app: FastAPI,
    settings: Settings,
    *,
    model_manager: ModelManager,
    classifier: ImageClassifier,
    discovery: DeviceDiscovery,
    opener: DeviceOpener,
    loop: asyncio.AbstractEventLoop,
) -> LiveClassificationController:
    """Build the frame source, pipeline and state store and attach them to ``app``.

    Results are published to the state store on ``loop``.
    """
    store = StateStore()
    frame_source = FrameSource(discovery, opener, orientation=settings.orientation)
    controller = LiveClassificationController(
        frame_source,
        classifier,
        LoopPublisher(loop, store, is_session_active=frame_source.is_session_active),
        default_camera=settings.camera,
    )
    app.state.settings = settings
    app.state.model_manager = model_manager
    app.state.state_store = store
    app.state.controller = controller
    return controller


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: load the model and open the camera, then clean up."""
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting LiveClass (device=%s, model=%s, camera=%s)",
        settings.device,
        settings.model_path,
        settings.camera,
    )

    # A missing or malformed model aborts startup.
    model_manager = OnnxModelManager(settings)
    classifier = OnnxImageClassifier.from_settings(settings, model_manager)

    controller = init_app_state(
        app,
        settings,
        model_manager=model_manager,
        classifier=classifier,
        discovery=ConfiguredDeviceDiscovery(settings),
        opener=OpenCVDeviceOpener.from_settings(settings),
        loop=asyncio.get_running_loop(),
    )

    try:
        await asyncio.to_thread(controller.setup_camera)
    except CameraError as exc:
        logger.error("Camera not started: %s", exc)

    logger.info("LiveClass ready")
    yield

    logger.info("Shutting down LiveClass")
    await asyncio.to_thread(controller.shutdown)
    model_manager.shutdown()
    logger.info("LiveClass shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="LiveClass",
        description="Live camera image classification with an on-device ONNX model",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    application.include_router(page.router)
    return application


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)
