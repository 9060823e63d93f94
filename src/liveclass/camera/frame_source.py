"""Frame source: owns one live camera session and delivers frames to a callback.

Each ``start`` creates a fresh capture session with its own id, device handle
and worker thread. ``stop`` deactivates the session and joins the worker,
which releases the device as it exits, so a new session for the other camera
never competes with the old one for the hardware.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from liveclass.camera.types import CameraSelection, Frame, FrameOrientation, PixelFormat
from liveclass.exceptions import CameraError, DeviceUnavailableError, InputAttachError

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray

    from liveclass.camera.devices import CaptureDevice, DeviceDiscovery, DeviceOpener

logger = logging.getLogger(__name__)

# np.rot90 turns counter-clockwise for positive k.
_ROTATIONS: dict[FrameOrientation, int] = {
    FrameOrientation.LANDSCAPE: 0,
    FrameOrientation.PORTRAIT: -1,
    FrameOrientation.LANDSCAPE_FLIPPED: 2,
    FrameOrientation.PORTRAIT_UPSIDE_DOWN: 1,
}


@dataclass
class _CaptureSession:
    session_id: int
    camera: CameraSelection
    device: CaptureDevice
    active: threading.Event = field(default_factory=threading.Event)
    thread: threading.Thread | None = None


class FrameSource:
    """Continuously captures frames from the selected camera."""

    def __init__(
        self,
        discovery: DeviceDiscovery,
        opener: DeviceOpener,
        *,
        orientation: FrameOrientation = FrameOrientation.LANDSCAPE,
        read_retry_delay: float = 0.05,
        join_timeout: float = 5.0,
    ) -> None:
        self._discovery = discovery
        self._opener = opener
        self._orientation = orientation
        self._read_retry_delay = read_retry_delay
        self._join_timeout = join_timeout

        self._lock = threading.Lock()
        self._session: _CaptureSession | None = None
        self._camera: CameraSelection | None = None
        self._callback: Callable[[Frame], None] | None = None
        self._session_ids = itertools.count(1)

    # -- Public API ---------------------------------------------------------

    def register_callback(self, callback: Callable[[Frame], None] | None) -> None:
        """Set the per-frame callback. Called on the capture worker thread."""
        self._callback = callback

    @property
    def camera(self) -> CameraSelection | None:
        """The most recently requested camera, even if starting it failed."""
        return self._camera

    @property
    def is_running(self) -> bool:
        session = self._session
        return session is not None and session.active.is_set()

    @property
    def session_id(self) -> int | None:
        session = self._session
        return session.session_id if session is not None else None

    def is_session_active(self, session_id: int) -> bool:
        """Return True if ``session_id`` is the current, running session."""
        session = self._session
        return session is not None and session.session_id == session_id and session.active.is_set()

    def start(self, camera: CameraSelection) -> None:
        """Begin continuous capture from ``camera``.

        Raises:
            DeviceUnavailableError: If no device matches the selection.
            InputAttachError: If the device cannot be opened.
            CameraError: If a session is already running.
        """
        with self._lock:
            self._start_locked(camera)

    def stop(self) -> None:
        """Halt capture and release the device. No-op when already stopped."""
        with self._lock:
            self._stop_locked()

    def switch_camera(self, camera: CameraSelection) -> None:
        """Stop the current session and start a new one on ``camera``.

        If the new session fails to start, the source is left stopped.
        """
        with self._lock:
            self._stop_locked()
            self._start_locked(camera)

    # -- Internal -----------------------------------------------------------

    def _start_locked(self, camera: CameraSelection) -> None:
        if self._session is not None:
            raise CameraError(f"Frame source already running on {self._session.camera} camera")

        self._camera = camera
        devices = self._discovery.devices_for(camera)
        if not devices:
            raise DeviceUnavailableError(f"No {camera} camera available")

        device = devices[0]
        try:
            handle = self._opener.open(device)
        except InputAttachError:
            logger.warning("Failed to attach %s camera (%s)", camera, device.source)
            raise

        session = _CaptureSession(
            session_id=next(self._session_ids),
            camera=camera,
            device=handle,
        )
        session.active.set()
        session.thread = threading.Thread(
            target=self._run,
            args=(session,),
            name=f"frame-source-{session.session_id}",
            daemon=True,
        )
        self._session = session
        session.thread.start()
        logger.info("Started %s camera session %d", camera, session.session_id)

    def _stop_locked(self) -> None:
        session = self._session
        if session is None:
            return
        self._session = None
        session.active.clear()

        thread = session.thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self._join_timeout)
            if thread.is_alive():
                logger.warning(
                    "Capture worker for session %d did not exit in time, device released when it does",
                    session.session_id,
                )
        logger.info("Stopped %s camera session %d", session.camera, session.session_id)

    def _run(self, session: _CaptureSession) -> None:
        try:
            self._capture(session)
        finally:
            session.device.release()

    def _capture(self, session: _CaptureSession) -> None:
        sequence = 0
        failing = False
        while session.active.is_set():
            image = session.device.read()
            if image is None:
                if not failing:
                    logger.warning("Frame read failed on session %d", session.session_id)
                    failing = True
                time.sleep(self._read_retry_delay)
                continue
            failing = False

            if not session.active.is_set():
                break

            sequence += 1
            frame = Frame(
                pixels=self._orient(image),
                pixel_format=PixelFormat.BGR,
                orientation=self._orientation,
                camera=session.camera,
                session_id=session.session_id,
                sequence=sequence,
            )
            callback = self._callback
            if callback is None:
                continue
            try:
                callback(frame)
            except Exception:
                logger.exception("Frame callback failed on session %d", session.session_id)

    def _orient(self, image: NDArray[np.uint8]) -> NDArray[np.uint8]:
        k = _ROTATIONS[self._orientation]
        if k == 0:
            return image
        return np.ascontiguousarray(np.rot90(image, k))
