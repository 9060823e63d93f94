"""Result publication: observer protocol, published state, and UI hand-off."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Callable

    from liveclass.camera.types import Frame

logger = logging.getLogger(__name__)

WAITING_LABEL = "Waiting for image..."
UNCLASSIFIED_LABEL = "Unable to classify image."


class ResultObserver(Protocol):
    """Receives one update per completed classification."""

    def on_result(self, frame: Frame, label: str, confidence: float | None = None) -> None:
        """Handle a result. ``confidence`` is None for placeholder labels."""
        ...


@dataclass(frozen=True)
class PublishedState:
    """The most recently published classification."""

    frame: Frame | None = None
    label: str = WAITING_LABEL
    confidence: float | None = None
    updated_at: float | None = None
    publications: int = 0

    @property
    def display_text(self) -> str:
        """Label as shown to the user, e.g. ``"shrimp - 92.00%"``."""
        if self.confidence is None:
            return self.label
        return f"{self.label} - {self.confidence * 100:.2f}%"


class StateStore:
    """Holds the published state. Only mutate it from the UI context."""

    def __init__(self) -> None:
        self._state = PublishedState()

    @property
    def current(self) -> PublishedState:
        return self._state

    def on_result(self, frame: Frame, label: str, confidence: float | None = None) -> None:
        self._state = PublishedState(
            frame=frame,
            label=label,
            confidence=confidence,
            updated_at=time.time(),
            publications=self._state.publications + 1,
        )


class LoopPublisher:
    """Posts results to an observer living on an asyncio event loop.

    The posting thread does not wait for the loop to run the update. When
    ``is_session_active`` is given, the session is checked again on the loop
    and results from a session that ended after posting are dropped.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        target: ResultObserver,
        *,
        is_session_active: Callable[[int], bool] | None = None,
    ) -> None:
        self._loop = loop
        self._target = target
        self._is_session_active = is_session_active

    def on_result(self, frame: Frame, label: str, confidence: float | None = None) -> None:
        try:
            self._loop.call_soon_threadsafe(self._apply, frame, label, confidence)
        except RuntimeError:
            logger.debug("Event loop closed, dropping result for frame %d", frame.sequence)

    def _apply(self, frame: Frame, label: str, confidence: float | None) -> None:
        if self._is_session_active is not None and not self._is_session_active(frame.session_id):
            logger.debug("Dropping result from inactive session %d", frame.session_id)
            return
        self._target.on_result(frame, label, confidence)
