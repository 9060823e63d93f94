"""Tests for published state and the event-loop hand-off."""

from __future__ import annotations

import asyncio
import threading

from conftest import make_frame

from liveclass.pipeline.publishing import (
    UNCLASSIFIED_LABEL,
    WAITING_LABEL,
    LoopPublisher,
    PublishedState,
    StateStore,
)


class TestPublishedState:
    def test_initial_placeholder(self) -> None:
        state = StateStore().current
        assert state.frame is None
        assert state.label == WAITING_LABEL
        assert state.display_text == "Waiting for image..."

    def test_display_text_includes_percentage(self) -> None:
        state = PublishedState(label="shrimp", confidence=0.92)
        assert state.display_text == "shrimp - 92.00%"

    def test_placeholder_has_no_percentage(self) -> None:
        state = PublishedState(label=UNCLASSIFIED_LABEL)
        assert state.display_text == UNCLASSIFIED_LABEL


class TestStateStore:
    def test_result_overwrites_state(self) -> None:
        store = StateStore()
        first = make_frame(sequence=1)
        second = make_frame(sequence=2)

        store.on_result(first, "shrimp", 0.92)
        store.on_result(second, UNCLASSIFIED_LABEL, None)

        assert store.current.frame is second
        assert store.current.label == UNCLASSIFIED_LABEL
        assert store.current.confidence is None
        assert store.current.publications == 2
        assert store.current.updated_at is not None


class TestLoopPublisher:
    async def test_result_is_applied_on_loop(self) -> None:
        store = StateStore()
        publisher = LoopPublisher(asyncio.get_running_loop(), store)
        frame = make_frame()

        worker = threading.Thread(target=publisher.on_result, args=(frame, "shrimp", 0.92))
        worker.start()
        worker.join()
        # Posted, not yet run: the loop has not had a turn.
        assert store.current.label == WAITING_LABEL

        await asyncio.sleep(0.01)
        assert store.current.label == "shrimp"
        assert store.current.frame is frame

    def test_closed_loop_drops_result(self) -> None:
        loop = asyncio.new_event_loop()
        loop.close()
        store = StateStore()

        LoopPublisher(loop, store).on_result(make_frame(), "shrimp", 0.92)

        assert store.current.label == WAITING_LABEL

    async def test_session_ended_after_post_is_dropped(self) -> None:
        store = StateStore()
        active = threading.Event()
        active.set()
        publisher = LoopPublisher(
            asyncio.get_running_loop(),
            store,
            is_session_active=lambda _session_id: active.is_set(),
        )

        worker = threading.Thread(target=publisher.on_result, args=(make_frame(session_id=1), "shrimp", 0.92))
        worker.start()
        worker.join()
        # The session ends after the post, before the loop applies it.
        active.clear()
        await asyncio.sleep(0.01)

        assert store.current.label == WAITING_LABEL
        assert store.current.frame is None
        assert store.current.publications == 0

    async def test_switch_between_post_and_apply_keeps_new_session(self) -> None:
        store = StateStore()
        current = {"session": 1}
        publisher = LoopPublisher(
            asyncio.get_running_loop(),
            store,
            is_session_active=lambda session_id: session_id == current["session"],
        )
        stale = make_frame(session_id=1, sequence=1)
        fresh = make_frame(session_id=2, sequence=1)

        publisher.on_result(stale, "shrimp", 0.92)
        current["session"] = 2
        publisher.on_result(fresh, "fish", 0.55)
        await asyncio.sleep(0.01)

        assert store.current.frame is fresh
        assert store.current.label == "fish"
        assert store.current.publications == 1
