"""Tests for the streaming scheduler and the streaming renderer."""

from __future__ import annotations

import asyncio

import pytest

from chatmark.parser.base import ReasoningNode, RenderOutput
from chatmark.scheduler import StreamingRenderer, StreamingScheduler


class FakeTimer:
    def __init__(self, delay: float, callback) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeLoop:
    """Collects timers instead of sleeping; ``fire`` runs the live ones."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    def fire(self) -> None:
        timers, self.timers = self.timers, []
        for timer in timers:
            if not timer.cancelled:
                timer.callback()


@pytest.fixture
def loop() -> FakeLoop:
    return FakeLoop()


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------

def test_rapid_updates_coalesce_into_one_run(loop: FakeLoop) -> None:
    runs: list[str] = []
    scheduler = StreamingScheduler(runs.append, delay=0.05, call_later=loop.call_later)

    for i in range(1, 11):
        scheduler.schedule("x" * i, is_streaming=True)

    assert len(loop.timers) == 1
    assert loop.timers[0].delay == 0.05
    assert runs == []

    loop.fire()
    assert runs == ["x" * 10]
    assert scheduler.pending_timer is None


def test_new_window_after_timer_fires(loop: FakeLoop) -> None:
    runs: list[str] = []
    scheduler = StreamingScheduler(runs.append, call_later=loop.call_later)

    scheduler.schedule("a", is_streaming=True)
    loop.fire()
    scheduler.schedule("ab", is_streaming=True)
    scheduler.schedule("abc", is_streaming=True)
    loop.fire()

    assert runs == ["a", "abc"]


def test_final_update_cancels_pending_run(loop: FakeLoop) -> None:
    runs: list[str] = []
    scheduler = StreamingScheduler(runs.append, call_later=loop.call_later)

    scheduler.schedule("partial", is_streaming=True)
    pending = scheduler.pending_timer
    scheduler.schedule("partial and final", is_streaming=False)

    assert runs == ["partial and final"]
    assert pending.cancelled
    assert scheduler.pending_timer is None

    loop.fire()
    assert runs == ["partial and final"]


def test_close_cancels_and_ignores_later_updates(loop: FakeLoop) -> None:
    runs: list[str] = []
    with StreamingScheduler(runs.append, call_later=loop.call_later) as scheduler:
        scheduler.schedule("a", is_streaming=True)
        pending = scheduler.pending_timer

    assert pending.cancelled
    scheduler.schedule("b", is_streaming=False)
    loop.fire()
    assert runs == []


def test_scheduler_on_a_real_event_loop() -> None:
    runs: list[str] = []

    async def scenario() -> None:
        scheduler = StreamingScheduler(runs.append, delay=0.01)
        for i in range(1, 6):
            scheduler.schedule("t" * i, is_streaming=True)
        await asyncio.sleep(0.05)
        scheduler.close()

    asyncio.run(scenario())
    assert runs == ["ttttt"]


# ---------------------------------------------------------------------------
# Streaming renderer
# ---------------------------------------------------------------------------

def test_streaming_renderer_renders_latest_snapshot(loop: FakeLoop) -> None:
    outputs: list[RenderOutput] = []
    view = StreamingRenderer(outputs.append, call_later=loop.call_later)

    view.update("<think>wei", is_streaming=True)
    view.update("<think>weighing</think>\nDone.", is_streaming=True)
    loop.fire()

    assert len(outputs) == 1
    assert outputs[0].nodes[0] == ReasoningNode(content="weighing", is_incomplete=False)


def test_streaming_renderer_close_prevents_late_render(loop: FakeLoop) -> None:
    outputs: list[RenderOutput] = []
    view = StreamingRenderer(outputs.append, call_later=loop.call_later)

    view.update("Hello", is_streaming=True)
    view.close()
    loop.fire()

    assert outputs == []
