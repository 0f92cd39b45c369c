"""Debounced re-rendering while a message is still streaming."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Protocol

from chatmark.parser.base import RenderOutput, SourceInfo
from chatmark.pipeline import RenderPipeline

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 0.05


class TimerHandle(Protocol):
    def cancel(self) -> None:  # pragma: no cover - structural protocol
        ...


CallLater = Callable[[float, Callable[[], None]], TimerHandle]


class StreamingScheduler:
    """Decide when to run *run* for a growing content string.

    Streaming updates only record the latest content and arm a single timer;
    when it fires, *run* sees whatever content arrived last. A non-streaming
    update cancels the timer and runs at once.

    *call_later* defaults to the running asyncio loop's ``call_later``.
    """

    def __init__(
        self,
        run: Callable[[str], Any],
        *,
        delay: float = DEFAULT_DELAY,
        call_later: CallLater | None = None,
    ) -> None:
        self._run = run
        self.delay = delay
        self._call_later = call_later
        self.pending_timer: TimerHandle | None = None
        self.latest_content: str | None = None
        self.closed = False

    def schedule(self, content: str, is_streaming: bool) -> None:
        if self.closed:
            logger.debug("Ignoring update for a closed scheduler")
            return

        self.latest_content = content
        if not is_streaming:
            self.cancel()
            self._run(content)
            return

        if self.pending_timer is None:
            call_later = self._call_later or asyncio.get_running_loop().call_later
            self.pending_timer = call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self.pending_timer is not None:
            self.pending_timer.cancel()
            self.pending_timer = None

    def close(self) -> None:
        """Cancel any pending run; later updates are ignored."""
        self.cancel()
        self.closed = True

    def _fire(self) -> None:
        self.pending_timer = None
        if self.closed or self.latest_content is None:
            return
        self._run(self.latest_content)

    def __enter__(self) -> StreamingScheduler:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class StreamingRenderer:
    """One message view: pipeline output delivered through *on_render*."""

    def __init__(
        self,
        on_render: Callable[[RenderOutput], Any],
        *,
        pipeline: RenderPipeline | None = None,
        sources: list[SourceInfo] | None = None,
        call_later: CallLater | None = None,
    ) -> None:
        self.pipeline = pipeline or RenderPipeline()
        self.sources = sources or []
        self._on_render = on_render
        self.scheduler = StreamingScheduler(
            self._render,
            delay=self.pipeline.options.debounce_delay,
            call_later=call_later,
        )

    def update(self, content: str, is_streaming: bool) -> None:
        self.scheduler.schedule(content, is_streaming)

    def close(self) -> None:
        self.scheduler.close()

    def _render(self, content: str) -> None:
        self._on_render(self.pipeline.render(content, self.sources))
