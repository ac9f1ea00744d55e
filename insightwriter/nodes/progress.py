"""
ProgressChannel: one-way stream of generation progress events.

The producer (a pipeline run) emits events into an asyncio.Queue; the
consumer iterates them, or iterates ready-made Server-Sent-Events frames.
The channel keeps progress non-decreasing and closes after the first
terminal event (completed or error).
"""
import asyncio
import json
from typing import Any, AsyncIterator, Optional

import structlog

from .schemas import GenerationProgress, ProgressStep

logger = structlog.get_logger()


class ChannelClosedError(RuntimeError):
    """Emit was called after the terminal event."""


def encode_sse(event: GenerationProgress) -> str:
    """Serialize one event as an SSE frame: `data: <json>\\n\\n`."""
    return f"data: {json.dumps(event.to_wire(), ensure_ascii=False)}\n\n"


class ProgressChannel:
    """
    Unbounded single-producer, single-consumer event channel.

    Progress values lower than the last emitted one are raised to it, so an
    error reported mid-run never moves the bar backwards.
    """

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[GenerationProgress]" = asyncio.Queue()
        self._last_progress = 0
        self._closed = False
        self._history: list = []

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def last_progress(self) -> int:
        return self._last_progress

    @property
    def history(self) -> list:
        """Every event emitted so far, in order."""
        return list(self._history)

    def emit(
        self,
        step: ProgressStep,
        message: str,
        progress: int,
        data: Optional[Any] = None,
    ) -> GenerationProgress:
        if self._closed:
            raise ChannelClosedError(f"progress channel already closed, dropped step={step}")

        progress = max(self._last_progress, min(int(progress), 100))
        event = GenerationProgress(step=step, message=message, progress=progress, data=data)

        self._last_progress = progress
        self._history.append(event)
        if event.is_terminal:
            self._closed = True
        self._queue.put_nowait(event)

        logger.debug("progress_emitted", step=step, progress=progress, message=message)
        return event

    def complete(self, message: str, data: Optional[Any] = None) -> GenerationProgress:
        return self.emit("completed", message, 100, data)

    def fail(self, message: str) -> GenerationProgress:
        return self.emit("error", message, self._last_progress)

    async def events(self) -> AsyncIterator[GenerationProgress]:
        """Yield events until (and including) the terminal one."""
        while True:
            event = await self._queue.get()
            yield event
            if event.is_terminal:
                return

    async def frames(self) -> AsyncIterator[str]:
        """Yield SSE-encoded frames until the terminal one."""
        async for event in self.events():
            yield encode_sse(event)
