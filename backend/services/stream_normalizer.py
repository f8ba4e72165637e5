"""
Stream Normalizer - Turn raw provider frames into the client-facing event sequence

Every stream ends with exactly one terminal event: done (full content) or
error (message). Deltas in between are forwarded one per non-empty frame in
generation order.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import AsyncIterable, AsyncIterator, Callable
from typing import Any, Protocol

from models.generation import GenerationMode, StreamEvent
from services.errors import StreamClosedError, StreamLimitExceeded, UpstreamError

logger = logging.getLogger(__name__)


class StreamSink(Protocol):
    """Outbound side of a generation stream"""

    async def emit(self, event: StreamEvent) -> None: ...

    async def close(self) -> None: ...


class MemorySink:
    """Collects events in a list"""

    def __init__(self):
        self.events: list[StreamEvent] = []
        self.closed = False

    async def emit(self, event: StreamEvent) -> None:
        if self.closed:
            raise StreamClosedError("stream already closed")
        self.events.append(event)

    async def close(self) -> None:
        self.closed = True


class QueueSink:
    """Hands events to the SSE response generator through an asyncio queue"""

    _CLOSED = object()

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def emit(self, event: StreamEvent) -> None:
        if self.closed:
            raise StreamClosedError("stream already closed")
        await self._queue.put(event)

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            await self._queue.put(self._CLOSED)

    async def drain(self) -> AsyncIterator[StreamEvent]:
        """Yield queued events until the sink is closed"""
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            yield item


# ========== Delta Extraction ==========


def extract_delta(frame: Any) -> str | None:
    """First choice's delta text from a dict (HTTP) or attribute (SDK) frame.

    A dict frame carrying an error payload raises UpstreamError.
    """
    if isinstance(frame, dict):
        error = frame.get("error")
        if error:
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise UpstreamError(None, message, "Provider")
        choices = frame.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return None
        delta = choices[0].get("delta")
        content = delta.get("content") if isinstance(delta, dict) else None
    else:
        choices = getattr(frame, "choices", None)
        if not choices:
            return None
        delta = getattr(choices[0], "delta", None)
        content = getattr(delta, "content", None)

    return content if isinstance(content, str) else None


def describe_error(exc: BaseException) -> str:
    message = str(exc).strip()
    return message or type(exc).__name__


async def close_frames(frames: Any) -> None:
    """Close a frame iterator if it supports aclose()"""
    aclose = getattr(frames, "aclose", None)
    if aclose is None:
        return
    result = aclose()
    if inspect.isawaitable(result):
        await result


class StreamNormalizer:
    """Relay one provider stream onto a sink as canonical StreamEvents"""

    def __init__(
        self,
        mode: GenerationMode,
        max_duration: float | None = None,
        max_chars: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.mode = mode
        self.max_duration = max_duration
        self.max_chars = max_chars
        self._clock = clock

    def _remaining(self, started: float) -> float | None:
        if not self.max_duration:
            return None
        remaining = self.max_duration - (self._clock() - started)
        if remaining <= 0:
            raise StreamLimitExceeded(f"Generation exceeded {self.max_duration:g} seconds")
        return remaining

    async def _next_frame(self, iterator: AsyncIterator[Any], started: float) -> Any:
        timeout = self._remaining(started)
        if timeout is None:
            return await iterator.__anext__()
        try:
            return await asyncio.wait_for(iterator.__anext__(), timeout)
        except asyncio.TimeoutError:
            raise StreamLimitExceeded(f"Generation exceeded {self.max_duration:g} seconds") from None

    async def run(self, frames: AsyncIterable[Any], sink: StreamSink) -> str | None:
        """Consume frames until exhaustion or failure; returns the full content on success"""
        parts: list[str] = []
        total = 0
        started = self._clock()
        iterator = frames.__aiter__()

        try:
            try:
                while True:
                    try:
                        frame = await self._next_frame(iterator, started)
                    except StopAsyncIteration:
                        break

                    content = extract_delta(frame)
                    if not content:
                        continue

                    total += len(content)
                    if self.max_chars and total > self.max_chars:
                        raise StreamLimitExceeded(f"Generation exceeded {self.max_chars} characters")

                    parts.append(content)
                    await sink.emit(StreamEvent.delta(content, self.mode))
            except asyncio.CancelledError:
                logger.info("Stream cancelled after %d chars", total)
                raise
            except Exception as e:
                logger.error("Stream error after %d chars: %s", total, describe_error(e))
                await sink.emit(StreamEvent.failure(describe_error(e)))
                return None

            full_content = "".join(parts)
            await sink.emit(StreamEvent.finished(full_content, self.mode))
            logger.info("Stream done: mode=%s chars=%d", self.mode.value, len(full_content))
            return full_content
        finally:
            await sink.close()
            await close_frames(iterator)
