"""Generation API endpoints"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse
from starlette.background import BackgroundTask

from models.generation import GenerationRequest, ParseFilesRequest, ParseFilesResponse
from routers.deps import get_clients, get_config, get_registry
from services.errors import InvalidRequestError, UnknownModelError
from services.file_parser import parse_multi_file_response
from services.llm_service import ProviderClientRegistry
from services.prompt_composer import compose
from services.provider_registry import ProviderRegistry
from services.stream_normalizer import QueueSink, StreamNormalizer, close_frames

logger = logging.getLogger(__name__)

router = APIRouter()


async def relay_events(normalizer: StreamNormalizer, frames: AsyncIterable[Any]) -> AsyncIterator[dict]:
    """Run the normalizer in the background and forward its events as SSE data frames"""
    sink = QueueSink()
    task = asyncio.create_task(normalizer.run(frames, sink))
    try:
        async for event in sink.drain():
            yield {"data": event.to_json()}
    finally:
        # Client went away before the terminal event
        if not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        # A task cancelled before its first step never closes the upstream
        await close_frames(frames)


@router.post("/ask-ai")
async def ask_ai(
    request: GenerationRequest,
    config: dict = Depends(get_config),
    registry: ProviderRegistry = Depends(get_registry),
    clients: ProviderClientRegistry = Depends(get_clients),
):
    """Stream a generation as text/event-stream (SSE)"""
    model_key = request.modelKey or config.get("defaultModelKey")
    resolved = registry.resolve(model_key)
    if resolved is None:
        raise UnknownModelError(model_key or "")

    messages = compose(request)
    logger.info("Generation request: model=%s mode=%s messages=%d", resolved.key, request.mode.value, len(messages))

    # Connect before committing headers so setup failures stay synchronous
    frames = await clients.open_stream(
        messages,
        resolved,
        temperature=float(config.get("temperature", 0.7)),
        max_tokens=int(config.get("maxTokens", 16384)),
    )

    normalizer = StreamNormalizer(
        request.mode,
        max_duration=config.get("maxStreamSeconds"),
        max_chars=config.get("maxStreamChars"),
    )
    return EventSourceResponse(
        relay_events(normalizer, frames),
        sep="\n",
        headers={"Cache-Control": "no-cache"},
        background=BackgroundTask(close_frames, frames),
    )


@router.post("/parse-files", response_model=ParseFilesResponse)
async def parse_files(request: ParseFilesRequest) -> ParseFilesResponse:
    """Split finished content into files without running a generation"""
    if not request.content:
        raise InvalidRequestError("Missing required field: content")
    return ParseFilesResponse(files=parse_multi_file_response(request.content))
