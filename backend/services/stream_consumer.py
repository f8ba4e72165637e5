"""
Client Stream Consumer - Reassemble a generation stream into editor state

Python counterpart of the browser editor: decodes the text/event-stream body,
keeps a throttled live preview of the partial document and hands the final
result to the editor state.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import AsyncIterable, Callable
from typing import Any

import aiohttp
from pydantic import ValidationError

from models.generation import GeneratedFile, GenerationMode, GenerationRequest, StreamEvent
from models.provider import ModelInfo
from services.file_parser import extract_html_document, extract_partial_document, parse_multi_file_response

logger = logging.getLogger(__name__)

LIVE_PREVIEW_MODES = (GenerationMode.FRONTEND, GenerationMode.DESIGN_CLONE)


def decode_event_line(line: str | bytes) -> StreamEvent | None:
    """Decode a `data: ` line into a StreamEvent; other lines and bad JSON give None"""
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    line = line.strip()
    if not line.startswith("data:"):
        return None
    try:
        return StreamEvent.model_validate(json.loads(line[5:].strip()))
    except (json.JSONDecodeError, ValidationError):
        return None


class EditorState:
    """Active artifact held by the editor: one HTML document or a file collection"""

    def __init__(self, html: str = ""):
        self.html = html
        self.initial_html = html  # Placeholder document, never sent back
        self.files: list[GeneratedFile] = []
        self.active = "html"  # "html" or "files"
        self.selected_file: str | None = None
        self.view = "editor"  # "editor" or "preview"
        self.previous_prompt: str | None = None

    def next_request(
        self,
        prompt: str,
        mode: GenerationMode = GenerationMode.FRONTEND,
        model_key: str | None = None,
        design_url: str | None = None,
    ) -> GenerationRequest:
        """Follow-up request carrying the last prompt and the current document"""
        html = self.html if self.html.strip() and self.html != self.initial_html else None
        return GenerationRequest(
            prompt=prompt,
            html=html,
            previousPrompt=self.previous_prompt or None,
            mode=mode,
            modelKey=model_key,
            designUrl=design_url,
        )

    def replace_html(self, html: str) -> None:
        self.html = html
        self.files = []
        self.selected_file = None
        self.active = "html"

    def replace_files(self, files: list[GeneratedFile]) -> None:
        """Install a new file set; a repeated filename keeps its first slot and its last content"""
        by_name: dict[str, GeneratedFile] = {}
        for f in files:
            by_name[f.filename] = f
        self.files = list(by_name.values())
        self.active = "files"

        # First HTML file drives the preview
        html_file = next((f for f in self.files if f.filename.endswith(".html")), None)
        if html_file:
            self.html = html_file.content
            self.selected_file = html_file.filename
        else:
            self.selected_file = self.files[0].filename if self.files else None


class StreamConsumer:
    """Apply one generation stream to an EditorState"""

    def __init__(
        self,
        state: EditorState,
        mode: GenerationMode,
        on_preview: Callable[[str], None] | None = None,
        on_notify: Callable[[str, str], None] | None = None,
        refresh_interval: float = 0.3,
        clock: Callable[[], float] = time.monotonic,
        prompt: str | None = None,
    ):
        self.state = state
        self.mode = mode
        self.prompt = prompt
        self.on_preview = on_preview
        self.on_notify = on_notify
        self.refresh_interval = refresh_interval
        self._clock = clock
        self._buffer: list[str] = []
        self._last_render: float | None = None
        self.working = True
        self.completed = False
        self.failed = False
        self.error: str | None = None

    @property
    def buffer(self) -> str:
        return "".join(self._buffer)

    @property
    def finished(self) -> bool:
        return self.completed or self.failed

    def _notify(self, kind: str, message: str) -> None:
        if self.on_notify:
            self.on_notify(kind, message)
        else:
            logger.info("[%s] %s", kind, message)

    # ========== Event Handlers ==========

    def handle(self, event: StreamEvent) -> None:
        if self.finished:
            return
        if event.error is not None:
            self._on_error(event.error)
        elif event.done:
            self._on_done(event.fullContent or "")
        elif event.content:
            self._on_content(event.content)

    def _on_content(self, content: str) -> None:
        self._buffer.append(content)
        if self.mode not in LIVE_PREVIEW_MODES or self.on_preview is None:
            return

        partial = extract_partial_document(self.buffer)
        if partial is None:
            return
        now = self._clock()
        if self._last_render is None or now - self._last_render >= self.refresh_interval:
            self._last_render = now
            self.on_preview(partial)

    def _on_done(self, full_content: str) -> None:
        self.completed = True
        self.working = False

        if self.mode == GenerationMode.FULLSTACK:
            files = parse_multi_file_response(full_content)
            if files:
                self.state.replace_files(files)
            else:
                self._replace_document(full_content)
        else:
            self._replace_document(full_content)

        if self.prompt is not None:
            self.state.previous_prompt = self.prompt
        self._notify("success", "AI responded successfully")
        self.state.view = "preview"

    def _replace_document(self, full_content: str) -> None:
        document = extract_html_document(full_content)
        if document:
            self.state.replace_html(document)

    def _on_error(self, message: str) -> None:
        self.failed = True
        self.working = False
        self.error = message
        self._notify("error", message)

    # ========== Input ==========

    def feed_line(self, line: str | bytes) -> StreamEvent | None:
        event = decode_event_line(line)
        if event is not None:
            self.handle(event)
        return event

    async def consume(self, lines: AsyncIterable[str | bytes]) -> None:
        """Read lines until the connection closes"""
        try:
            async for line in lines:
                self.feed_line(line)
        finally:
            self.working = False


class StudioClient:
    """HTTP client for the studio API"""

    def __init__(self, base_url: str, session: aiohttp.ClientSession | None = None):
        self.base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "StudioClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def list_models(self) -> list[ModelInfo]:
        async with self._get_session().get(f"{self.base_url}/api/models") as response:
            data = await response.json()
        return [ModelInfo.model_validate(m) for m in data.get("models", [])]

    async def parse_files(self, content: str) -> list[GeneratedFile]:
        async with self._get_session().post(f"{self.base_url}/api/parse-files", json={"content": content}) as response:
            data = await response.json()
        return [GeneratedFile.model_validate(f) for f in data.get("files", [])]

    async def generate(
        self,
        request: GenerationRequest,
        state: EditorState,
        **consumer_options: Any,
    ) -> StreamConsumer:
        """Run one generation against the server and apply it to `state`"""
        consumer = StreamConsumer(state, request.mode, prompt=request.prompt, **consumer_options)
        body = request.model_dump(mode="json", exclude_none=True)

        async with self._get_session().post(f"{self.base_url}/api/ask-ai", json=body) as response:
            if response.status != 200:
                try:
                    data = await response.json(content_type=None)
                    message = data.get("message") or f"Request failed ({response.status})"
                except (json.JSONDecodeError, aiohttp.ContentTypeError):
                    message = f"Request failed ({response.status})"
                consumer.handle(StreamEvent.failure(message))
                return consumer

            await consumer.consume(response.content)
        return consumer
