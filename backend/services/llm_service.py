"""
LLM Service - Provider transports that turn a chat request into a raw frame stream

One client per provider is built at startup and reused across requests.
Groq goes through its native SDK; every other provider speaks the
OpenAI-compatible chat-completions protocol over plain HTTP.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from typing import Any

import aiohttp
import groq

from models.generation import ChatMessage
from models.provider import ModelDescriptor, ProviderDescriptor, ResolvedModel
from services.errors import AuthError, UpstreamError
from services.provider_registry import ProviderRegistry

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = (429, 503)


# ========== Request Builders ==========


def build_request_options(model: ModelDescriptor) -> dict[str, Any]:
    """Extra request fields selected by model category"""
    if model.category == "compound":
        return {"tools": [{"type": "browser_search"}, {"type": "code_interpreter"}]}
    if model.category == "gpt-oss":
        return {"reasoning_effort": "medium"}
    return {}


def to_wire_messages(messages: list[ChatMessage]) -> list[dict[str, str]]:
    return [{"role": m.role, "content": m.content} for m in messages]


def build_openai_payload(
    model: str,
    messages: list[dict[str, str]],
    max_tokens: int = 16384,
    temperature: float = 0.7,
    stream: bool = True,
) -> dict[str, Any]:
    """Build OpenAI-compatible request payload"""
    return {
        "model": model,
        "messages": messages,
        "stream": stream,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }


# ========== Response Parsers ==========


def parse_sse_line(line_text: str) -> dict[str, Any] | None:
    """Decode one text/event-stream line into a JSON frame.

    Returns None for non-data lines, the [DONE] sentinel and undecodable
    payloads so a single corrupt line never aborts the stream.
    """
    if not line_text.startswith("data:"):
        return None
    data_str = line_text[5:].strip()
    if not data_str or data_str == "[DONE]":
        return None
    try:
        data = json.loads(data_str)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


async def retry_with_backoff(
    operation: Callable[[], Awaitable[Any]],
    max_retries: int = 2,
    backoff: float = 1.0,
    provider: str = "API",
):
    """Retry opening a stream on rate limits, overload and network errors"""
    attempt = 0
    while True:
        try:
            return await operation()
        except UpstreamError as e:
            retryable = e.status is None or e.status in RETRYABLE_STATUSES
            if not retryable or attempt >= max_retries:
                raise
            wait_time = backoff * (2**attempt)
            attempt += 1
            logger.warning(
                "%s stream open failed (%s). Retrying in %.1fs (attempt %d/%d)",
                provider, e.status or "network", wait_time, attempt, max_retries,
            )
            await asyncio.sleep(wait_time)


async def _close_quietly(resource: Any) -> None:
    close = getattr(resource, "close", None)
    if close is None:
        return
    result = close()
    if inspect.isawaitable(result):
        await result


class FrameStream:
    """Raw frames from one open upstream response.

    Owns the connection: aclose() releases it whether or not iteration
    started, and exhaustion releases it too.
    """

    def __init__(self, frames: AsyncIterator[Any], release: Callable[[], Any]):
        self._frames = frames
        self._release = release
        self.closed = False

    def __aiter__(self) -> "FrameStream":
        return self

    async def __anext__(self) -> Any:
        if self.closed:
            raise StopAsyncIteration
        try:
            return await self._frames.__anext__()
        except StopAsyncIteration:
            await self.aclose()
            raise

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self._frames.aclose()
        finally:
            result = self._release()
            if inspect.isawaitable(result):
                await result


# ========== Provider Clients ==========


class ProviderClient:
    """Opens streaming chat completions against one provider"""

    def __init__(self, provider: ProviderDescriptor, registry: ProviderRegistry):
        self.provider = provider
        self.registry = registry

    def _require_api_key(self) -> str:
        api_key = self.registry.credential(self.provider.id)
        if not api_key:
            raise AuthError(self.provider.name)
        return api_key

    async def open(
        self,
        messages: list[ChatMessage],
        model: ModelDescriptor,
        temperature: float,
        max_tokens: int,
    ) -> FrameStream:
        raise NotImplementedError

    async def close(self) -> None:
        pass


class HttpProviderClient(ProviderClient):
    """Generic OpenAI-compatible transport over a shared aiohttp session"""

    def __init__(
        self,
        provider: ProviderDescriptor,
        registry: ProviderRegistry,
        timeout: float = 120,
        max_retries: int = 2,
        retry_backoff: float = 1.0,
    ):
        super().__init__(provider, registry)
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self._session: aiohttp.ClientSession | None = None

    @property
    def url(self) -> str:
        return f"{self.provider.base_url.rstrip('/')}/chat/completions"

    def _get_session(self) -> aiohttp.ClientSession:
        # Created lazily so it binds to the running event loop
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=None, sock_connect=self.timeout, sock_read=self.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def open(
        self,
        messages: list[ChatMessage],
        model: ModelDescriptor,
        temperature: float,
        max_tokens: int,
    ) -> FrameStream:
        api_key = self._require_api_key()
        headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
        payload = build_openai_payload(model.id, to_wire_messages(messages), max_tokens, temperature)
        payload.update(build_request_options(model))

        response = await retry_with_backoff(
            lambda: self._post(payload, headers),
            max_retries=self.max_retries,
            backoff=self.retry_backoff,
            provider=self.provider.name,
        )
        return FrameStream(self._iter_frames(response), response.release)

    async def _post(self, payload: dict[str, Any], headers: dict[str, str]) -> aiohttp.ClientResponse:
        session = self._get_session()
        try:
            response = await session.post(self.url, json=payload, headers=headers)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamError(None, str(e) or type(e).__name__, self.provider.name) from e

        if response.status != 200:
            error_text = await response.text()
            response.release()
            logger.error("%s API error %d: %s", self.provider.name, response.status, error_text[:500])
            raise UpstreamError(response.status, error_text, self.provider.name)
        return response

    async def _iter_frames(self, response: aiohttp.ClientResponse) -> AsyncIterator[dict[str, Any]]:
        async for line in response.content:
            frame = parse_sse_line(line.decode("utf-8", errors="replace").strip())
            if frame is not None:
                yield frame

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


class GroqClient(ProviderClient):
    """SDK-backed transport; frames are the SDK's chunk objects"""

    def __init__(
        self,
        provider: ProviderDescriptor,
        registry: ProviderRegistry,
        client_factory: Callable[[str], Any] | None = None,
        timeout: float = 120,
        max_retries: int = 2,
    ):
        super().__init__(provider, registry)
        self._client_factory = client_factory or (
            lambda api_key: groq.AsyncGroq(api_key=api_key, timeout=timeout, max_retries=max_retries)
        )
        self._client: Any = None
        self._client_key: str | None = None
        # Replaced clients may still serve open streams; closed at shutdown
        self._retired: list[Any] = []

    def _get_client(self, api_key: str) -> Any:
        # Rebuild when the credential is rotated at runtime
        if self._client is None or self._client_key != api_key:
            if self._client is not None:
                self._retired.append(self._client)
            self._client = self._client_factory(api_key)
            self._client_key = api_key
        return self._client

    async def open(
        self,
        messages: list[ChatMessage],
        model: ModelDescriptor,
        temperature: float,
        max_tokens: int,
    ) -> FrameStream:
        client = self._get_client(self._require_api_key())
        stream_options = {
            "messages": to_wire_messages(messages),
            "model": model.id,
            "temperature": temperature,
            "max_completion_tokens": max_tokens,
            "stream": True,
            **build_request_options(model),
        }

        try:
            stream = await client.chat.completions.create(**stream_options)
        except groq.APIStatusError as e:
            logger.error("%s API error %d: %s", self.provider.name, e.status_code, e.message)
            raise UpstreamError(e.status_code, e.message, self.provider.name) from e
        except groq.APIError as e:
            raise UpstreamError(None, str(e), self.provider.name) from e

        return FrameStream(self._iter_frames(stream), lambda: _close_quietly(stream))

    async def _iter_frames(self, stream: Any) -> AsyncIterator[Any]:
        try:
            async for chunk in stream:
                yield chunk
        except groq.APIStatusError as e:
            raise UpstreamError(e.status_code, e.message, self.provider.name) from e
        except groq.APIError as e:
            raise UpstreamError(None, str(e), self.provider.name) from e

    async def close(self) -> None:
        clients = self._retired + ([self._client] if self._client is not None else [])
        for client in clients:
            await _close_quietly(client)
        self._retired = []
        self._client = None
        self._client_key = None


class ProviderClientRegistry:
    """One configured transport client per provider, shared across requests"""

    def __init__(
        self,
        registry: ProviderRegistry,
        timeout: float = 120,
        max_retries: int = 2,
        retry_backoff: float = 1.0,
        groq_factory: Callable[[str], Any] | None = None,
    ):
        self.registry = registry
        self._clients: dict[str, ProviderClient] = {}
        for provider_id, provider in registry.providers.items():
            if provider.transport == "sdk":
                self._clients[provider_id] = GroqClient(
                    provider, registry, client_factory=groq_factory, timeout=timeout, max_retries=max_retries
                )
            else:
                self._clients[provider_id] = HttpProviderClient(
                    provider, registry, timeout=timeout, max_retries=max_retries, retry_backoff=retry_backoff
                )

    @classmethod
    def from_config(
        cls,
        registry: ProviderRegistry,
        config: Mapping[str, Any],
        groq_factory: Callable[[str], Any] | None = None,
    ) -> "ProviderClientRegistry":
        return cls(
            registry,
            timeout=float(config.get("requestTimeout", 120)),
            max_retries=int(config.get("openRetries", 2)),
            retry_backoff=float(config.get("retryBackoff", 1.0)),
            groq_factory=groq_factory,
        )

    def client_for(self, provider_id: str) -> ProviderClient:
        return self._clients[provider_id]

    async def open_stream(
        self,
        messages: list[ChatMessage],
        resolved: ResolvedModel,
        temperature: float = 0.7,
        max_tokens: int = 16384,
    ) -> FrameStream:
        """Connect to the provider and return its raw frame iterator.

        Raises AuthError or UpstreamError before any frame is produced.
        """
        client = self.client_for(resolved.provider.id)
        logger.info(
            "Opening %s stream: model=%s messages=%d",
            resolved.provider.name, resolved.model.id, len(messages),
        )
        return await client.open(messages, resolved.model, temperature, max_tokens)

    async def close(self) -> None:
        for client in self._clients.values():
            await client.close()
