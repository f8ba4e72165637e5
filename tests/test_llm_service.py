import asyncio

import groq
import httpx
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from fakes import FakeCompletions, FakeGroqFactory, FakeResponse
from models.generation import ChatMessage, GenerationMode
from models.provider import ModelDescriptor, ProviderDescriptor
from services.errors import AuthError, UpstreamError
from services.llm_service import (
    HttpProviderClient,
    ProviderClientRegistry,
    build_request_options,
    parse_sse_line,
)
from services.provider_registry import ProviderRegistry
from services.stream_normalizer import MemorySink, StreamNormalizer, close_frames

MESSAGES = [ChatMessage(role="system", content="rules"), ChatMessage(role="user", content="build it")]

SSE_BODY = [
    'data: {"choices":[{"delta":{"role":"assistant"}}]}\n\n',
    'data: {"choices":[{"delta":{"content":"Hel"}}]}\n\n',
    "data: {not json}\n\n",
    ": keep-alive\n\n",
    'data: {"choices":[{"delta":{"content":"lo"}}]}\n\n',
    "data: [DONE]\n\n",
]


def local_provider(base_url):
    return ProviderDescriptor(
        id="local",
        name="Local",
        base_url=base_url,
        env_key="LOCAL_API_KEY",
        models={
            "chat": ModelDescriptor(id="local-chat", name="Local Chat", context_window=8192, description="test"),
            "reasoner": ModelDescriptor(
                id="local-reasoner", name="Local Reasoner", context_window=8192, description="test", category="gpt-oss"
            ),
        },
    )


def upstream_app(requests, statuses=(200,), body=SSE_BODY):
    """OpenAI-compatible endpoint; answers with `statuses` in turn, then 200"""

    async def handler(request):
        requests.append({"json": await request.json(), "authorization": request.headers.get("Authorization")})
        status = statuses[len(requests) - 1] if len(requests) <= len(statuses) else 200
        if status != 200:
            return web.Response(status=status, text=f"upstream said {status}")

        response = web.StreamResponse(headers={"Content-Type": "text/event-stream"})
        await response.prepare(request)
        for line in body:
            await response.write(line.encode())
        return response

    app = web.Application()
    app.router.add_post("/v1/chat/completions", handler)
    return app


async def with_upstream(app, scenario, environ=None):
    server = TestServer(app)
    await server.start_server()
    registry = ProviderRegistry(
        providers={"local": local_provider(str(server.make_url("/v1")))},
        environ=environ if environ is not None else {"LOCAL_API_KEY": "sk-local"},
    )
    clients = ProviderClientRegistry(registry, timeout=5, max_retries=2, retry_backoff=0)
    try:
        return await scenario(registry, clients)
    finally:
        await clients.close()
        await server.close()


async def collect(frames):
    return [frame async for frame in frames]


# ========== SSE line parsing ==========


def test_parse_sse_line():
    assert parse_sse_line('data: {"a": 1}') == {"a": 1}
    assert parse_sse_line('data:{"a": 1}') == {"a": 1}
    assert parse_sse_line("data: [DONE]") is None
    assert parse_sse_line("data: {broken") is None
    assert parse_sse_line("data: [1, 2]") is None
    assert parse_sse_line(": comment") is None
    assert parse_sse_line("event: message") is None
    assert parse_sse_line("") is None


def test_request_options_by_category():
    compound = ModelDescriptor(id="c", name="c", context_window=1, description="", category="compound")
    gpt_oss = ModelDescriptor(id="g", name="g", context_window=1, description="", category="gpt-oss")
    plain = ModelDescriptor(id="p", name="p", context_window=1, description="")

    assert build_request_options(compound) == {
        "tools": [{"type": "browser_search"}, {"type": "code_interpreter"}]
    }
    assert build_request_options(gpt_oss) == {"reasoning_effort": "medium"}
    assert build_request_options(plain) == {}


# ========== Generic HTTP transport ==========


def test_http_stream_filters_sentinel_and_bad_lines():
    requests = []

    async def scenario(registry, clients):
        resolved = registry.resolve("local/chat")
        frames = await clients.open_stream(MESSAGES, resolved, temperature=0.5, max_tokens=1024)
        return await collect(frames)

    frames = asyncio.run(with_upstream(upstream_app(requests), scenario))

    contents = [f["choices"][0]["delta"].get("content") for f in frames]
    assert contents == [None, "Hel", "lo"]
    assert requests[0]["authorization"] == "Bearer sk-local"
    assert requests[0]["json"] == {
        "model": "local-chat",
        "messages": [{"role": "system", "content": "rules"}, {"role": "user", "content": "build it"}],
        "stream": True,
        "temperature": 0.5,
        "max_tokens": 1024,
    }


def test_http_request_carries_category_options():
    requests = []

    async def scenario(registry, clients):
        frames = await clients.open_stream(MESSAGES, registry.resolve("local/reasoner"))
        await collect(frames)

    asyncio.run(with_upstream(upstream_app(requests), scenario))

    assert requests[0]["json"]["reasoning_effort"] == "medium"


def test_http_missing_credential_raises_auth_error():
    requests = []

    async def scenario(registry, clients):
        with pytest.raises(AuthError):
            await clients.open_stream(MESSAGES, registry.resolve("local/chat"))

    asyncio.run(with_upstream(upstream_app(requests), scenario, environ={}))

    assert requests == []


def test_http_error_status_raises_before_streaming():
    requests = []

    async def scenario(registry, clients):
        with pytest.raises(UpstreamError) as excinfo:
            await clients.open_stream(MESSAGES, registry.resolve("local/chat"))
        return excinfo.value

    error = asyncio.run(with_upstream(upstream_app(requests, statuses=(401,)), scenario))

    assert error.status == 401
    assert error.body == "upstream said 401"
    assert len(requests) == 1


def test_http_retries_rate_limit_when_opening():
    requests = []

    async def scenario(registry, clients):
        frames = await clients.open_stream(MESSAGES, registry.resolve("local/chat"))
        return await collect(frames)

    frames = asyncio.run(with_upstream(upstream_app(requests, statuses=(429, 503)), scenario))

    assert len(requests) == 3
    assert len(frames) == 3


def test_http_gives_up_after_max_retries():
    requests = []

    async def scenario(registry, clients):
        with pytest.raises(UpstreamError) as excinfo:
            await clients.open_stream(MESSAGES, registry.resolve("local/chat"))
        return excinfo.value

    error = asyncio.run(with_upstream(upstream_app(requests, statuses=(503, 503, 503)), scenario))

    assert error.status == 503
    assert len(requests) == 3


# ========== SDK transport ==========


def groq_clients(completions, environ):
    registry = ProviderRegistry(environ=environ)
    factory = FakeGroqFactory(completions)
    return registry, ProviderClientRegistry(registry, groq_factory=factory), factory


def test_sdk_stream_options_for_compound_model():
    completions = FakeCompletions(deltas=["a", "b"])
    registry, clients, factory = groq_clients(completions, {"GROQ_API_KEY": "gsk-1"})

    async def scenario():
        frames = await clients.open_stream(MESSAGES, registry.resolve("groq/compound-beta"), 0.7, 16384)
        return [chunk.choices[0].delta.content async for chunk in frames]

    assert asyncio.run(scenario()) == ["a", "b"]
    call = completions.calls[0]
    assert call["model"] == "groq/compound"
    assert call["stream"] is True
    assert call["max_completion_tokens"] == 16384
    assert call["tools"] == [{"type": "browser_search"}, {"type": "code_interpreter"}]
    assert "reasoning_effort" not in call
    assert completions.streams[0].closed
    assert factory.api_keys == ["gsk-1"]


def test_sdk_reasoning_hint_for_gpt_oss():
    completions = FakeCompletions(deltas=["a"])
    registry, clients, _ = groq_clients(completions, {"GROQ_API_KEY": "gsk-1"})

    async def scenario():
        frames = await clients.open_stream(MESSAGES, registry.resolve("groq/gpt-oss-20b"))
        await collect(frames)

    asyncio.run(scenario())

    assert completions.calls[0]["reasoning_effort"] == "medium"
    assert "tools" not in completions.calls[0]


def test_sdk_requires_credential():
    registry, clients, factory = groq_clients(FakeCompletions(), {})

    with pytest.raises(AuthError) as excinfo:
        asyncio.run(clients.open_stream(MESSAGES, registry.resolve("groq/llama-3.1-8b")))

    assert excinfo.value.message == "Groq API key not configured"
    assert factory.api_keys == []


def test_sdk_status_error_maps_to_upstream_error():
    response = httpx.Response(429, request=httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions"))
    error = groq.RateLimitError("Rate limit reached", response=response, body=None)
    registry, clients, _ = groq_clients(FakeCompletions(error=error), {"GROQ_API_KEY": "gsk-1"})

    with pytest.raises(UpstreamError) as excinfo:
        asyncio.run(clients.open_stream(MESSAGES, registry.resolve("groq/llama-3.1-8b")))

    assert excinfo.value.status == 429
    assert "Rate limit reached" in excinfo.value.message


def test_sdk_client_rebuilt_when_credential_rotates():
    environ = {"GROQ_API_KEY": "gsk-old"}
    registry, clients, factory = groq_clients(FakeCompletions(deltas=["a"]), environ)
    resolved = registry.resolve("groq/llama-3.1-8b")

    async def scenario():
        await collect(await clients.open_stream(MESSAGES, resolved))
        await collect(await clients.open_stream(MESSAGES, resolved))
        environ["GROQ_API_KEY"] = "gsk-new"
        await collect(await clients.open_stream(MESSAGES, resolved))

    asyncio.run(scenario())

    assert factory.api_keys == ["gsk-old", "gsk-new"]


# ========== Connection ownership ==========


def http_client_with_response(response):
    registry = ProviderRegistry(
        providers={"local": local_provider("http://upstream.invalid/v1")},
        environ={"LOCAL_API_KEY": "sk-local"},
    )
    client = HttpProviderClient(registry.providers["local"], registry)

    async def post(payload, headers):
        return response

    client._post = post
    return registry, client


def test_http_response_released_when_normalizer_cancelled_before_first_frame():
    response = FakeResponse(SSE_BODY)
    registry, client = http_client_with_response(response)
    model = registry.resolve("local/chat").model

    async def scenario():
        frames = await client.open(MESSAGES, model, 0.7, 1024)
        task = asyncio.create_task(StreamNormalizer(GenerationMode.FRONTEND).run(frames, MemorySink()))
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await close_frames(frames)
        return frames

    frames = asyncio.run(scenario())

    assert response.released
    assert frames.closed


def test_http_response_released_on_exhaustion():
    response = FakeResponse(SSE_BODY)
    registry, client = http_client_with_response(response)

    async def scenario():
        frames = await client.open(MESSAGES, registry.resolve("local/chat").model, 0.7, 1024)
        return await collect(frames)

    assert len(asyncio.run(scenario())) == 3
    assert response.released


def test_sdk_stream_closed_without_iteration():
    completions = FakeCompletions(deltas=["a"])
    registry, clients, _ = groq_clients(completions, {"GROQ_API_KEY": "gsk-1"})

    async def scenario():
        frames = await clients.open_stream(MESSAGES, registry.resolve("groq/llama-3.1-8b"))
        await frames.aclose()
        await frames.aclose()

    asyncio.run(scenario())

    assert completions.streams[0].closed


def test_sdk_replaced_clients_closed_on_shutdown():
    environ = {"GROQ_API_KEY": "gsk-old"}
    registry, clients, factory = groq_clients(FakeCompletions(deltas=["a"]), environ)
    resolved = registry.resolve("groq/llama-3.1-8b")

    async def scenario():
        await collect(await clients.open_stream(MESSAGES, resolved))
        environ["GROQ_API_KEY"] = "gsk-new"
        await collect(await clients.open_stream(MESSAGES, resolved))
        assert not any(c.closed for c in factory.clients)
        await clients.close()

    asyncio.run(scenario())

    assert [c.api_key for c in factory.clients] == ["gsk-old", "gsk-new"]
    assert all(c.closed for c in factory.clients)
