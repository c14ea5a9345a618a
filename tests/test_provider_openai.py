"""Tests for the OpenAI-compatible client (mocked HTTP)."""

from __future__ import annotations

from unittest.mock import AsyncMock, call, patch

import httpx
import pytest
from conftest import FakeUpstream, make_instance, sse_body

from app.provider.exceptions import ProviderRequestError, ProviderStreamError
from app.provider.openai import OpenAIClient
from app.provider.types import ChatRequest, Message

REQUEST = ChatRequest(
    messages=[
        Message(role="system", content="Be brief."),
        Message(role="user", content="Hello"),
    ]
)


def _completion(finish_reason: str | None = "stop", content: str = "Hi there") -> dict:
    return {
        "id": "chatcmpl-upstream",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "gpt-test-0613",
        "system_fingerprint": "fp_123",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content, "reasoning_content": "thinking"},
                "finish_reason": finish_reason,
            }
        ],
        "usage": {"prompt_tokens": 12, "completion_tokens": 3, "total_tokens": 15},
    }


def _ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json=_completion())


@pytest.fixture
def upstream() -> FakeUpstream:
    upstream = FakeUpstream()
    upstream.default = _ok
    return upstream


def _client(upstream: FakeUpstream, **overrides) -> OpenAIClient:
    return OpenAIClient(make_instance(**overrides), transport=upstream.transport)


class TestOpenAIChat:
    @pytest.mark.asyncio
    async def test_success(self, upstream):
        client = _client(upstream, keys=["sk-test"], models=["gpt-test"])
        response = await client.chat(REQUEST)

        [request] = upstream.requests
        assert request.method == "POST"
        assert request.url.path == "/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert upstream.bodies()[0] == {
            "model": "gpt-test",
            "messages": [
                {"role": "system", "content": "Be brief."},
                {"role": "user", "content": "Hello"},
            ],
        }

        assert response.provider == "openai"
        assert response.model == "gpt-test-0613"
        assert response.system_fingerprint == "fp_123"
        assert response.choices[0].message.content == "Hi there"
        assert response.choices[0].message.reasoning_content == "thinking"
        assert response.choices[0].finish_reason == "stop"
        assert response.usage.total_tokens == 15

    @pytest.mark.asyncio
    async def test_fresh_response_id(self, upstream):
        client = _client(upstream)
        first = await client.chat(REQUEST)
        second = await client.chat(REQUEST)

        for response in (first, second):
            assert response.id.startswith("chatcmpl-")
            assert len(response.id) == len("chatcmpl-") + 32
            assert response.id != "chatcmpl-upstream"
        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_usage_only_with_finish_reason(self, upstream):
        upstream.default = lambda request: httpx.Response(200, json=_completion(finish_reason=None))
        response = await _client(upstream).chat(REQUEST)
        assert response.usage.total_tokens == 0
        assert response.choices[0].finish_reason == ""

    @pytest.mark.asyncio
    async def test_sampling_parameters(self, upstream):
        client = _client(upstream, max_tokens=256, temperature=0.3, top_p=0.9)
        await client.chat(ChatRequest(messages=REQUEST.messages, max_tokens=64))

        body = upstream.bodies()[0]
        assert body["max_tokens"] == 64  # request overrides instance
        assert body["temperature"] == 0.3
        assert body["top_p"] == 0.9

    @pytest.mark.asyncio
    async def test_explicit_zero_temperature_overrides_instance(self, upstream):
        client = _client(upstream, temperature=0.7)
        await client.chat(ChatRequest(messages=REQUEST.messages, temperature=0.0))
        await client.chat(REQUEST)

        first, second = upstream.bodies()
        assert first["temperature"] == 0.0
        assert second["temperature"] == 0.7

    @pytest.mark.asyncio
    async def test_unset_temperature_omitted(self, upstream):
        await _client(upstream).chat(REQUEST)
        assert "temperature" not in upstream.bodies()[0]

    @pytest.mark.asyncio
    async def test_key_rotation(self, upstream):
        client = _client(upstream, keys=["k1", "k2", "k3"])
        for _ in range(6):
            await client.chat(REQUEST)

        keys = [r.headers["Authorization"].removeprefix("Bearer ") for r in upstream.requests]
        assert keys == ["k1", "k2", "k3", "k1", "k2", "k3"]

    @pytest.mark.asyncio
    async def test_model_rotation_and_override(self, upstream):
        client = _client(upstream, models=["m1", "m2"])
        await client.chat(REQUEST)
        await client.chat(ChatRequest(messages=REQUEST.messages, model="pinned"))
        await client.chat(REQUEST)

        assert [b["model"] for b in upstream.bodies()] == ["m1", "pinned", "m2"]

    @pytest.mark.asyncio
    async def test_no_choices(self, upstream):
        upstream.default = lambda request: httpx.Response(200, json={"choices": []})
        with pytest.raises(ProviderRequestError, match="no choices"):
            await _client(upstream).chat(REQUEST)


class TestOpenAIRetries:
    @pytest.mark.asyncio
    async def test_exhausts_retries_with_linear_backoff(self, upstream):
        upstream.default = lambda request: httpx.Response(500, json={"error": {"message": "boom"}})
        client = _client(upstream, max_retries=3)

        with patch("app.provider.base.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(ProviderRequestError) as exc_info:
                await client.chat(REQUEST)

        assert len(upstream.requests) == 4
        assert mock_sleep.await_args_list == [call(1.0), call(2.0), call(3.0)]
        assert exc_info.value.attempts == 4
        assert exc_info.value.provider == "openai"
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, upstream):
        upstream.queue(
            httpx.ConnectError("connection refused"),
            httpx.Response(503, text="busy"),
        )
        client = _client(upstream, max_retries=3)

        with patch("app.provider.base.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            response = await client.chat(REQUEST)

        assert response.choices[0].message.content == "Hi there"
        assert len(upstream.requests) == 3
        assert mock_sleep.await_args_list == [call(1.0), call(2.0)]

    @pytest.mark.asyncio
    async def test_zero_retries_means_single_attempt(self, upstream):
        upstream.default = lambda request: httpx.Response(500)
        client = _client(upstream, max_retries=0)

        with patch("app.provider.base.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(ProviderRequestError):
                await client.chat(REQUEST)

        assert len(upstream.requests) == 1
        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_json_is_retried(self, upstream):
        upstream.queue(httpx.Response(200, text="not json"))
        client = _client(upstream, max_retries=1)

        with patch("app.provider.base.asyncio.sleep", new_callable=AsyncMock):
            response = await client.chat(REQUEST)

        assert len(upstream.requests) == 2
        assert response.choices[0].message.content == "Hi there"


def _stream_events() -> list[dict]:
    base = {"id": "chatcmpl-up", "object": "chat.completion.chunk", "created": 1700000000, "model": "gpt-test"}
    return [
        {**base, "choices": [{"index": 0, "delta": {"role": "assistant"}, "finish_reason": None}]},
        {**base, "choices": [{"index": 0, "delta": {"reasoning_content": "Let me think"}, "finish_reason": None}]},
        {**base, "choices": [{"index": 0, "delta": {"content": "Hel"}, "finish_reason": None}]},
        {**base, "choices": [{"index": 0, "delta": {"content": "lo"}, "finish_reason": None}]},
        {**base, "choices": [{"index": 0, "delta": {}, "finish_reason": "stop"}]},
        {**base, "choices": [], "usage": {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7}},
    ]


class _BrokenStream(httpx.AsyncByteStream):
    """Upstream body that dies after the first event."""

    def __init__(self, first: bytes):
        self._first = first

    async def __aiter__(self):
        yield self._first
        raise httpx.ReadError("connection reset")

    async def aclose(self) -> None:
        pass


class TestOpenAIStream:
    @pytest.mark.asyncio
    async def test_stream_chunks(self, upstream):
        upstream.default = lambda request: httpx.Response(
            200,
            headers={"Content-Type": "text/event-stream"},
            content=sse_body(*_stream_events()),
        )
        client = _client(upstream, models=["gpt-test"])

        stream = await client.chat_stream(REQUEST)
        chunks = [chunk async for chunk in stream]

        assert upstream.bodies()[0]["stream"] is True
        assert len(chunks) == 6
        assert "".join(c.choices[0].delta.content for c in chunks if c.choices) == "Hello"
        assert chunks[1].choices[0].delta.reasoning_content == "Let me think"
        assert chunks[1].choices[0].delta.content == ""
        assert chunks[4].finish_reason == "stop"
        assert chunks[5].choices == []
        assert chunks[5].usage.total_tokens == 7
        assert all(c.provider == "openai" for c in chunks)
        assert stream.closed
        assert stream.chunks_sent == 6

    @pytest.mark.asyncio
    async def test_stream_ends_without_done_marker(self, upstream):
        upstream.default = lambda request: httpx.Response(200, content=sse_body(*_stream_events()[:3], done=False))
        stream = await _client(upstream).chat_stream(REQUEST)
        chunks = [chunk async for chunk in stream]
        assert len(chunks) == 3
        assert stream.closed

    @pytest.mark.asyncio
    async def test_stream_connect_failure_is_retried(self, upstream):
        upstream.default = lambda request: httpx.Response(429, json={"error": "slow down"})
        client = _client(upstream, max_retries=2)

        with patch("app.provider.base.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(ProviderRequestError):
                await client.chat_stream(REQUEST)

        assert len(upstream.requests) == 3
        assert mock_sleep.await_args_list == [call(1.0), call(2.0)]

    @pytest.mark.asyncio
    async def test_mid_stream_failure(self, upstream):
        first = sse_body(_stream_events()[2], done=False)
        upstream.default = lambda request: httpx.Response(200, stream=_BrokenStream(first))
        stream = await _client(upstream).chat_stream(REQUEST)

        received = []
        with pytest.raises(ProviderStreamError):
            async for chunk in stream:
                received.append(chunk)

        assert [c.choices[0].delta.content for c in received] == ["Hel"]
        assert stream.closed
        assert isinstance(stream.error, ProviderStreamError)
        # Closed streams stay exhausted
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()
