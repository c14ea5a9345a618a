"""Tests for the diagnostic /api/v1/test endpoints."""

from __future__ import annotations

import json

import httpx
import pytest
from conftest import sse_body
from httpx import AsyncClient

from app.core.config import get_settings

PREFIX = "/api/v1/test"


def _openai_stream(request: httpx.Request) -> httpx.Response:
    base = {"object": "chat.completion.chunk", "created": 1700000000, "model": "model-a"}
    return httpx.Response(
        200,
        content=sse_body(
            {**base, "choices": [{"index": 0, "delta": {"role": "assistant", "content": "Hi"}, "finish_reason": None}]},
            {**base, "choices": [{"index": 0, "delta": {"content": " Ada"}, "finish_reason": "stop"}]},
        ),
    )


@pytest.mark.asyncio
async def test_ping(client: AsyncClient):
    response = await client.get(f"{PREFIX}/ping")
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Pong successfully!"
    assert data["time"]


@pytest.mark.asyncio
async def test_hello(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(get_settings(), "app_version", "2.3.4")
    response = await client.get(f"{PREFIX}/hello")
    assert response.status_code == 200
    assert response.json()["version"] == "2.3.4"


@pytest.mark.asyncio
async def test_logger(client: AsyncClient, caplog):
    with caplog.at_level("INFO"):
        response = await client.get(f"{PREFIX}/logger")
    assert response.json() == {"message": "Log test succeeded!", "level": "info"}
    assert "Test logger endpoint called" in caplog.text


@pytest.mark.asyncio
async def test_success(client: AsyncClient):
    response = await client.get(f"{PREFIX}/success")
    assert response.json()["status"] == "success"


@pytest.mark.asyncio
async def test_error(client: AsyncClient):
    response = await client.get(f"{PREFIX}/error")
    assert response.status_code == 200
    assert response.json() == {"message": "Server exception", "code": 10001}


@pytest.mark.asyncio
async def test_error_middleware(client: AsyncClient):
    response = await client.get(f"{PREFIX}/error-middleware")
    assert response.status_code == 500
    assert "RuntimeError" in response.json()["detail"]


@pytest.mark.asyncio
async def test_long(client: AsyncClient):
    response = await client.post(f"{PREFIX}/long", json={"duration": 0})
    assert response.status_code == 200
    assert response.json()["duration"] == 0


@pytest.mark.asyncio
async def test_long_validation(client: AsyncClient):
    response = await client.post(f"{PREFIX}/long", json={"duration": 11})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_request_id_header(client: AsyncClient):
    response = await client.get(f"{PREFIX}/ping", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


class TestStreamEndpoint:
    @pytest.mark.asyncio
    async def test_stream_relays_sse(self, client: AsyncClient, upstream):
        upstream.default = _openai_stream

        response = await client.post(f"{PREFIX}/stream", json={"name": "Ada"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["x-accel-buffering"] == "no"

        frames = [f for f in response.text.split("\n\n") if f]
        assert frames[-1] == "data: [DONE]"
        chunks = [json.loads(f[len("data: ") :]) for f in frames[:-1]]
        assert "".join(c["choices"][0]["delta"].get("content", "") for c in chunks) == "Hi Ada"

        # The example prompt was rendered with the caller's name
        messages = upstream.bodies()[0]["messages"]
        assert messages[0]["role"] == "system"
        assert "Greet Ada" in messages[0]["content"]
        assert messages[1]["content"] == "This is a message from Ada"

    @pytest.mark.asyncio
    async def test_stream_requires_name(self, client: AsyncClient):
        response = await client.post(f"{PREFIX}/stream", json={})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_stream_without_providers(self, client: AsyncClient, ai_config):
        ai_config.providers.clear()
        response = await client.post(f"{PREFIX}/stream", json={"name": "Ada"})
        assert response.status_code == 503
        assert response.json()["code"] == 10008
