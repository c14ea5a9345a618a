"""Base class for vendor clients.

Each client wraps one configured provider instance and handles:
  - Model resolution: request override, else round-robin over ``models``
  - Key resolution: round-robin over ``keys``
  - Token bucket rate limiting (one bucket per instance)
  - Retries with linear backoff: attempt * 1s between failures,
    ``max_retries + 1`` attempts in total
  - Normalization of vendor JSON into ChatResponse / ChatStreamResponse

Subclasses only describe the vendor protocol (URLs, headers, payloads and
how to read the vendor's JSON).
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, TypeVar

import httpx

from app.core.metrics import PROVIDER_REQUESTS, PROVIDER_RETRIES
from app.provider.config import ProviderInstanceConfig
from app.provider.counters import RoundRobinCounter
from app.provider.exceptions import ProviderConfigError, ProviderRequestError
from app.provider.rate_limiter import TokenBucket
from app.provider.stream import ChatStream
from app.provider.types import ChatRequest, ChatResponse, ChatStreamResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRY_BASE_DELAY = 1.0  # seconds, multiplied by the attempt number

# Errors worth another attempt: transport failures, HTTP >= 400, unparseable bodies
_RETRYABLE_ERRORS = (httpx.HTTPError, json.JSONDecodeError)


class BaseProviderClient(ABC):
    """Client for one provider instance."""

    provider: str

    def __init__(
        self,
        config: ProviderInstanceConfig,
        key_counter: RoundRobinCounter | None = None,
        model_counter: RoundRobinCounter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not config.keys:
            raise ProviderConfigError(f"{self.provider} instance '{config.name}' has no API keys")
        if not config.models:
            raise ProviderConfigError(f"{self.provider} instance '{config.name}' has no models")

        self.config = config
        self.key_counter = key_counter or RoundRobinCounter()
        self.model_counter = model_counter or RoundRobinCounter()
        self.rate_limiter = TokenBucket.from_limit(config.rate_limit)
        self._transport = transport

    # ------------------------------------------------------------------
    # Vendor protocol
    # ------------------------------------------------------------------

    @abstractmethod
    def _auth_headers(self, api_key: str) -> dict[str, str]: ...

    @abstractmethod
    def _chat_url(self, model: str) -> str: ...

    @abstractmethod
    def _stream_url(self, model: str) -> str: ...

    @abstractmethod
    def _chat_payload(self, request: ChatRequest, model: str) -> dict[str, Any]: ...

    @abstractmethod
    def _stream_payload(self, request: ChatRequest, model: str) -> dict[str, Any]: ...

    @abstractmethod
    def _to_response(self, data: dict[str, Any], model: str) -> ChatResponse: ...

    @abstractmethod
    def _to_stream_chunk(self, data: dict[str, Any], model: str) -> ChatStreamResponse | None:
        """Normalize one vendor stream event; None means skip it."""
        ...

    def _is_terminal(self, chunk: ChatStreamResponse) -> bool:
        """Whether this chunk is the vendor's explicit end-of-stream sentinel."""
        return False

    def _stream_params(self) -> dict[str, str]:
        return {}

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve_model(self, request: ChatRequest) -> str:
        if request.model:
            return request.model
        return self.model_counter.pick(self.config.models, what="models")

    def resolve_key(self) -> str:
        return self.key_counter.pick(self.config.keys, what="API keys")

    def resolve_temperature(self, request: ChatRequest) -> float:
        """A request value wins, including an explicit 0."""
        if request.temperature is not None:
            return request.temperature
        return self.config.temperature

    def _http_client(self, api_key: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=float(self.config.timeout),
            headers={**self._auth_headers(api_key), "Content-Type": "application/json"},
            transport=self._transport,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Send a one-shot chat request and return the normalized response."""
        model = self.resolve_model(request)
        api_key = self.resolve_key()
        await self.rate_limiter.wait()

        payload = self._chat_payload(request, model)
        url = self._chat_url(model)

        async def _send() -> dict[str, Any]:
            async with self._http_client(api_key) as client:
                resp = await client.post(url, json=payload)
                resp.raise_for_status()
                return resp.json()

        start = time.monotonic()
        data = await self._with_retries(_send, name="chat")
        response = self._to_response(data, model)
        logger.info(
            "%s/%s chat completed: model=%s finish=%s tokens=%d latency=%dms",
            self.provider,
            self.config.name,
            response.model,
            response.choices[0].finish_reason if response.choices else "",
            response.usage.total_tokens,
            int((time.monotonic() - start) * 1000),
        )
        return response

    async def chat_stream(self, request: ChatRequest) -> ChatStream:
        """Open a streamed chat completion.

        Connection and HTTP status failures are retried like ``chat``; once the
        stream is established the returned ChatStream yields normalized chunks.
        """
        model = self.resolve_model(request)
        api_key = self.resolve_key()
        await self.rate_limiter.wait()

        payload = self._stream_payload(request, model)
        url = self._stream_url(model)
        client = self._http_client(api_key)

        async def _connect() -> httpx.Response:
            req = client.build_request("POST", url, json=payload, params=self._stream_params())
            resp = await client.send(req, stream=True)
            if resp.is_error:
                await resp.aread()
                await resp.aclose()
                resp.raise_for_status()
            return resp

        try:
            response = await self._with_retries(_connect, name="chat_stream")
        except BaseException:
            await client.aclose()
            raise

        logger.info("%s/%s stream opened: model=%s", self.provider, self.config.name, model)
        return ChatStream(
            self._iter_chunks(response, model),
            provider=self.provider,
            model=model,
            is_terminal=self._is_terminal,
            closers=[response.aclose, client.aclose],
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _with_retries(self, operation: Callable[[], Awaitable[T]], *, name: str) -> T:
        attempts = self.config.max_retries + 1
        last_error: Exception | None = None

        for attempt in range(attempts):
            try:
                result = await operation()
                PROVIDER_REQUESTS.labels(provider=self.provider, operation=name, status="success").inc()
                return result
            except _RETRYABLE_ERRORS as e:
                last_error = e
                logger.warning(
                    "%s/%s %s attempt %d/%d failed: %s",
                    self.provider,
                    self.config.name,
                    name,
                    attempt + 1,
                    attempts,
                    e,
                )
                if attempt < self.config.max_retries:
                    PROVIDER_RETRIES.labels(provider=self.provider).inc()
                    await asyncio.sleep((attempt + 1) * RETRY_BASE_DELAY)

        PROVIDER_REQUESTS.labels(provider=self.provider, operation=name, status="error").inc()
        raise ProviderRequestError(
            f"{self.provider} {name} failed after {attempts} attempts: {last_error}",
            provider=self.provider,
            attempts=attempts,
        ) from last_error

    async def _iter_chunks(self, response: httpx.Response, model: str) -> AsyncIterator[ChatStreamResponse]:
        """Read SSE ``data:`` events from the upstream body and normalize them."""
        async for line in response.aiter_lines():
            line = line.strip()
            if not line or line.startswith(":") or not line.startswith("data:"):
                continue
            data = line[len("data:") :].strip()
            if data == "[DONE]":
                return
            chunk = self._to_stream_chunk(json.loads(data), model)
            if chunk is not None:
                yield chunk

    def get_stats(self) -> dict:
        return {
            "provider": self.provider,
            "instance": self.config.name,
            "key_counter": self.key_counter.value,
            "model_counter": self.model_counter.value,
            "keys": len(self.config.keys),
            "models": len(self.config.models),
            "rate_limit": self.config.rate_limit,
            **self.rate_limiter.get_stats(),
        }
