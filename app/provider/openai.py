"""OpenAI-compatible chat completions client.

Works against any endpoint speaking the OpenAI chat completions protocol
(``POST {base_url}/chat/completions``). The stream ends on ``data: [DONE]``
or when the body ends; a trailing usage-only chunk is forwarded as well.
"""

from __future__ import annotations

import time
from typing import Any

from app.provider.base import BaseProviderClient
from app.provider.exceptions import ProviderRequestError
from app.provider.types import (
    ChatRequest,
    ChatResponse,
    ChatStreamResponse,
    Choice,
    Message,
    MessageDelta,
    StreamChoice,
    Usage,
)


def _usage(data: dict[str, Any] | None) -> Usage:
    data = data or {}
    return Usage(
        prompt_tokens=data.get("prompt_tokens", 0) or 0,
        completion_tokens=data.get("completion_tokens", 0) or 0,
        total_tokens=data.get("total_tokens", 0) or 0,
    )


class OpenAIClient(BaseProviderClient):
    """Client for one OpenAI-compatible provider instance."""

    provider = "openai"

    def _auth_headers(self, api_key: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"}

    def _chat_url(self, model: str) -> str:
        return "/chat/completions"

    def _stream_url(self, model: str) -> str:
        return "/chat/completions"

    def _chat_payload(self, request: ChatRequest, model: str) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in request.messages],
        }
        # Zero instance values fall back to the vendor defaults; an explicit request temperature is always sent
        max_tokens = request.max_tokens or self.config.max_tokens
        temperature = self.resolve_temperature(request)
        if max_tokens:
            payload["max_tokens"] = max_tokens
        if temperature or request.temperature is not None:
            payload["temperature"] = temperature
        if self.config.top_p:
            payload["top_p"] = self.config.top_p
        return payload

    def _stream_payload(self, request: ChatRequest, model: str) -> dict[str, Any]:
        payload = self._chat_payload(request, model)
        payload["stream"] = True
        return payload

    def _to_response(self, data: dict[str, Any], model: str) -> ChatResponse:
        choices = data.get("choices") or []
        if not choices:
            raise ProviderRequestError(f"{self.provider} returned no choices", provider=self.provider)

        choice = choices[0]
        message = choice.get("message") or {}
        finish_reason = choice.get("finish_reason") or ""

        response = ChatResponse(
            object=data.get("object") or "chat.completion",
            created=data.get("created") or int(time.time()),
            model=data.get("model") or model,
            choices=[
                Choice(
                    index=choice.get("index", 0),
                    message=Message(
                        role=message.get("role") or "assistant",
                        content=message.get("content") or "",
                        reasoning_content=message.get("reasoning_content") or "",
                    ),
                    finish_reason=finish_reason,
                )
            ],
            system_fingerprint=data.get("system_fingerprint") or "",
            provider=self.provider,
        )
        # Usage is only trusted once the upstream reports why generation stopped
        if finish_reason:
            response.usage = _usage(data.get("usage"))
        return response

    def _to_stream_chunk(self, data: dict[str, Any], model: str) -> ChatStreamResponse | None:
        chunk = ChatStreamResponse(
            object=data.get("object") or "chat.completion.chunk",
            created=data.get("created") or int(time.time()),
            model=data.get("model") or model,
            system_fingerprint=data.get("system_fingerprint") or "",
            provider=self.provider,
        )

        choices = data.get("choices") or []
        if choices:
            choice = choices[0]
            delta = choice.get("delta") or {}
            chunk.choices = [
                StreamChoice(
                    index=choice.get("index", 0),
                    delta=MessageDelta(
                        role=delta.get("role") or "",
                        content=delta.get("content") or "",
                        reasoning_content=delta.get("reasoning_content") or "",
                    ),
                    finish_reason=choice.get("finish_reason") or "",
                )
            ]

        if data.get("usage"):
            chunk.usage = _usage(data["usage"])
        return chunk
