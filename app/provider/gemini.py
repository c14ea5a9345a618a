"""Gemini generate-content client.

Uses the Google AI REST API:
  - ``POST {base_url}/models/{model}:generateContent`` for one-shot calls
  - ``POST {base_url}/models/{model}:streamGenerateContent?alt=sse`` for streams

Thinking is requested (``includeThoughts``); parts flagged ``thought: true``
are reported as ``reasoning_content``, all other text as ``content``.
A chunk with finish reason STOP or MAX_TOKENS ends the stream.
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

TERMINAL_FINISH_REASONS = frozenset({"STOP", "MAX_TOKENS"})


def _usage(data: dict[str, Any] | None) -> Usage:
    data = data or {}
    return Usage(
        prompt_tokens=data.get("promptTokenCount", 0) or 0,
        completion_tokens=data.get("candidatesTokenCount", 0) or 0,
        total_tokens=data.get("totalTokenCount", 0) or 0,
    )


def _split_parts(candidate: dict[str, Any]) -> tuple[str, str]:
    """Return (content, reasoning_content) from a candidate's parts."""
    content: list[str] = []
    reasoning: list[str] = []
    for part in (candidate.get("content") or {}).get("parts") or []:
        text = part.get("text") or ""
        if not text:
            continue
        if part.get("thought"):
            reasoning.append(text)
        else:
            content.append(text)
    return "".join(content), "".join(reasoning)


class GeminiClient(BaseProviderClient):
    """Client for one Gemini provider instance."""

    provider = "gemini"

    def _auth_headers(self, api_key: str) -> dict[str, str]:
        return {"x-goog-api-key": api_key}

    def _chat_url(self, model: str) -> str:
        return f"/models/{model}:generateContent"

    def _stream_url(self, model: str) -> str:
        return f"/models/{model}:streamGenerateContent"

    def _stream_params(self) -> dict[str, str]:
        return {"alt": "sse"}

    def _generation_config(self, request: ChatRequest) -> dict[str, Any]:
        config: dict[str, Any] = {
            "temperature": self.resolve_temperature(request),
            "thinkingConfig": {"includeThoughts": True},
        }
        max_tokens = request.max_tokens or self.config.max_tokens
        if max_tokens:
            config["maxOutputTokens"] = max_tokens
        if self.config.top_p:
            config["topP"] = self.config.top_p
        if self.config.top_k:
            config["topK"] = self.config.top_k
        return config

    def _chat_payload(self, request: ChatRequest, model: str) -> dict[str, Any]:
        # One-shot calls send the whole conversation as a single user turn
        prompt = "".join(m.content + "\n" for m in request.messages)
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": self._generation_config(request),
        }

    def _stream_payload(self, request: ChatRequest, model: str) -> dict[str, Any]:
        contents = [
            {
                "role": "model" if m.role == "assistant" else "user",
                "parts": [{"text": m.content}],
            }
            for m in request.messages
        ]
        return {
            "contents": contents,
            "generationConfig": self._generation_config(request),
        }

    def _to_response(self, data: dict[str, Any], model: str) -> ChatResponse:
        candidates = data.get("candidates") or []
        if not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason", "")
            detail = f" (prompt blocked: {block_reason})" if block_reason else ""
            raise ProviderRequestError(f"{self.provider} returned no candidates{detail}", provider=self.provider)

        candidate = candidates[0]
        content, reasoning = _split_parts(candidate)
        finish_reason = candidate.get("finishReason") or ""

        response = ChatResponse(
            object="chat.completion",
            created=int(time.time()),
            model=model,
            choices=[
                Choice(
                    index=0,
                    message=Message(role="assistant", content=content, reasoning_content=reasoning),
                    finish_reason=finish_reason,
                )
            ],
            provider=self.provider,
        )
        if finish_reason:
            response.usage = _usage(data.get("usageMetadata"))
        return response

    def _to_stream_chunk(self, data: dict[str, Any], model: str) -> ChatStreamResponse | None:
        candidates = data.get("candidates") or []
        if not candidates:
            return None

        candidate = candidates[0]
        finish_reason = candidate.get("finishReason") or ""
        parts = (candidate.get("content") or {}).get("parts") or []
        # Skip empty chunks, but never drop the one carrying the finish reason
        if not parts and not finish_reason:
            return None

        content, reasoning = _split_parts(candidate)
        chunk = ChatStreamResponse(
            object="chat.completion.chunk",
            created=int(time.time()),
            model=model,
            choices=[
                StreamChoice(
                    index=0,
                    delta=MessageDelta(role="assistant", content=content, reasoning_content=reasoning),
                    finish_reason=finish_reason,
                )
            ],
            provider=self.provider,
        )
        if finish_reason:
            chunk.usage = _usage(data.get("usageMetadata"))
        return chunk

    def _is_terminal(self, chunk: ChatStreamResponse) -> bool:
        return chunk.finish_reason in TERMINAL_FINISH_REASONS
