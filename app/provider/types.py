"""Vendor-agnostic request/response envelopes for the provider layer.

Responses are shaped after the OpenAI chat completion objects regardless of
which vendor produced them, so callers can re-serialize them as-is.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field


def new_response_id() -> str:
    """Fresh random response ID, e.g. "chatcmpl-9f86d081884c7d659a2feaa0c55ad015"."""
    return "chatcmpl-" + secrets.token_hex(16)


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


@dataclass
class Message:
    role: str
    content: str
    reasoning_content: str = ""

    def to_dict(self) -> dict:
        data = {"role": self.role, "content": self.content}
        if self.reasoning_content:
            data["reasoning_content"] = self.reasoning_content
        return data


@dataclass
class ChatRequest:
    """Chat request routed to one provider instance.

    An empty ``model`` means the instance picks one of its configured
    models round-robin.
    """

    messages: list[Message] = field(default_factory=list)
    model: str = ""
    max_tokens: int = 0
    temperature: float | None = None


# ---------------------------------------------------------------------------
# One-shot response
# ---------------------------------------------------------------------------


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def to_dict(self) -> dict:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class Choice:
    index: int = 0
    message: Message = field(default_factory=lambda: Message(role="assistant", content=""))
    finish_reason: str = ""

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "message": self.message.to_dict(),
            "finish_reason": self.finish_reason,
        }


@dataclass
class ChatResponse:
    id: str = field(default_factory=new_response_id)
    object: str = "chat.completion"
    created: int = 0
    model: str = ""
    choices: list[Choice] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    system_fingerprint: str = ""
    provider: str = ""

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "object": self.object,
            "created": self.created,
            "model": self.model,
            "choices": [c.to_dict() for c in self.choices],
            "usage": self.usage.to_dict(),
            "provider": self.provider,
        }
        if self.system_fingerprint:
            data["system_fingerprint"] = self.system_fingerprint
        return data


# ---------------------------------------------------------------------------
# Streaming response
# ---------------------------------------------------------------------------


@dataclass
class MessageDelta:
    role: str = ""
    content: str = ""
    reasoning_content: str = ""

    def to_dict(self) -> dict:
        data = {}
        if self.role:
            data["role"] = self.role
        if self.content:
            data["content"] = self.content
        if self.reasoning_content:
            data["reasoning_content"] = self.reasoning_content
        return data


@dataclass
class StreamChoice:
    index: int = 0
    delta: MessageDelta = field(default_factory=MessageDelta)
    finish_reason: str = ""

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "delta": self.delta.to_dict(),
            "finish_reason": self.finish_reason,
        }


@dataclass
class ChatStreamResponse:
    """One normalized incremental chunk of a streamed chat completion."""

    id: str = field(default_factory=new_response_id)
    object: str = "chat.completion.chunk"
    created: int = 0
    model: str = ""
    choices: list[StreamChoice] = field(default_factory=list)
    usage: Usage | None = None
    system_fingerprint: str = ""
    provider: str = ""

    @property
    def finish_reason(self) -> str:
        return self.choices[0].finish_reason if self.choices else ""

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "object": self.object,
            "created": self.created,
            "model": self.model,
            "choices": [c.to_dict() for c in self.choices],
            "provider": self.provider,
        }
        if self.system_fingerprint:
            data["system_fingerprint"] = self.system_fingerprint
        if self.usage is not None:
            data["usage"] = self.usage.to_dict()
        return data
