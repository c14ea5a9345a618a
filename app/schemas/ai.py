"""Request models for the AI chat endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, model_validator

from app.provider.types import ChatRequest, Message


class ChatMessageIn(BaseModel):
    role: str = Field(..., min_length=1)
    content: str


class ChatIn(BaseModel):
    """Either explicit ``messages`` or a prompt ``template`` plus ``variables``."""

    messages: list[ChatMessageIn] = Field(default_factory=list)
    template: str | None = None
    variables: dict[str, Any] = Field(default_factory=dict)
    model: str = ""
    max_tokens: int = Field(0, ge=0)
    temperature: float | None = Field(None, ge=0.0, le=2.0)

    @model_validator(mode="after")
    def _messages_or_template(self) -> ChatIn:
        if not self.messages and not self.template:
            raise ValueError("either messages or template is required")
        return self

    def to_request(self, messages: list[Message] | None = None) -> ChatRequest:
        if messages is None:
            messages = [Message(role=m.role, content=m.content) for m in self.messages]
        return ChatRequest(
            messages=messages,
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
