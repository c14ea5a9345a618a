"""AI manager: provider routing plus prompt templates behind one object.

Usage:
    manager = AIManager()
    messages = manager.render_messages("example", {"user_name": "Ada", ...})
    response = await manager.chat(ChatRequest(messages=messages))

    stream = await manager.chat_stream(ChatRequest(messages=messages))
    async with stream:
        async for chunk in stream:
            ...
"""

from __future__ import annotations

import logging
from typing import Any

from app.prompt.exceptions import TemplateValidationError
from app.prompt.manager import PromptManager
from app.prompt.types import PromptTemplate
from app.provider.registry import ProviderRegistry
from app.provider.stream import ChatStream
from app.provider.types import ChatRequest, ChatResponse, Message

logger = logging.getLogger(__name__)


class AIManager:
    def __init__(
        self,
        registry: ProviderRegistry | None = None,
        prompts: PromptManager | None = None,
    ):
        self.registry = registry or ProviderRegistry()
        self.prompts = prompts or PromptManager()

    # -- chat ---------------------------------------------------------------

    async def chat(self, request: ChatRequest) -> ChatResponse:
        return await self.registry.chat(request)

    async def chat_stream(self, request: ChatRequest) -> ChatStream:
        return await self.registry.chat_stream(request)

    def render_messages(self, path: str, variables: dict[str, Any]) -> list[Message]:
        """Render a template into chat messages."""
        tmpl = self.prompts.get_template(path, variables)
        if not tmpl.messages:
            raise TemplateValidationError(f"prompt template '{path}' has no messages")
        return [Message(role=m.role, content=m.content) for m in tmpl.messages]

    # -- templates ----------------------------------------------------------

    def get_template(self, path: str, variables: dict[str, Any] | None = None) -> PromptTemplate:
        return self.prompts.get_template(path, variables)

    def list_templates(self, prefix: str = "") -> list[str]:
        return self.prompts.list_templates(prefix)

    def create_template(self, path: str, tmpl: PromptTemplate) -> None:
        self.prompts.create_template(path, tmpl)

    def update_template(self, path: str, tmpl: PromptTemplate) -> None:
        self.prompts.update_template(path, tmpl)

    def delete_template(self, path: str) -> None:
        self.prompts.delete_template(path)

    def get_stats(self) -> dict:
        return self.registry.get_stats()
