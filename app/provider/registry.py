"""Provider registry: round-robin routing across provider instances.

Every call re-reads the AI configuration through ``config_loader``, collects
the enabled instances of enabled providers and picks one with a shared
global counter:

    index = add_fetch(instance_counter) % len(instances)

Key and model counters live here too, one pair per "{provider}:{instance}",
created lazily and kept for the registry's lifetime. A configuration reload
replaces the instance configs (and therefore rebuilds their clients and rate
limiters) but never resets the counters.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import httpx

from app.provider.base import BaseProviderClient
from app.provider.config import AIConfig, ProviderInstanceConfig
from app.provider.counters import RoundRobinCounter
from app.provider.exceptions import NoProviderAvailableError, UnsupportedProviderError
from app.provider.gemini import GeminiClient
from app.provider.openai import OpenAIClient
from app.provider.stream import ChatStream
from app.provider.types import ChatRequest, ChatResponse

logger = logging.getLogger(__name__)

PROVIDER_CLIENTS: dict[str, type[BaseProviderClient]] = {
    "openai": OpenAIClient,
    "gemini": GeminiClient,
}


def _live_ai_config() -> AIConfig:
    from app.core.config import get_settings

    return get_settings().ai


class ProviderRegistry:
    """Selects a provider instance per request and routes the call to it."""

    def __init__(
        self,
        config_loader: Callable[[], AIConfig] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            config_loader: Returns the current AI config (defaults to live settings)
            transport: httpx transport handed to every client (tests use MockTransport)
        """
        self._config_loader = config_loader or _live_ai_config
        self._transport = transport

        self._instance_counter = RoundRobinCounter()
        self._key_counters: dict[str, RoundRobinCounter] = {}
        self._model_counters: dict[str, RoundRobinCounter] = {}
        self._clients: dict[str, BaseProviderClient] = {}

    def enabled_instances(self) -> list[tuple[str, ProviderInstanceConfig]]:
        """Enabled (provider name, instance) pairs in configuration order."""
        ai_config = self._config_loader()
        return [
            (name, instance)
            for name, provider in ai_config.providers.items()
            if provider.enabled
            for instance in provider.instances
            if instance.enabled
        ]

    def select(self) -> BaseProviderClient:
        """Pick the next provider instance round-robin and return its client."""
        instances = self.enabled_instances()
        if not instances:
            raise NoProviderAvailableError("no enabled provider instance configured")

        name, instance = instances[self._instance_counter.add_fetch() % len(instances)]
        logger.info("Using %s provider, instance: %s", name, instance.name)
        return self._client_for(name, instance)

    def _client_for(self, name: str, instance: ProviderInstanceConfig) -> BaseProviderClient:
        client_cls = PROVIDER_CLIENTS.get(name)
        if client_cls is None:
            raise UnsupportedProviderError(f"unsupported provider: {name}")

        counter_key = f"{name}:{instance.name}"
        # setdefault on a dict is atomic, so concurrent first calls share one counter
        key_counter = self._key_counters.setdefault(counter_key, RoundRobinCounter())
        model_counter = self._model_counters.setdefault(counter_key, RoundRobinCounter())

        client = self._clients.get(counter_key)
        if client is None or client.config is not instance:
            client = client_cls(instance, key_counter, model_counter, transport=self._transport)
            self._clients[counter_key] = client
        return client

    async def chat(self, request: ChatRequest) -> ChatResponse:
        return await self.select().chat(request)

    async def chat_stream(self, request: ChatRequest) -> ChatStream:
        return await self.select().chat_stream(request)

    def get_stats(self) -> dict:
        return {
            "instance_counter": self._instance_counter.value,
            "instances": [client.get_stats() for client in self._clients.values()],
        }
