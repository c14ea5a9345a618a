import json
from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from app.core.config import settings

# Override settings for tests
settings.app_env = "development"

from app.ai.manager import AIManager  # noqa: E402
from app.core.dependencies import get_ai_manager  # noqa: E402
from app.core.rate_limit import limiter  # noqa: E402
from app.main import app  # noqa: E402
from app.prompt.manager import PromptManager  # noqa: E402
from app.provider.config import AIConfig, ProviderConfig, ProviderInstanceConfig  # noqa: E402
from app.provider.registry import ProviderRegistry  # noqa: E402

OPENAI_BASE_URL = "https://openai.test/v1"
GEMINI_BASE_URL = "https://gemini.test/v1beta"

EXAMPLE_TEMPLATE = {
    "name": "example",
    "description": "Greets the user",
    "variables": {"user_name": "Name of the user"},
    "messages": [
        {"role": "system", "content": "Greet {{ user_name }}, it is {{ greet_time }}."},
        {"role": "user", "content": "{{ user_message }}"},
    ],
}


# ---------------------------------------------------------------------------
# Fake upstream vendor
# ---------------------------------------------------------------------------


class FakeUpstream:
    """Scriptable vendor endpoint behind ``httpx.MockTransport``.

    Queued items are served first, one per request; then ``default``. An item
    is an ``httpx.Response`` (served once), an exception (raised) or a
    callable ``request -> Response``.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._queue: list = []
        self.default: Callable[[httpx.Request], httpx.Response] | None = None

    def queue(self, *items) -> None:
        self._queue.extend(items)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self._queue.pop(0) if self._queue else self.default
        if item is None:
            raise AssertionError(f"unexpected upstream request: {request.method} {request.url}")
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        return item

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


def sse_body(*events: dict, done: bool = True) -> bytes:
    """Encode events as an upstream SSE body."""
    lines = [f"data: {json.dumps(event)}\n\n" for event in events]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


def make_instance(name: str = "primary", **overrides) -> ProviderInstanceConfig:
    data = {
        "name": name,
        "base_url": OPENAI_BASE_URL,
        "keys": ["key-1"],
        "models": ["model-a"],
        "rate_limit": "1000/s",
        "max_retries": 3,
    }
    data.update(overrides)
    return ProviderInstanceConfig(**data)


def make_ai_config(**providers: list[ProviderInstanceConfig]) -> AIConfig:
    return AIConfig(
        providers={name: ProviderConfig(enabled=True, instances=instances) for name, instances in providers.items()}
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def prompt_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "prompts"
    directory.mkdir()
    (directory / "example.json").write_text(json.dumps(EXAMPLE_TEMPLATE), encoding="utf-8")
    return directory


@pytest.fixture
def ai_config() -> AIConfig:
    """Single OpenAI-compatible instance; tests may mutate it."""
    return make_ai_config(openai=[make_instance()])


@pytest.fixture
def ai_manager(ai_config: AIConfig, upstream: FakeUpstream, prompt_dir: Path) -> AIManager:
    registry = ProviderRegistry(config_loader=lambda: ai_config, transport=upstream.transport)
    return AIManager(registry=registry, prompts=PromptManager(prompt_dir))


@pytest.fixture
async def client(ai_manager: AIManager) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_ai_manager] = lambda: ai_manager
    limiter.reset()
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.pop(get_ai_manager, None)
