"""AI chat provider routing layer.

Routes chat requests across configured provider instances with:
  - Round-robin instance selection (Registry)
  - Per-instance round-robin over API keys and models
  - Token-bucket rate limiting per instance
  - Retry with linear backoff
  - Normalization of OpenAI-compatible and Gemini responses/streams
    into one envelope (ChatResponse / ChatStreamResponse)
"""

from app.provider.exceptions import (
    InvalidRateLimitError,
    NoProviderAvailableError,
    ProviderConfigError,
    ProviderError,
    ProviderRequestError,
    ProviderStreamError,
    RateLimitTimeoutError,
    UnsupportedProviderError,
)
from app.provider.registry import ProviderRegistry
from app.provider.stream import ChatStream
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

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "ChatStream",
    "ChatStreamResponse",
    "Choice",
    "InvalidRateLimitError",
    "Message",
    "MessageDelta",
    "NoProviderAvailableError",
    "ProviderConfigError",
    "ProviderError",
    "ProviderRegistry",
    "ProviderRequestError",
    "ProviderStreamError",
    "RateLimitTimeoutError",
    "StreamChoice",
    "UnsupportedProviderError",
    "Usage",
]
