"""Rate limiting configuration using slowapi."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import get_settings

# Rate limiter instance, keyed by remote address
limiter = Limiter(key_func=get_remote_address)


def ai_rate_limit() -> str:
    """Per-client limit for the AI endpoints, read from live settings."""
    return get_settings().api_rate_limit
