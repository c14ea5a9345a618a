"""Errors raised by the provider routing layer."""

from __future__ import annotations


class ProviderError(Exception):
    """Base class for all provider layer errors."""


class ProviderConfigError(ProviderError):
    """Provider configuration is unusable (surfaced synchronously to the caller)."""


class InvalidRateLimitError(ProviderConfigError):
    """Rate limit string could not be parsed, e.g. "sixty/min"."""


class NoProviderAvailableError(ProviderConfigError):
    """No enabled provider instance is configured."""


class UnsupportedProviderError(ProviderConfigError):
    """Configured provider name has no client implementation."""


class ProviderRequestError(ProviderError):
    """Upstream call failed after all retry attempts."""

    def __init__(self, message: str, provider: str = "", attempts: int = 0):
        super().__init__(message)
        self.provider = provider
        self.attempts = attempts


class ProviderStreamError(ProviderError):
    """Upstream stream broke after it was established."""

    def __init__(self, message: str, provider: str = ""):
        super().__init__(message)
        self.provider = provider


class RateLimitTimeoutError(ProviderError):
    """A rate limit token did not become available before the deadline."""
