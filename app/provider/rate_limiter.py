"""Token bucket rate limiter for provider instances.

A limit string "<N>/<unit>" becomes a bucket with burst = N that refills one
token every unit/N seconds. The bucket starts full, so "60/min" allows 60
immediate calls and then one call per second.

Usage:
    interval, burst = parse_limit("60/min")
    bucket = TokenBucket(interval, burst)

    await bucket.wait()  # blocks until a token is available
"""

from __future__ import annotations

import asyncio
import logging
import re
import threading
import time

from app.provider.exceptions import InvalidRateLimitError, RateLimitTimeoutError

logger = logging.getLogger(__name__)

_UNIT_SECONDS: dict[str, float] = {
    "s": 1.0,
    "sec": 1.0,
    "second": 1.0,
    "m": 60.0,
    "min": 60.0,
    "minute": 60.0,
    "h": 3600.0,
    "hour": 3600.0,
}

# Duration literals such as "500ms", "1m30s", "1.5h"
_DURATION_UNITS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_DURATION_FULL = re.compile(r"(?:(?:\d+(?:\.\d*)?|\.\d+)(?:ns|us|µs|μs|ms|s|m|h))+")
_COUNT = re.compile(r"[+-]?[0-9]+")


def parse_duration(text: str) -> float:
    """Parse a duration literal like "1m30s" into seconds."""
    if not _DURATION_FULL.fullmatch(text):
        raise InvalidRateLimitError(f"invalid duration: {text}")
    return sum(float(value) * _DURATION_UNITS[unit] for value, unit in _DURATION_PART.findall(text))


def parse_limit(spec: str) -> tuple[float, int]:
    """Parse "60/min", "1/s", "10/500ms" into (refill interval seconds, burst)."""
    parts = spec.split("/")
    if len(parts) != 2:
        raise InvalidRateLimitError(f"invalid format: {spec}")

    if not _COUNT.fullmatch(parts[0]):
        raise InvalidRateLimitError(f"invalid requests: {parts[0]}")
    requests = int(parts[0])
    if requests <= 0:
        raise InvalidRateLimitError(f"invalid requests: {parts[0]}")

    unit = parts[1]
    period = _UNIT_SECONDS.get(unit)
    if period is None:
        period = parse_duration(unit)
    if period <= 0:
        raise InvalidRateLimitError(f"invalid duration: {unit}")

    return period / requests, requests


class TokenBucket:
    """Token bucket: refills one token per ``interval`` seconds up to ``burst``.

    The critical section is a few float operations, guarded by a thread lock
    so a bucket may be shared between threads and event loops.
    """

    def __init__(self, interval: float, burst: int):
        self.interval = interval
        self.burst = burst
        self._tokens = float(burst)
        self._updated = time.monotonic()
        self._lock = threading.Lock()

    @classmethod
    def from_limit(cls, spec: str) -> TokenBucket:
        interval, burst = parse_limit(spec)
        return cls(interval, burst)

    def _refill(self, now: float) -> None:
        elapsed = now - self._updated
        if elapsed > 0:
            self._tokens = min(float(self.burst), self._tokens + elapsed / self.interval)
            self._updated = now

    def try_acquire(self) -> float:
        """Take a token if one is available.

        Returns:
            Wait time in seconds. 0 means the token was taken.
        """
        with self._lock:
            self._refill(time.monotonic())
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return 0.0
            return (1.0 - self._tokens) * self.interval

    async def wait(self, timeout: float | None = None) -> None:
        """Block until a token is available.

        Cancelling the waiting task raises ``asyncio.CancelledError`` here.
        If the token cannot be obtained before ``timeout`` seconds elapse,
        ``RateLimitTimeoutError`` is raised without sleeping past the deadline.
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        while True:
            wait = self.try_acquire()
            if wait <= 0:
                return
            if deadline is not None and time.monotonic() + wait > deadline:
                raise RateLimitTimeoutError(f"rate limit token not available within {timeout}s")
            logger.debug("Rate limited, waiting %.3fs for a token", wait)
            await asyncio.sleep(wait)

    @property
    def available(self) -> float:
        with self._lock:
            self._refill(time.monotonic())
            return self._tokens

    def get_stats(self) -> dict:
        return {
            "burst": self.burst,
            "refill_interval_seconds": self.interval,
            "available_tokens": round(self.available, 3),
        }
