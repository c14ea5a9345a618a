"""Lock-free round-robin counters.

``next()`` on an ``itertools.count`` is a single C-level call and therefore
atomic under the interpreter lock, which gives us a fetch-and-add without a
mutex. Counters only ever move forward and are never reset.
"""

from __future__ import annotations

import itertools
from collections.abc import Sequence
from typing import TypeVar

from app.provider.exceptions import ProviderConfigError

T = TypeVar("T")


class RoundRobinCounter:
    """Monotonic shared counter used for round-robin selection."""

    def __init__(self) -> None:
        self._counter = itertools.count()
        self._last = -1

    def fetch_add(self) -> int:
        """Increment by one and return the previous value."""
        value = next(self._counter)
        self._last = value
        return value

    def add_fetch(self) -> int:
        """Increment by one and return the new value."""
        return self.fetch_add() + 1

    @property
    def value(self) -> int:
        """Number of increments observed so far (approximate under contention)."""
        return self._last + 1

    def pick(self, items: Sequence[T], what: str = "item") -> T:
        """Return ``items[fetch_add() % len(items)]``.

        The length is read at call time, so if the list shrank since the last
        call the index wraps modulo the new length.
        """
        if not items:
            raise ProviderConfigError(f"no {what} configured")
        return items[self.fetch_add() % len(items)]
