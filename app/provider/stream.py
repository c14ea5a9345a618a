"""ChatStream: the consumer side of a streamed chat completion.

The stream is pulled by the consumer: each ``__anext__`` reads just enough of
the upstream body to produce the next normalized chunk, so a slow consumer
stalls the upstream read.

A ChatStream closes exactly once, when any of these happens:
  - a terminal chunk (vendor stop sentinel) has been handed out
  - the upstream body ends
  - the upstream read fails (``ProviderStreamError`` is raised to the consumer)
  - the consumer calls ``aclose()`` or its task is cancelled

Nothing is yielded after close.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

import anyio

from app.provider.exceptions import ProviderStreamError
from app.provider.types import ChatStreamResponse

logger = logging.getLogger(__name__)


class ChatStream:
    """Async iterator over normalized ``ChatStreamResponse`` chunks."""

    def __init__(
        self,
        chunks: AsyncIterator[ChatStreamResponse],
        *,
        provider: str,
        model: str,
        is_terminal: Callable[[ChatStreamResponse], bool] | None = None,
        closers: list[Callable[[], Awaitable[None]]] | None = None,
    ):
        self.provider = provider
        self.model = model
        self.error: ProviderStreamError | None = None
        self._chunks = chunks
        self._is_terminal = is_terminal or (lambda chunk: False)
        self._closers = closers or []
        self._closed = False
        self._closing = False
        self.chunks_sent = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> ChatStream:
        return self

    async def __anext__(self) -> ChatStreamResponse:
        if self._closed:
            raise StopAsyncIteration

        try:
            chunk = await self._chunks.__anext__()
        except StopAsyncIteration:
            await self.aclose()
            raise
        except asyncio.CancelledError:
            await self.aclose()
            raise
        except Exception as e:
            self.error = ProviderStreamError(f"{self.provider} stream failed: {e}", provider=self.provider)
            logger.warning("%s stream (model %s) aborted: %s", self.provider, self.model, e)
            await self.aclose()
            raise self.error from e

        self.chunks_sent += 1
        if self._is_terminal(chunk):
            await self.aclose()
        return chunk

    async def aclose(self) -> None:
        """Release the upstream response and HTTP client. Safe to call repeatedly.

        Cleanup runs in a shielded scope: a client disconnect cancels the
        consuming task, and that cancellation must not cut the release short.
        """
        if self._closed or self._closing:
            return
        self._closing = True

        try:
            with anyio.CancelScope(shield=True):
                aclose = getattr(self._chunks, "aclose", None)
                if aclose is not None:
                    try:
                        await aclose()
                    except Exception as e:
                        logger.debug("Error while closing %s chunk source: %s", self.provider, e)
                for closer in self._closers:
                    try:
                        await closer()
                    except Exception as e:
                        logger.debug("Error while closing %s stream: %s", self.provider, e)
        finally:
            self._closed = True

        logger.debug("%s stream closed after %d chunks", self.provider, self.chunks_sent)

    async def __aenter__(self) -> ChatStream:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
