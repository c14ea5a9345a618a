"""Relay a provider ChatStream to an HTTP client as Server-Sent Events.

Wire format:
  - every chunk:           ``data: <chunk json>``
  - idle keep-alive:       ``event: heartbeat`` with empty data
  - upstream broke:        ``event: error`` with ``{"message": ...}``
  - end of stream:         ``data: [DONE]``

The upstream is pulled one chunk at a time, so a slow client slows the
upstream read. When the client goes away the generator is closed or cancelled;
the pending read is cancelled and the ChatStream closed in a shielded scope.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import anyio
from fastapi.responses import StreamingResponse

from app.provider.exceptions import ProviderStreamError
from app.provider.stream import ChatStream
from app.provider.types import ChatStreamResponse

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL = 15.0
DONE_SENTINEL = "[DONE]"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_event(data: Any, event: str | None = None) -> str:
    """Encode one SSE event. Non-string data is JSON-encoded."""
    if not isinstance(data, str):
        data = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
    lines = [f"event: {event}"] if event else []
    lines.extend(f"data: {line}" for line in data.split("\n"))
    return "\n".join(lines) + "\n\n"


async def _next_chunk(stream: ChatStream) -> ChatStreamResponse | None:
    try:
        return await stream.__anext__()
    except StopAsyncIteration:
        return None


async def relay_chat_stream(
    stream: ChatStream,
    heartbeat_interval: float = HEARTBEAT_INTERVAL,
) -> AsyncIterator[str]:
    """Yield SSE frames for ``stream``, with heartbeats while it is idle."""
    pending: asyncio.Future | None = None
    try:
        while True:
            if pending is None:
                pending = asyncio.ensure_future(_next_chunk(stream))

            done, _ = await asyncio.wait({pending}, timeout=heartbeat_interval)
            if not done:
                yield format_event("", event="heartbeat")
                continue

            task, pending = pending, None
            try:
                chunk = task.result()
            except ProviderStreamError as e:
                logger.warning("Relaying stream error to client: %s", e)
                yield format_event({"message": str(e), "provider": e.provider}, event="error")
                break

            if chunk is None:
                break
            yield format_event(chunk.to_dict())

        yield format_event(DONE_SENTINEL)
    finally:
        with anyio.CancelScope(shield=True):
            if pending is not None:
                pending.cancel()
                # asyncio.wait does not forward our own cancellation to the read
                await asyncio.wait({pending})
                if not pending.cancelled() and pending.exception() is not None:
                    logger.debug("Pending read ended with: %s", pending.exception())
            await stream.aclose()


def sse_response(stream: ChatStream, heartbeat_interval: float = HEARTBEAT_INTERVAL) -> StreamingResponse:
    return StreamingResponse(
        relay_chat_stream(stream, heartbeat_interval),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
