"""AI chat endpoints routed through the provider registry."""

from fastapi import APIRouter, Depends, Request

from app.ai.manager import AIManager
from app.core.dependencies import get_ai_manager
from app.core.rate_limit import ai_rate_limit, limiter
from app.provider.types import ChatRequest
from app.schemas.ai import ChatIn
from app.services.sse import sse_response

router = APIRouter(prefix="/ai", tags=["ai"])


def _build_request(body: ChatIn, manager: AIManager) -> ChatRequest:
    if body.template:
        return body.to_request(manager.render_messages(body.template, body.variables))
    return body.to_request()


@router.post("/chat")
@limiter.limit(ai_rate_limit)
async def chat(
    request: Request,
    body: ChatIn,
    manager: AIManager = Depends(get_ai_manager),
):
    """One-shot chat completion, normalized to the OpenAI response shape."""
    response = await manager.chat(_build_request(body, manager))
    return response.to_dict()


@router.post("/chat/stream")
@limiter.limit(ai_rate_limit)
async def chat_stream(
    request: Request,
    body: ChatIn,
    manager: AIManager = Depends(get_ai_manager),
):
    """Streamed chat completion relayed as Server-Sent Events."""
    stream = await manager.chat_stream(_build_request(body, manager))
    return sse_response(stream)


@router.get("/stats")
async def stats(manager: AIManager = Depends(get_ai_manager)):
    return manager.get_stats()
