"""Diagnostic endpoints: liveness, logging, error rendering and SSE streaming."""

import asyncio
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request

from app.ai.manager import AIManager
from app.core.config import get_settings
from app.core.dependencies import get_ai_manager
from app.core.exceptions import ERR_INTERNAL_SERVER
from app.core.rate_limit import ai_rate_limit, limiter
from app.provider.types import ChatRequest
from app.schemas.test import (
    ErrorResponse,
    HelloResponse,
    LoggerResponse,
    LongRequest,
    LongResponse,
    PingResponse,
    StreamRequest,
    SuccessResponse,
)
from app.services.sse import sse_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/test", tags=["test"])

STREAM_TEMPLATE = "example"


@router.get("/ping", response_model=PingResponse)
async def ping():
    return PingResponse(message="Pong successfully!", time=datetime.now().astimezone().isoformat(timespec="seconds"))


@router.get("/hello", response_model=HelloResponse)
async def hello():
    return HelloResponse(message="Hello, ai-scaffold!", version=get_settings().app_version)


@router.get("/logger", response_model=LoggerResponse)
async def log_test():
    logger.info("Test logger endpoint called")
    return LoggerResponse(message="Log test succeeded!", level="info")


@router.get("/success", response_model=SuccessResponse)
async def success():
    return SuccessResponse(message="Successful response validation passed!", status="success")


@router.get("/error", response_model=ErrorResponse)
async def error():
    return ErrorResponse(message="Server exception", code=ERR_INTERNAL_SERVER)


@router.get("/error-middleware")
async def error_middleware():
    # Rendered by the unhandled-exception handler
    raise RuntimeError("Test panic for recovery middleware")


@router.post("/long", response_model=LongResponse)
async def long_request(body: LongRequest):
    await asyncio.sleep(body.duration)
    return LongResponse(message="Simulated long-running request completed!", duration=body.duration)


@router.post("/stream")
@limiter.limit(ai_rate_limit)
async def stream(
    request: Request,
    body: StreamRequest,
    manager: AIManager = Depends(get_ai_manager),
):
    """Render the ``example`` prompt for ``name`` and relay the AI reply as SSE."""
    variables = {
        "user_name": body.name,
        "greet_time": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        "user_message": f"This is a message from {body.name}",
    }
    messages = manager.render_messages(STREAM_TEMPLATE, variables)
    chat_stream = await manager.chat_stream(ChatRequest(messages=messages))
    return sse_response(chat_stream)
