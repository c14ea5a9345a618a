"""Request/response models for the diagnostic /test endpoints."""

from pydantic import BaseModel, Field


class PingResponse(BaseModel):
    message: str
    time: str


class HelloResponse(BaseModel):
    message: str
    version: str


class LoggerResponse(BaseModel):
    message: str
    level: str


class SuccessResponse(BaseModel):
    message: str
    status: str


class ErrorResponse(BaseModel):
    message: str
    code: int


class LongRequest(BaseModel):
    duration: int = Field(0, ge=0, le=10, description="Seconds to sleep")


class LongResponse(BaseModel):
    message: str
    duration: int


class StreamRequest(BaseModel):
    name: str = Field(..., min_length=1)
