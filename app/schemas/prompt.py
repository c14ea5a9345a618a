from typing import Any

from pydantic import BaseModel, Field

from app.prompt.types import PromptTemplate


class TemplateListResponse(BaseModel):
    templates: list[str]


class TemplateCreate(BaseModel):
    path: str = Field(..., min_length=1, description="Template path, e.g. 'chat/greeting'")
    template: PromptTemplate


class TemplateRender(BaseModel):
    variables: dict[str, Any] = Field(default_factory=dict)
