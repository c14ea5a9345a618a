"""Prompt templates stored as JSON files and rendered with Jinja2."""

from app.prompt.exceptions import (
    PromptError,
    TemplateExistsError,
    TemplateNotFoundError,
    TemplateRenderError,
    TemplateValidationError,
)
from app.prompt.manager import PromptManager
from app.prompt.types import PromptMessage, PromptTemplate

__all__ = [
    "PromptError",
    "PromptManager",
    "PromptMessage",
    "PromptTemplate",
    "TemplateExistsError",
    "TemplateNotFoundError",
    "TemplateRenderError",
    "TemplateValidationError",
]
