"""AI facade composing provider routing and prompt templates."""

from app.ai.manager import AIManager

__all__ = ["AIManager"]
