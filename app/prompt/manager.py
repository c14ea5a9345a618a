"""File-backed prompt template manager.

Templates live under the prompt directory as ``<path>.json`` (nested paths
such as ``chat/greeting`` map to sub-directories). Message contents are
Jinja2 templates rendered with ``StrictUndefined``, so a missing variable is
an error rather than an empty string.

Usage:
    manager = PromptManager()
    tmpl = manager.get_template("example", {"user_name": "Ada"})
    for msg in tmpl.messages:
        print(msg.role, msg.content)
"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any

from jinja2 import Environment, StrictUndefined, TemplateError
from pydantic import ValidationError

from app.prompt.exceptions import (
    TemplateExistsError,
    TemplateNotFoundError,
    TemplateRenderError,
    TemplateValidationError,
)
from app.prompt.types import PromptMessage, PromptTemplate

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".json"
UNIX_TIME_FORMAT = "%Y年%m月%d日 %H时%M分"


# ---------------------------------------------------------------------------
# Template helpers
# ---------------------------------------------------------------------------


def add(a: int, b: int) -> int:
    return int(a) + int(b)


def unix_to_time(timestamp: int | float) -> str:
    """Format a unix timestamp in local time."""
    return datetime.fromtimestamp(int(timestamp)).strftime(UNIX_TIME_FORMAT)


def _build_environment() -> Environment:
    env = Environment(undefined=StrictUndefined, keep_trailing_newline=True, autoescape=False)
    env.globals.update(add=add, unix_to_time=unix_to_time)
    env.filters.update(add=add, unix_to_time=unix_to_time)
    return env


def render_text(env: Environment, text: str, variables: dict[str, Any]) -> str:
    if not text:
        return ""
    return env.from_string(text).render(**variables)


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class PromptManager:
    """CRUD and rendering for JSON prompt templates."""

    def __init__(self, base_dir: str | Path | None = None):
        """
        Args:
            base_dir: Template directory; defaults to ``ai.prompt.dir`` from
                the live settings, re-read on every call
        """
        self._base_dir = Path(base_dir) if base_dir is not None else None
        self._env = _build_environment()

    @property
    def base_dir(self) -> Path:
        if self._base_dir is not None:
            return self._base_dir
        from app.core.config import get_settings

        return Path(get_settings().ai.prompt.dir)

    def _resolve(self, path: str, suffix: str = TEMPLATE_SUFFIX) -> Path:
        """Map a template path to a file under the base dir."""
        path = (path or "").strip().strip("/")
        if not path:
            raise TemplateValidationError("path cannot be empty")

        base = self.base_dir.resolve()
        target = (base / f"{path}{suffix}").resolve()
        if target != base and base not in target.parents:
            raise TemplateValidationError(f"path '{path}' escapes the template directory")
        return target

    def _load(self, path: str) -> PromptTemplate:
        file_path = self._resolve(path)
        if not file_path.is_file():
            raise TemplateNotFoundError(f"template '{path}' not found")
        try:
            return PromptTemplate.model_validate_json(file_path.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise TemplateValidationError(f"failed to load template '{path}': {e}") from e

    def _save(self, file_path: Path, tmpl: PromptTemplate) -> None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(tmpl.to_json(), encoding="utf-8")

    def get_template(self, path: str, variables: dict[str, Any] | None = None) -> PromptTemplate:
        """Load a template; render its messages when ``variables`` is given."""
        tmpl = self._load(path)
        if variables is None:
            return tmpl

        messages = []
        for i, msg in enumerate(tmpl.messages):
            try:
                content = render_text(self._env, msg.content, variables)
            except TemplateError as e:
                raise TemplateRenderError(f"failed to replace variables in message {i} of '{path}': {e}") from e
            messages.append(PromptMessage(role=msg.role, content=content))

        return PromptTemplate(
            name=tmpl.name,
            description=tmpl.description,
            variables=tmpl.variables,
            messages=messages,
        )

    def list_templates(self, prefix: str = "") -> list[str]:
        """Relative template paths (no extension), optionally under ``prefix``."""
        base = self.base_dir.resolve()
        search_dir = self._resolve(prefix, suffix="") if prefix.strip("/ ") else base
        if not search_dir.is_dir():
            return []
        return sorted(
            file_path.relative_to(base).with_suffix("").as_posix()
            for file_path in search_dir.rglob(f"*{TEMPLATE_SUFFIX}")
            if file_path.is_file()
        )

    def create_template(self, path: str, tmpl: PromptTemplate) -> None:
        file_path = self._resolve(path)
        if not tmpl.messages:
            raise TemplateValidationError("template must have at least one message")
        if file_path.exists():
            raise TemplateExistsError(f"template '{path}' already exists")
        self._save(file_path, tmpl)
        logger.info("Prompt template created: %s", path)

    def update_template(self, path: str, tmpl: PromptTemplate) -> None:
        file_path = self._resolve(path)
        if not file_path.is_file():
            raise TemplateNotFoundError(f"template '{path}' does not exist")
        self._save(file_path, tmpl)
        logger.info("Prompt template updated: %s", path)

    def delete_template(self, path: str) -> None:
        """Delete a template file, or a whole directory of templates."""
        file_path = self._resolve(path)
        if file_path.is_file():
            file_path.unlink()
            logger.info("Prompt template deleted: %s", path)
            return

        dir_path = self._resolve(path, suffix="")
        if dir_path != self.base_dir.resolve() and dir_path.is_dir():
            shutil.rmtree(dir_path)
            logger.info("Prompt template directory deleted: %s", path)
            return

        raise TemplateNotFoundError(f"template '{path}' not found")
