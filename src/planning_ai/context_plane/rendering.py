"""
planning-ai-core — prompt context rendering

File: src/planning_ai/context_plane/rendering.py
Last updated: 2026-10-19

Purpose
- Render an ``AssembledContext`` (plus an optional tag context block) into the plain-text
  system-prompt section handed to a provider adapter.

Functional requirements
- Must render deterministically for the same inputs.
- Must fail on undefined template variables rather than rendering blanks.

Non-functional requirements
- Rendered text is hashed so audits can reference it without storing it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from jinja2 import Environment, StrictUndefined

from planning_ai.utils.hashing import sha256_text

if TYPE_CHECKING:
    from planning_ai.context_plane.assembler import AssembledContext

DEFAULT_TEMPLATE_NAME = "context.j2"
_BLANK_RUNS = re.compile(r"\n{3,}")


class ContextTemplateError(RuntimeError):
    """Raised when a context template cannot be located."""


@dataclass(frozen=True, slots=True)
class RenderedContext:
    text: str
    text_hash: str
    template_hash: str


class ContextRenderer:
    """Deterministic renderer over bundled jinja2 templates."""

    def __init__(
        self,
        *,
        template_root: Path | str | None = None,
        template_name: str = DEFAULT_TEMPLATE_NAME,
    ) -> None:
        root = Path(template_root) if template_root is not None else _default_template_root()
        template_path = root / template_name
        if not template_path.is_file():
            raise ContextTemplateError(f"context template not found: {template_path}")
        self._environment = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            newline_sequence="\n",
            keep_trailing_newline=False,
        )
        source = template_path.read_text(encoding="utf-8").replace("\r\n", "\n")
        self._template = self._environment.from_string(source)
        self._template_hash = sha256_text(source)

    @property
    def template_hash(self) -> str:
        return self._template_hash

    def render(
        self, context: AssembledContext, tag_context: str | None = None
    ) -> RenderedContext:
        raw = self._template.render(ctx=context.to_dict(), tag_context=tag_context or "")
        text = _BLANK_RUNS.sub("\n\n", raw).strip()
        return RenderedContext(
            text=text,
            text_hash=sha256_text(text),
            template_hash=self._template_hash,
        )


def _default_template_root() -> Path:
    return Path(__file__).resolve().parent / "templates"


__all__ = ["ContextRenderer", "ContextTemplateError", "RenderedContext"]
