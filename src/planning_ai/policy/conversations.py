"""
planning-ai-core — conversation surface rules

File: src/planning_ai/policy/conversations.py
Last updated: 2026-10-19

Purpose
- Bind a conversation to the surface it was created on, and label and title conversations.

Functional requirements
- A conversation never changes surface type, and a project conversation never
  changes project.
- Titles derived from a first message are deterministic.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Final, Protocol

from planning_ai.constants import CONVERSATION_TITLE_MAX_LENGTH, DEFAULT_CONVERSATION_TITLE
from planning_ai.domain.scope import ChatSurface, SurfaceType
from planning_ai.errors import FieldError, InvariantViolationError, ValidationError
from planning_ai.policy.invariants import (
    DEFAULT_POLICY,
    InvariantPolicy,
    assert_chat_surface_required,
    assert_no_surface_switching,
)
from planning_ai.utils.validation import validate_non_empty_str

MAX_MANUAL_TITLE_LENGTH: Final[int] = 200
TITLE_ELLIPSIS: Final[str] = "…"

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE_RUN = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class ConversationBinding:
    """A conversation and the surface it was created on."""

    conversation_id: str
    user_id: str
    surface: ChatSurface

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "conversation_id",
            validate_non_empty_str(self.conversation_id, "ConversationBinding.conversation_id"),
        )
        object.__setattr__(
            self, "user_id", validate_non_empty_str(self.user_id, "ConversationBinding.user_id")
        )


class ConversationLookup(Protocol):
    def get_conversation(self, conversation_id: str) -> ConversationBinding | None: ...


def validate_conversation_surface(
    binding: ConversationBinding,
    requested_surface: ChatSurface | None,
    *,
    policy: InvariantPolicy = DEFAULT_POLICY,
    logger: Any | None = None,
) -> ChatSurface:
    """Confirm ``requested_surface`` is the conversation's own surface and return it."""

    assert_chat_surface_required(
        binding.conversation_id, requested_surface, policy=policy, logger=logger
    )
    assert requested_surface is not None
    current = binding.surface
    assert_no_surface_switching(
        binding.conversation_id,
        current.surface_type.value,
        requested_surface.surface_type.value,
        policy=policy,
        logger=logger,
    )
    if (
        current.surface_type is SurfaceType.PROJECT
        and current.project_id != requested_surface.project_id
    ):
        raise InvariantViolationError(
            "PROJECT_SWITCHING_FORBIDDEN",
            {
                "conversation_id": binding.conversation_id,
                "current_project_id": current.project_id,
                "requested_project_id": requested_surface.project_id,
            },
            "Cannot switch projects within a conversation",
        )
    return requested_surface


def surface_label(surface: ChatSurface | None, project_name: str | None = None) -> str:
    if surface is None:
        return "Chat"
    if surface.surface_type is SurfaceType.PERSONAL:
        return "Personal Space"
    if surface.surface_type is SurfaceType.SHARED:
        return "Shared Space"
    if surface.surface_type is SurfaceType.PROJECT:
        return project_name or "Project"
    return "Chat"


def generate_conversation_title(message: str) -> str:
    """Deterministic title from a first message; ``"New Chat"`` when nothing usable remains."""

    cleaned = _WHITESPACE_RUN.sub(" ", _PUNCTUATION.sub(" ", message.strip())).strip()
    if not cleaned:
        return DEFAULT_CONVERSATION_TITLE
    if len(cleaned) > CONVERSATION_TITLE_MAX_LENGTH:
        cleaned = cleaned[:CONVERSATION_TITLE_MAX_LENGTH].strip() + TITLE_ELLIPSIS
    return cleaned[0].upper() + cleaned[1:]


def validate_conversation_title(title: str | None) -> str:
    """Validate a manually entered title and return it stripped."""

    text = (title or "").strip()
    if not text:
        raise ValidationError(
            "Title cannot be empty", (FieldError("title", "Title cannot be empty"),)
        )
    if len(text) > MAX_MANUAL_TITLE_LENGTH:
        message = f"Title cannot exceed {MAX_MANUAL_TITLE_LENGTH} characters"
        raise ValidationError(message, (FieldError("title", message),))
    return text


__all__ = [
    "ConversationBinding",
    "ConversationLookup",
    "MAX_MANUAL_TITLE_LENGTH",
    "generate_conversation_title",
    "surface_label",
    "validate_conversation_surface",
    "validate_conversation_title",
]
