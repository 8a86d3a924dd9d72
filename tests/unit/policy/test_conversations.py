"""
planning-ai-core — unit tests for conversation surface rules

File: tests/unit/policy/test_conversations.py
Last updated: 2026-10-19

Purpose
- Validate surface binding, labels and deterministic conversation titles.
"""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from planning_ai.domain.scope import ChatSurface
from planning_ai.errors import InvariantViolationError, ValidationError
from planning_ai.policy.conversations import (
    ConversationBinding,
    generate_conversation_title,
    surface_label,
    validate_conversation_surface,
    validate_conversation_title,
)


@pytest.mark.unit
def test_same_surface_is_accepted(recording_logger) -> None:
    binding = ConversationBinding("c1", "u1", ChatSurface.project("p1"))

    surface = validate_conversation_surface(
        binding, ChatSurface.project("p1"), logger=recording_logger
    )

    assert surface == ChatSurface.project("p1")


@pytest.mark.unit
def test_missing_surface_is_rejected(recording_logger) -> None:
    binding = ConversationBinding("c1", "u1", ChatSurface.personal())

    with pytest.raises(InvariantViolationError) as excinfo:
        validate_conversation_surface(binding, None, logger=recording_logger)

    assert excinfo.value.invariant_name == "NO_CONVERSATION_WITHOUT_SURFACE"


@pytest.mark.unit
def test_switching_surface_type_is_rejected(recording_logger) -> None:
    binding = ConversationBinding("c1", "u1", ChatSurface.personal())

    with pytest.raises(InvariantViolationError) as excinfo:
        validate_conversation_surface(binding, ChatSurface.shared(), logger=recording_logger)

    assert excinfo.value.invariant_name == "NO_SURFACE_SWITCHING"


@pytest.mark.unit
def test_switching_project_is_rejected(recording_logger) -> None:
    binding = ConversationBinding("c1", "u1", ChatSurface.project("p1"))

    with pytest.raises(InvariantViolationError) as excinfo:
        validate_conversation_surface(binding, ChatSurface.project("p2"), logger=recording_logger)

    assert excinfo.value.invariant_name == "PROJECT_SWITCHING_FORBIDDEN"


@pytest.mark.unit
def test_surface_labels() -> None:
    assert surface_label(None) == "Chat"
    assert surface_label(ChatSurface.personal()) == "Personal Space"
    assert surface_label(ChatSurface.shared()) == "Shared Space"
    assert surface_label(ChatSurface.project("p1"), "Website") == "Website"
    assert surface_label(ChatSurface.project("p1")) == "Project"


@pytest.mark.unit
def test_generated_titles() -> None:
    assert generate_conversation_title("hello, world!") == "Hello world"
    assert generate_conversation_title("  ?!  ") == "New Chat"
    assert generate_conversation_title(
        "Can you help me plan the Q3 launch? Thanks!!"
    ) == "Can you help me plan the Q3 launch Thank…"


@pytest.mark.unit
@given(st.text(alphabet=st.characters(max_codepoint=127), max_size=120))
def test_generated_titles_are_bounded(message: str) -> None:
    title = generate_conversation_title(message)

    assert title
    assert len(title) <= 41


@pytest.mark.unit
def test_manual_title_validation() -> None:
    assert validate_conversation_title("  Launch plan ") == "Launch plan"
    with pytest.raises(ValidationError) as excinfo:
        validate_conversation_title("   ")
    assert excinfo.value.field_errors[0].field == "title"
    with pytest.raises(ValidationError, match="200"):
        validate_conversation_title("x" * 201)
