"""Stable constants shared across orchestration planes."""

from __future__ import annotations

from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1
ROUTE_CONFIG_SCHEMA_VERSION: Final[int] = 1
INVARIANT_POLICY_VERSION: Final[str] = "2025.12"

# Tag parsing and enrichment limits.
MAX_TAGS_PER_INPUT: Final[int] = 5
MAX_TAGS_IN_CONTEXT: Final[int] = 5
TAG_CONTEXT_TEXT_LIMIT: Final[int] = 1000
DEFAULT_SUGGESTION_LIMIT: Final[int] = 10

# Context assembly.
TRUNCATION_MARKER: Final[str] = "..."
COLLABORATION_WINDOW_DAYS: Final[int] = 30
CONTEXT_HASH_LENGTH: Final[int] = 16
MOST_ACTIVE_USERS_LIMIT: Final[int] = 5

# Structural policy.
MAX_COMPOSITION_DEPTH: Final[int] = 3

# Conversation titles.
CONVERSATION_TITLE_MAX_LENGTH: Final[int] = 40
DEFAULT_CONVERSATION_TITLE: Final[str] = "New Chat"

__all__ = [
    "COLLABORATION_WINDOW_DAYS",
    "CONFIG_SCHEMA_VERSION",
    "CONTEXT_HASH_LENGTH",
    "CONVERSATION_TITLE_MAX_LENGTH",
    "DEFAULT_CONVERSATION_TITLE",
    "DEFAULT_SUGGESTION_LIMIT",
    "INVARIANT_POLICY_VERSION",
    "MAX_COMPOSITION_DEPTH",
    "MAX_TAGS_IN_CONTEXT",
    "MAX_TAGS_PER_INPUT",
    "MOST_ACTIVE_USERS_LIMIT",
    "ROUTE_CONFIG_SCHEMA_VERSION",
    "TAG_CONTEXT_TEXT_LIMIT",
    "TRUNCATION_MARKER",
]
