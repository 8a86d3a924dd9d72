"""
planning-ai-core — AI draft value objects

File: src/planning_ai/domain/drafts.py
Last updated: 2026-10-19

Purpose
- Model advisory artifacts produced from model output (``AIDraft``) and the
  provenance that ties each draft to the context it was generated from.

Functional requirements
- Drafts are owned by exactly one user and are never authoritative.
- Drafts are immutable values; lifecycle operations return new instances.
- Provenance may be structurally incomplete here; completeness is verified at
  application time so incomplete drafts can still be displayed and discarded.

Non-functional requirements
- ``to_dict`` output is JSON-compatible and deterministic.
"""

from __future__ import annotations

import copy
import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from planning_ai.domain.scope import ContextScope
from planning_ai.utils.validation import (
    as_optional_utc,
    as_utc,
    iso8601z,
    optional_iso8601z,
    validate_non_empty_str,
    validate_optional_str,
)


class DraftType(StrEnum):
    ROADMAP_ITEM = "roadmap_item"
    CHILD_ITEM = "child_item"
    TASK_LIST = "task_list"
    DOCUMENT = "document"
    SUMMARY = "summary"
    INSIGHT = "insight"
    CHECKLIST = "checklist"
    TIMELINE = "timeline"
    BREAKDOWN = "breakdown"
    RISK_ANALYSIS = "risk_analysis"


class DraftStatus(StrEnum):
    GENERATED = "generated"
    EDITED = "edited"
    ACCEPTED = "accepted"
    DISCARDED = "discarded"
    PARTIALLY_APPLIED = "partially_applied"

    @property
    def is_terminal(self) -> bool:
        return self in (DraftStatus.ACCEPTED, DraftStatus.DISCARDED)


class ConfidenceLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _frozen_mapping(value: Mapping[str, Any], field_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise TypeError(f"{field_name} must be a mapping")
    return MappingProxyType(copy.deepcopy(dict(value)))


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(key): _thaw(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_thaw(item) for item in value]
    return value


@dataclass(frozen=True, slots=True)
class DraftProvenance:
    """Where a draft came from: source entities, context snapshot, and generation time."""

    source_entity_ids: tuple[str, ...] = ()
    source_entity_types: tuple[str, ...] = ()
    context_snapshot: Mapping[str, Any] = field(default_factory=dict)
    generated_at: datetime | None = None
    confidence_level: ConfidenceLevel = ConfidenceLevel.MEDIUM
    context_hash: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "source_entity_ids", tuple(self.source_entity_ids))
        object.__setattr__(self, "source_entity_types", tuple(self.source_entity_types))
        object.__setattr__(
            self,
            "context_snapshot",
            _frozen_mapping(self.context_snapshot, "DraftProvenance.context_snapshot"),
        )
        object.__setattr__(
            self, "generated_at", as_optional_utc(self.generated_at, "DraftProvenance.generated_at")
        )
        object.__setattr__(self, "confidence_level", ConfidenceLevel(self.confidence_level))

    def to_dict(self) -> dict[str, object]:
        return {
            "source_entity_ids": list(self.source_entity_ids),
            "source_entity_types": list(self.source_entity_types),
            "context_snapshot": _thaw(self.context_snapshot),
            "generated_at": optional_iso8601z(self.generated_at),
            "confidence_level": self.confidence_level.value,
            "context_hash": self.context_hash,
        }


@dataclass(frozen=True, slots=True)
class AIDraft:
    """Advisory artifact owned by ``user_id``; never written to authoritative storage."""

    id: str
    user_id: str
    draft_type: DraftType
    title: str
    content: Mapping[str, Any]
    created_at: datetime
    updated_at: datetime
    status: DraftStatus = DraftStatus.GENERATED
    project_id: str | None = None
    provenance: DraftProvenance | None = None
    context_scope: ContextScope | None = None
    applied_entity_ids: tuple[str, ...] = ()
    applied_elements: tuple[int, ...] = ()
    applied_at: datetime | None = None
    discarded_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", validate_non_empty_str(self.id, "AIDraft.id"))
        object.__setattr__(self, "user_id", validate_non_empty_str(self.user_id, "AIDraft.user_id"))
        object.__setattr__(self, "draft_type", DraftType(self.draft_type))
        object.__setattr__(self, "status", DraftStatus(self.status))
        object.__setattr__(self, "title", validate_non_empty_str(self.title, "AIDraft.title"))
        object.__setattr__(self, "content", _frozen_mapping(self.content, "AIDraft.content"))
        object.__setattr__(
            self, "project_id", validate_optional_str(self.project_id, "AIDraft.project_id")
        )
        object.__setattr__(self, "created_at", as_utc(self.created_at, "AIDraft.created_at"))
        object.__setattr__(self, "updated_at", as_utc(self.updated_at, "AIDraft.updated_at"))
        object.__setattr__(
            self, "applied_at", as_optional_utc(self.applied_at, "AIDraft.applied_at")
        )
        object.__setattr__(
            self, "discarded_at", as_optional_utc(self.discarded_at, "AIDraft.discarded_at")
        )
        object.__setattr__(self, "applied_entity_ids", tuple(self.applied_entity_ids))
        object.__setattr__(self, "applied_elements", tuple(self.applied_elements))
        if self.provenance is not None and not isinstance(self.provenance, DraftProvenance):
            raise TypeError("AIDraft.provenance must be a DraftProvenance")
        if self.context_scope is not None and not isinstance(self.context_scope, ContextScope):
            raise TypeError("AIDraft.context_scope must be a ContextScope")

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def with_updates(self, **changes: Any) -> AIDraft:
        return dataclasses.replace(self, **changes)

    def element_count(self) -> int:
        """Number of constituent elements addressable by partial application."""

        items = self.content.get("items")
        if isinstance(items, (list, tuple)):
            return len(items)
        return 0

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "project_id": self.project_id,
            "draft_type": self.draft_type.value,
            "status": self.status.value,
            "title": self.title,
            "content": _thaw(self.content),
            "provenance": None if self.provenance is None else self.provenance.to_dict(),
            "context_scope": None if self.context_scope is None else self.context_scope.to_dict(),
            "applied_entity_ids": list(self.applied_entity_ids),
            "applied_elements": list(self.applied_elements),
            "created_at": iso8601z(self.created_at),
            "updated_at": iso8601z(self.updated_at),
            "applied_at": optional_iso8601z(self.applied_at),
            "discarded_at": optional_iso8601z(self.discarded_at),
        }


__all__ = ["AIDraft", "ConfidenceLevel", "DraftProvenance", "DraftStatus", "DraftType"]
