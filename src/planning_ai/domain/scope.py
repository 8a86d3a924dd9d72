"""
planning-ai-core — request scope and chat surface value objects

File: src/planning_ai/domain/scope.py
Last updated: 2026-10-19

Purpose
- Describe what a single AI request may pull into context (``ContextScope``).
- Describe the isolation boundary a conversation lives in (``ChatSurface``).

Functional requirements
- Scopes are immutable and built per request; id collections keep first-seen order
  and never contain duplicates.
- A project surface always carries a project id; personal and shared surfaces never do.

Non-functional requirements
- No IO; safe to construct in hot paths.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from planning_ai.errors import InvariantViolationError
from planning_ai.utils.validation import (
    as_optional_utc,
    optional_iso8601z,
    validate_id_tuple,
    validate_optional_str,
)

if TYPE_CHECKING:
    from datetime import datetime


class SurfaceType(StrEnum):
    """Conversation isolation boundary."""

    PROJECT = "project"
    PERSONAL = "personal"
    SHARED = "shared"


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Optional inclusive bounds applied to time-based context slices."""

    start: datetime | None = None
    end: datetime | None = None

    def __post_init__(self) -> None:
        start = as_optional_utc(self.start, "TimeWindow.start")
        end = as_optional_utc(self.end, "TimeWindow.end")
        if start is not None and end is not None and start > end:
            raise ValueError("TimeWindow.start must be <= TimeWindow.end")
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    def to_dict(self) -> dict[str, str | None]:
        return {"start": optional_iso8601z(self.start), "end": optional_iso8601z(self.end)}


@dataclass(frozen=True, slots=True)
class ContextScope:
    """What one AI request is allowed to reference."""

    project_id: str | None = None
    track_ids: tuple[str, ...] = ()
    roadmap_item_ids: tuple[str, ...] = ()
    include_collaboration: bool = False
    include_graph: bool = False
    include_tasks: bool = False
    include_people: bool = False
    include_deadlines: bool = False
    time_window: TimeWindow | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "project_id", validate_optional_str(self.project_id, "ContextScope.project_id")
        )
        object.__setattr__(
            self, "track_ids", validate_id_tuple(self.track_ids, "ContextScope.track_ids")
        )
        object.__setattr__(
            self,
            "roadmap_item_ids",
            validate_id_tuple(self.roadmap_item_ids, "ContextScope.roadmap_item_ids"),
        )
        for flag in (
            "include_collaboration",
            "include_graph",
            "include_tasks",
            "include_people",
            "include_deadlines",
        ):
            object.__setattr__(self, flag, bool(getattr(self, flag)))
        if self.time_window is not None and not isinstance(self.time_window, TimeWindow):
            raise TypeError("ContextScope.time_window must be a TimeWindow")

    def with_updates(self, **changes: Any) -> ContextScope:
        return dataclasses.replace(self, **changes)

    @property
    def requests_project_data(self) -> bool:
        """True when the scope names any project-authoritative reference."""

        return bool(self.project_id or self.track_ids or self.roadmap_item_ids)

    def to_dict(self) -> dict[str, object]:
        return {
            "project_id": self.project_id,
            "track_ids": list(self.track_ids),
            "roadmap_item_ids": list(self.roadmap_item_ids),
            "include_collaboration": self.include_collaboration,
            "include_graph": self.include_graph,
            "include_tasks": self.include_tasks,
            "include_people": self.include_people,
            "include_deadlines": self.include_deadlines,
            "time_window": None if self.time_window is None else self.time_window.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class ChatSurface:
    """Isolation boundary for a conversation."""

    surface_type: SurfaceType
    project_id: str | None = None

    def __post_init__(self) -> None:
        surface_type = SurfaceType(self.surface_type)
        project_id = validate_optional_str(self.project_id, "ChatSurface.project_id")
        object.__setattr__(self, "surface_type", surface_type)
        object.__setattr__(self, "project_id", project_id)
        if surface_type is SurfaceType.PROJECT and project_id is None:
            raise InvariantViolationError(
                "CHAT_SURFACE_PROJECT_BINDING",
                {"surface_type": surface_type.value},
                "Project surface requires a project id",
            )
        if surface_type is not SurfaceType.PROJECT and project_id is not None:
            raise InvariantViolationError(
                "CHAT_SURFACE_PROJECT_BINDING",
                {"surface_type": surface_type.value, "project_id": project_id},
                f"{surface_type.value.capitalize()} surface cannot carry a project id",
            )

    @classmethod
    def project(cls, project_id: str) -> ChatSurface:
        return cls(SurfaceType.PROJECT, project_id)

    @classmethod
    def personal(cls) -> ChatSurface:
        return cls(SurfaceType.PERSONAL)

    @classmethod
    def shared(cls) -> ChatSurface:
        return cls(SurfaceType.SHARED)

    def to_dict(self) -> dict[str, str | None]:
        return {"surface_type": self.surface_type.value, "project_id": self.project_id}


__all__ = ["ChatSurface", "ContextScope", "SurfaceType", "TimeWindow"]
