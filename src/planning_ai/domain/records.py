"""Plain read-only records returned by the permission-scoped data lookup collaborator."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from planning_ai.domain.scope import SurfaceType
from planning_ai.utils.validation import (
    as_optional_utc,
    as_utc,
    validate_non_empty_str,
    validate_non_negative_int,
)


@dataclass(frozen=True, slots=True)
class ProjectRecord:
    id: str
    name: str
    description: str | None = None
    project_type: str | None = None
    domain_id: str | None = None
    status: str = "active"
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", validate_non_empty_str(self.id, "ProjectRecord.id"))
        object.__setattr__(
            self, "created_at", as_optional_utc(self.created_at, "ProjectRecord.created_at")
        )


@dataclass(frozen=True, slots=True)
class TrackRecord:
    """A track; ``project_id`` is the track's single primary authority project."""

    id: str
    project_id: str
    name: str
    description: str | None = None
    color: str | None = None
    is_shared: bool = False
    parent_track_id: str | None = None
    order_index: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", validate_non_empty_str(self.id, "TrackRecord.id"))
        object.__setattr__(
            self, "project_id", validate_non_empty_str(self.project_id, "TrackRecord.project_id")
        )


@dataclass(frozen=True, slots=True)
class RoadmapItemRecord:
    id: str
    project_id: str
    track_id: str
    title: str
    description: str | None = None
    status: str = "not_started"
    item_type: str = "task"
    start_date: datetime | None = None
    end_date: datetime | None = None
    estimated_duration: int | None = None
    order_index: int = 0
    parent_item_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", validate_non_empty_str(self.id, "RoadmapItemRecord.id"))
        object.__setattr__(
            self,
            "project_id",
            validate_non_empty_str(self.project_id, "RoadmapItemRecord.project_id"),
        )
        object.__setattr__(
            self, "start_date", as_optional_utc(self.start_date, "RoadmapItemRecord.start_date")
        )
        object.__setattr__(
            self, "end_date", as_optional_utc(self.end_date, "RoadmapItemRecord.end_date")
        )


@dataclass(frozen=True, slots=True)
class PersonRecord:
    """A person; project people carry ``project_id``, global people carry ``created_by``."""

    id: str
    name: str
    project_id: str | None = None
    role: str | None = None
    email: str | None = None
    is_global: bool = False
    created_by: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", validate_non_empty_str(self.id, "PersonRecord.id"))


@dataclass(frozen=True, slots=True)
class ProjectUserRecord:
    user_id: str
    project_id: str
    display_name: str | None = None
    role: str = "viewer"

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "user_id", validate_non_empty_str(self.user_id, "ProjectUserRecord.user_id")
        )


@dataclass(frozen=True, slots=True)
class ActivityRecord:
    id: str
    project_id: str
    user_id: str
    activity_type: str
    entity_type: str
    created_at: datetime
    entity_id: str | None = None
    surface_type: SurfaceType = SurfaceType.PROJECT

    def __post_init__(self) -> None:
        object.__setattr__(self, "created_at", as_utc(self.created_at, "ActivityRecord.created_at"))
        object.__setattr__(self, "surface_type", SurfaceType(self.surface_type))


@dataclass(frozen=True, slots=True)
class SurfaceActivityRecord:
    surface_type: SurfaceType
    activity_count: int
    unique_users: int = 0
    last_activity_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "surface_type", SurfaceType(self.surface_type))
        validate_non_negative_int(self.activity_count, "SurfaceActivityRecord.activity_count")
        validate_non_negative_int(self.unique_users, "SurfaceActivityRecord.unique_users")
        object.__setattr__(
            self,
            "last_activity_at",
            as_optional_utc(self.last_activity_at, "SurfaceActivityRecord.last_activity_at"),
        )


@dataclass(frozen=True, slots=True)
class GraphNodeRecord:
    id: str
    project_id: str
    label: str
    node_type: str
    source_type: str | None = None
    source_entity_id: str | None = None


@dataclass(frozen=True, slots=True)
class GraphEdgeRecord:
    id: str
    from_node_id: str
    to_node_id: str
    edge_type: str


@dataclass(frozen=True, slots=True)
class TaskRecord:
    id: str
    project_id: str
    title: str
    status: str
    synced_roadmap_item_id: str | None = None


__all__ = [
    "ActivityRecord",
    "GraphEdgeRecord",
    "GraphNodeRecord",
    "PersonRecord",
    "ProjectRecord",
    "ProjectUserRecord",
    "RoadmapItemRecord",
    "SurfaceActivityRecord",
    "TaskRecord",
    "TrackRecord",
]
