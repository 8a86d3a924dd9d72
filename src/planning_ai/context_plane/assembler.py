"""
planning-ai-core — context assembler

File: src/planning_ai/context_plane/assembler.py
Last updated: 2026-10-19

Purpose
- Build a bounded, permission-checked, deterministic snapshot of planning data
  for one AI request.

What should be included in this file
- The read-only ``ContextDataLookup`` collaborator contract.
- Assembled entity shapes (project, tracks, items, collaboration, graph, tasks,
  people, deadlines) and the ``AssembledContext`` envelope.
- ``ContextAssembler`` with convenience builders per project, track, roadmap item,
  and chat surface.

Functional requirements
- Fail closed: a project the user cannot access raises ``PermissionDeniedError``
  before anything is fetched.
- Id lists and query limits are capped to the budget before querying.
- Every free-text field is truncated to the budget's per-field cap.
- Budget violations are recorded and logged; they abort only when the caller
  opts in with ``fail_on_budget_violation``.
- ``context_hash`` covers the selected entity ids and the assembly timestamp.

Non-functional requirements
- Idempotent: with a fixed clock and unchanged data, ``to_dict`` is identical.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Protocol

import structlog

from planning_ai.constants import (
    COLLABORATION_WINDOW_DAYS,
    CONTEXT_HASH_LENGTH,
    MOST_ACTIVE_USERS_LIMIT,
)
from planning_ai.context_plane.budgets import (
    BudgetValidation,
    ContextBudget,
    ContextUsage,
    Intent,
    calculate_context_usage,
    get_budget_for_intent,
    truncate_text,
    validate_context_budget,
)
from planning_ai.context_plane.surface_guard import enforce_surface_scope
from planning_ai.domain.scope import ChatSurface, ContextScope, SurfaceType
from planning_ai.errors import (
    BudgetExceededError,
    NotFoundError,
    PermissionDeniedError,
    SurfaceScopeViolationError,
)
from planning_ai.policy.invariants import (
    DEFAULT_POLICY,
    InvariantPolicy,
    assert_permission_boundary,
)
from planning_ai.utils.hashing import short_digest
from planning_ai.utils.validation import (
    iso8601z,
    optional_iso8601z,
    utc_now,
    validate_non_empty_str,
)

if TYPE_CHECKING:
    from planning_ai.domain.records import (
        ActivityRecord,
        GraphEdgeRecord,
        GraphNodeRecord,
        PersonRecord,
        ProjectRecord,
        ProjectUserRecord,
        RoadmapItemRecord,
        SurfaceActivityRecord,
        TaskRecord,
        TrackRecord,
    )

Clock = Callable[[], datetime]


class ContextDataLookup(Protocol):
    """Read-only, permission-scoped queries by entity kind."""

    def can_access_project(self, user_id: str, project_id: str) -> bool: ...

    def get_project(self, project_id: str) -> ProjectRecord | None: ...

    def get_track(self, track_id: str) -> TrackRecord | None: ...

    def get_tracks(self, track_ids: Sequence[str]) -> Sequence[TrackRecord]: ...

    def count_track_items(self, track_id: str) -> int: ...

    def get_roadmap_item(self, item_id: str) -> RoadmapItemRecord | None: ...

    def get_roadmap_items(self, item_ids: Sequence[str]) -> Sequence[RoadmapItemRecord]: ...

    def count_item_children(self, item_id: str) -> int: ...

    def list_collaboration_activity(
        self, project_id: str, *, since: datetime, limit: int
    ) -> Sequence[ActivityRecord]: ...

    def list_surface_activity(
        self, project_id: str, *, since: datetime
    ) -> Sequence[SurfaceActivityRecord]: ...

    def list_graph_nodes(self, project_id: str, *, limit: int) -> Sequence[GraphNodeRecord]: ...

    def list_graph_edges(
        self, node_ids: Sequence[str], *, limit: int
    ) -> Sequence[GraphEdgeRecord]: ...

    def list_tasks(self, project_id: str, *, limit: int) -> Sequence[TaskRecord]: ...

    def list_project_people(
        self, project_id: str, *, limit: int | None = None
    ) -> Sequence[PersonRecord]: ...

    def list_project_users(
        self, project_id: str, *, limit: int | None = None
    ) -> Sequence[ProjectUserRecord]: ...

    def count_person_assignments(self, person_id: str) -> int: ...

    def list_deadline_items(
        self, project_id: str, *, limit: int, before: datetime | None = None
    ) -> Sequence[RoadmapItemRecord]: ...

    def list_project_track_ids(self, project_id: str, *, limit: int) -> Sequence[str]: ...

    def list_track_item_ids(self, track_id: str, *, limit: int) -> Sequence[str]: ...


@dataclass(frozen=True, slots=True)
class ProjectContext:
    id: str
    name: str
    description: str | None
    project_type: str | None
    domain_id: str | None
    status: str
    created_at: datetime | None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "project_type": self.project_type,
            "domain_id": self.domain_id,
            "status": self.status,
            "created_at": optional_iso8601z(self.created_at),
        }


@dataclass(frozen=True, slots=True)
class TrackContext:
    id: str
    project_id: str
    name: str
    description: str | None
    color: str | None
    is_shared: bool
    parent_track_id: str | None
    order_index: int
    item_count: int

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "is_shared": self.is_shared,
            "parent_track_id": self.parent_track_id,
            "order_index": self.order_index,
            "item_count": self.item_count,
        }


@dataclass(frozen=True, slots=True)
class RoadmapItemContext:
    id: str
    track_id: str
    title: str
    description: str | None
    status: str
    item_type: str
    deadline: datetime | None
    estimated_duration: int | None
    order_index: int
    has_children: bool
    children_count: int

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "track_id": self.track_id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "item_type": self.item_type,
            "deadline": optional_iso8601z(self.deadline),
            "estimated_duration": self.estimated_duration,
            "order_index": self.order_index,
            "has_children": self.has_children,
            "children_count": self.children_count,
        }


@dataclass(frozen=True, slots=True)
class ActivityContext:
    activity_type: str
    entity_type: str
    timestamp: datetime

    def to_dict(self) -> dict[str, object]:
        return {
            "activity_type": self.activity_type,
            "entity_type": self.entity_type,
            "timestamp": iso8601z(self.timestamp),
        }


@dataclass(frozen=True, slots=True)
class UserActivityCount:
    user_id: str
    activity_count: int

    def to_dict(self) -> dict[str, object]:
        return {"user_id": self.user_id, "activity_count": self.activity_count}


@dataclass(frozen=True, slots=True)
class SurfaceActivityContext:
    surface_type: SurfaceType
    activity_count: int
    unique_users: int

    def to_dict(self) -> dict[str, object]:
        return {
            "surface_type": self.surface_type.value,
            "activity_count": self.activity_count,
            "unique_users": self.unique_users,
        }


@dataclass(frozen=True, slots=True)
class CollaborationContext:
    total_collaborators: int
    recent_activity: tuple[ActivityContext, ...]
    most_active_users: tuple[UserActivityCount, ...]
    surface_activity: tuple[SurfaceActivityContext, ...]

    def to_dict(self) -> dict[str, object]:
        return {
            "total_collaborators": self.total_collaborators,
            "recent_activity": [item.to_dict() for item in self.recent_activity],
            "most_active_users": [item.to_dict() for item in self.most_active_users],
            "surface_activity": [item.to_dict() for item in self.surface_activity],
        }


@dataclass(frozen=True, slots=True)
class GraphNodeContext:
    id: str
    label: str
    node_type: str
    source_type: str | None
    source_entity_id: str | None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "label": self.label,
            "node_type": self.node_type,
            "source_type": self.source_type,
            "source_entity_id": self.source_entity_id,
        }


@dataclass(frozen=True, slots=True)
class GraphEdgeContext:
    id: str
    from_node_id: str
    to_node_id: str
    edge_type: str

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "from_node_id": self.from_node_id,
            "to_node_id": self.to_node_id,
            "edge_type": self.edge_type,
        }


@dataclass(frozen=True, slots=True)
class GraphContext:
    nodes: tuple[GraphNodeContext, ...]
    edges: tuple[GraphEdgeContext, ...]

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    def to_dict(self) -> dict[str, object]:
        return {
            "node_count": self.node_count,
            "edge_count": self.edge_count,
            "nodes": [item.to_dict() for item in self.nodes],
            "edges": [item.to_dict() for item in self.edges],
        }


@dataclass(frozen=True, slots=True)
class TaskItemContext:
    id: str
    title: str
    status: str
    synced_roadmap_item_id: str | None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "synced_roadmap_item_id": self.synced_roadmap_item_id,
        }


@dataclass(frozen=True, slots=True)
class TaskContext:
    tasks: tuple[TaskItemContext, ...]
    status_breakdown: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "status_breakdown", MappingProxyType(dict(sorted(self.status_breakdown.items())))
        )

    @property
    def task_count(self) -> int:
        return len(self.tasks)

    def to_dict(self) -> dict[str, object]:
        return {
            "task_count": self.task_count,
            "status_breakdown": dict(self.status_breakdown),
            "tasks": [item.to_dict() for item in self.tasks],
        }


@dataclass(frozen=True, slots=True)
class PersonContext:
    id: str
    name: str
    role: str | None
    is_project_user: bool
    assignment_count: int

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "is_project_user": self.is_project_user,
            "assignment_count": self.assignment_count,
        }


@dataclass(frozen=True, slots=True)
class DeadlineContext:
    item_id: str
    item_title: str
    deadline: datetime
    status: str
    days_until_deadline: int
    is_overdue: bool
    track_id: str

    def to_dict(self) -> dict[str, object]:
        return {
            "item_id": self.item_id,
            "item_title": self.item_title,
            "deadline": iso8601z(self.deadline),
            "status": self.status,
            "days_until_deadline": self.days_until_deadline,
            "is_overdue": self.is_overdue,
            "track_id": self.track_id,
        }


@dataclass(frozen=True, slots=True)
class AssembledContext:
    """Bounded snapshot handed to the execution layer."""

    scope: ContextScope
    assembled_at: datetime
    budget: ContextBudget
    intent: Intent | None = None
    project: ProjectContext | None = None
    tracks: tuple[TrackContext, ...] = ()
    roadmap_items: tuple[RoadmapItemContext, ...] = ()
    collaboration: CollaborationContext | None = None
    graph: GraphContext | None = None
    tasks: TaskContext | None = None
    people: tuple[PersonContext, ...] = ()
    deadlines: tuple[DeadlineContext, ...] = ()
    budget_violations: tuple[str, ...] = ()
    context_hash: str = ""

    @property
    def within_budget(self) -> bool:
        return not self.budget_violations

    def selected_track_ids(self) -> tuple[str, ...]:
        return tuple(track.id for track in self.tracks)

    def selected_item_ids(self) -> tuple[str, ...]:
        return tuple(item.id for item in self.roadmap_items)

    def source_entities(self) -> tuple[tuple[str, str], ...]:
        """``(entity_type, entity_id)`` pairs used for draft provenance."""

        pairs: list[tuple[str, str]] = []
        if self.project is not None:
            pairs.append(("project", self.project.id))
        pairs.extend(("track", track.id) for track in self.tracks)
        pairs.extend(("roadmap_item", item.id) for item in self.roadmap_items)
        return tuple(pairs)

    def iter_text_fields(self) -> Iterator[str]:
        """Every free-text field subject to the per-field cap."""

        if self.project is not None:
            yield self.project.name
            if self.project.description:
                yield self.project.description
        for track in self.tracks:
            yield track.name
            if track.description:
                yield track.description
        for item in self.roadmap_items:
            yield item.title
            if item.description:
                yield item.description
        if self.graph is not None:
            for node in self.graph.nodes:
                yield node.label
        if self.tasks is not None:
            for task in self.tasks.tasks:
                yield task.title
        for person in self.people:
            yield person.name
            if person.role:
                yield person.role
        for deadline in self.deadlines:
            yield deadline.item_title

    def to_dict(self) -> dict[str, object]:
        return {
            "scope": self.scope.to_dict(),
            "assembled_at": iso8601z(self.assembled_at),
            "intent": None if self.intent is None else self.intent.value,
            "budget": self.budget.to_dict(),
            "project": None if self.project is None else self.project.to_dict(),
            "tracks": [item.to_dict() for item in self.tracks],
            "roadmap_items": [item.to_dict() for item in self.roadmap_items],
            "collaboration": None if self.collaboration is None else self.collaboration.to_dict(),
            "graph": None if self.graph is None else self.graph.to_dict(),
            "tasks": None if self.tasks is None else self.tasks.to_dict(),
            "people": [item.to_dict() for item in self.people],
            "deadlines": [item.to_dict() for item in self.deadlines],
            "budget_violations": list(self.budget_violations),
            "context_hash": self.context_hash,
        }


def compute_context_hash(
    project_id: str | None,
    track_ids: Sequence[str],
    item_ids: Sequence[str],
    assembled_at: datetime,
) -> str:
    """Stable provenance hash over selected ids and the assembly timestamp."""

    return short_digest(
        {
            "project_id": project_id,
            "track_ids": sorted(track_ids),
            "item_ids": sorted(item_ids),
            "assembled_at": iso8601z(assembled_at),
        },
        length=CONTEXT_HASH_LENGTH,
    )


class ContextAssembler:
    """Assemble bounded, permission-checked context snapshots."""

    def __init__(
        self,
        lookup: ContextDataLookup,
        *,
        policy: InvariantPolicy = DEFAULT_POLICY,
        clock: Clock = utc_now,
        fail_on_budget_violation: bool = False,
        collaboration_window_days: int = COLLABORATION_WINDOW_DAYS,
        logger: Any | None = None,
    ) -> None:
        if collaboration_window_days <= 0:
            raise ValueError("collaboration_window_days must be > 0")
        self._lookup = lookup
        self._policy = policy
        self._clock = clock
        self._fail_on_budget_violation = fail_on_budget_violation
        self._collaboration_window_days = collaboration_window_days
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def assemble(
        self,
        scope: ContextScope,
        user_id: str,
        intent: Intent | str | None = None,
        *,
        fail_on_budget_violation: bool | None = None,
    ) -> AssembledContext:
        user_id = validate_non_empty_str(user_id, "user_id")
        lookup = self._lookup
        if scope.project_id is not None and not lookup.can_access_project(
            user_id, scope.project_id
        ):
            self._logger.info(
                "context_permission_denied", user_id=user_id, resource="project"
            )
            raise PermissionDeniedError(
                "User does not have access to project",
                details={"user_id": user_id, "project_id": scope.project_id},
            )

        resolved_intent = _coerce_intent(intent)
        budget = get_budget_for_intent(resolved_intent)
        now = self._clock()
        text_cap = budget.max_text_length_per_entity

        project = self._project(scope.project_id, text_cap)
        tracks = self._tracks(scope, user_id, budget)
        items = self._roadmap_items(scope, user_id, budget)

        collaboration: CollaborationContext | None = None
        graph: GraphContext | None = None
        tasks: TaskContext | None = None
        people: tuple[PersonContext, ...] = ()
        deadlines: tuple[DeadlineContext, ...] = ()
        if scope.project_id is not None:
            if scope.include_collaboration:
                collaboration = self._collaboration(scope, budget, now)
            if scope.include_graph:
                graph = self._graph(scope.project_id, budget)
            if scope.include_tasks:
                tasks = self._tasks(scope.project_id, budget)
            if scope.include_people:
                people = self._people(scope.project_id, budget)
            if scope.include_deadlines:
                deadlines = self._deadlines(scope, budget, now)

        draft = AssembledContext(
            scope=scope,
            assembled_at=now,
            budget=budget,
            intent=resolved_intent,
            project=project,
            tracks=tracks,
            roadmap_items=items,
            collaboration=collaboration,
            graph=graph,
            tasks=tasks,
            people=people,
            deadlines=deadlines,
        )
        usage = calculate_context_usage(draft)
        validation = validate_context_budget(usage, budget)
        context_hash = compute_context_hash(
            scope.project_id, draft.selected_track_ids(), draft.selected_item_ids(), now
        )
        self._report_budget(validation, usage, resolved_intent)

        should_fail = (
            self._fail_on_budget_violation
            if fail_on_budget_violation is None
            else fail_on_budget_violation
        )
        if should_fail and not validation.valid:
            raise BudgetExceededError(validation.violations)

        assembled = AssembledContext(
            scope=draft.scope,
            assembled_at=draft.assembled_at,
            budget=draft.budget,
            intent=draft.intent,
            project=draft.project,
            tracks=draft.tracks,
            roadmap_items=draft.roadmap_items,
            collaboration=draft.collaboration,
            graph=draft.graph,
            tasks=draft.tasks,
            people=draft.people,
            deadlines=draft.deadlines,
            budget_violations=validation.violations,
            context_hash=context_hash,
        )
        self._logger.info(
            "context_assembled",
            intent=None if resolved_intent is None else resolved_intent.value,
            context_hash=context_hash,
            usage=usage.to_dict(),
            budget_violation_count=len(validation.violations),
        )
        return assembled

    def assemble_for_surface(
        self,
        scope: ContextScope,
        user_id: str,
        surface: ChatSurface,
        intent: Intent | str | None = None,
        *,
        fail_on_budget_violation: bool | None = None,
    ) -> AssembledContext:
        """Enforce surface isolation, then assemble."""

        enforce_surface_scope(scope, surface, policy=self._policy, logger=self._logger)
        context = self.assemble(
            scope, user_id, intent, fail_on_budget_violation=fail_on_budget_violation
        )
        if surface.surface_type is SurfaceType.SHARED:
            private = [track.id for track in context.tracks if not track.is_shared]
            if private:
                self._logger.info(
                    "surface_scope_violation",
                    surface_type=surface.surface_type.value,
                    violation_count=len(private),
                )
                raise SurfaceScopeViolationError(
                    "Shared surface can only access shared tracks and shared collaboration "
                    "metadata",
                    violations=[f"track {track_id} is not shared" for track_id in private],
                    context={"surface": surface.to_dict()},
                )
        return context

    def assemble_for_project(
        self,
        project_id: str,
        user_id: str,
        intent: Intent | str | None = None,
    ) -> AssembledContext:
        """All data kinds for one project, tracks capped to the intent budget."""

        if not self._lookup.can_access_project(user_id, project_id):
            raise PermissionDeniedError(
                "User does not have access to project",
                details={"user_id": user_id, "project_id": project_id},
            )
        budget = get_budget_for_intent(_coerce_intent(intent))
        track_ids = self._lookup.list_project_track_ids(project_id, limit=budget.max_tracks)
        scope = ContextScope(
            project_id=project_id,
            track_ids=tuple(track_ids)[: budget.max_tracks],
            include_collaboration=True,
            include_graph=True,
            include_tasks=True,
            include_people=True,
            include_deadlines=True,
        )
        return self.assemble(scope, user_id, intent)

    def assemble_for_track(
        self,
        track_id: str,
        user_id: str,
        intent: Intent | str | None = None,
    ) -> AssembledContext:
        track = self._lookup.get_track(track_id)
        if track is None:
            raise NotFoundError("track", track_id)
        budget = get_budget_for_intent(_coerce_intent(intent))
        if not self._lookup.can_access_project(user_id, track.project_id):
            raise PermissionDeniedError(
                "User does not have access to track",
                details={"user_id": user_id, "track_id": track_id},
            )
        item_ids = self._lookup.list_track_item_ids(track_id, limit=budget.max_roadmap_items)
        scope = ContextScope(
            project_id=track.project_id,
            track_ids=(track.id,),
            roadmap_item_ids=tuple(item_ids)[: budget.max_roadmap_items],
            include_deadlines=True,
        )
        return self.assemble(scope, user_id, intent)

    def assemble_for_roadmap_item(
        self,
        item_id: str,
        user_id: str,
        intent: Intent | str | None = None,
    ) -> AssembledContext:
        item = self._lookup.get_roadmap_item(item_id)
        if item is None:
            raise NotFoundError("roadmap_item", item_id)
        if not self._lookup.can_access_project(user_id, item.project_id):
            raise PermissionDeniedError(
                "User does not have access to roadmap item",
                details={"user_id": user_id, "item_id": item_id},
            )
        scope = ContextScope(
            project_id=item.project_id,
            track_ids=(item.track_id,),
            roadmap_item_ids=(item.id,),
        )
        return self.assemble(scope, user_id, intent)

    def _project(self, project_id: str | None, text_cap: int) -> ProjectContext | None:
        if project_id is None:
            return None
        record = self._lookup.get_project(project_id)
        if record is None:
            return None
        return ProjectContext(
            id=record.id,
            name=_cap(record.name, text_cap),
            description=truncate_text(record.description, text_cap),
            project_type=record.project_type,
            domain_id=record.domain_id,
            status=record.status,
            created_at=record.created_at,
        )

    def _check_record_access(
        self, user_id: str, scope: ContextScope, entity_project_id: str, operation: str
    ) -> None:
        if not self._lookup.can_access_project(user_id, entity_project_id):
            self._logger.info("context_permission_denied", user_id=user_id, resource=operation)
            raise PermissionDeniedError(
                "User does not have access to referenced entity",
                details={"user_id": user_id, "operation": operation},
            )
        if scope.project_id is not None:
            assert_permission_boundary(
                operation,
                user_id,
                scope.project_id,
                entity_project_id,
                permission_checked=True,
                policy=self._policy,
                logger=self._logger,
            )

    def _tracks(
        self, scope: ContextScope, user_id: str, budget: ContextBudget
    ) -> tuple[TrackContext, ...]:
        if not scope.track_ids:
            return ()
        capped = scope.track_ids[: budget.max_tracks]
        records = [
            record for record in self._lookup.get_tracks(capped) if record.id in set(capped)
        ]
        text_cap = budget.max_text_length_per_entity
        out: list[TrackContext] = []
        for record in sorted(records, key=lambda item: (item.order_index, item.id)):
            self._check_record_access(user_id, scope, record.project_id, "read_track")
            out.append(
                TrackContext(
                    id=record.id,
                    project_id=record.project_id,
                    name=_cap(record.name, text_cap),
                    description=truncate_text(record.description, text_cap),
                    color=record.color,
                    is_shared=record.is_shared,
                    parent_track_id=record.parent_track_id,
                    order_index=record.order_index,
                    item_count=self._lookup.count_track_items(record.id),
                )
            )
        return tuple(out[: budget.max_tracks])

    def _roadmap_items(
        self, scope: ContextScope, user_id: str, budget: ContextBudget
    ) -> tuple[RoadmapItemContext, ...]:
        if not scope.roadmap_item_ids:
            return ()
        capped = scope.roadmap_item_ids[: budget.max_roadmap_items]
        records = [
            record for record in self._lookup.get_roadmap_items(capped) if record.id in set(capped)
        ]
        text_cap = budget.max_text_length_per_entity
        out: list[RoadmapItemContext] = []
        for record in sorted(records, key=lambda item: (item.order_index, item.id)):
            self._check_record_access(user_id, scope, record.project_id, "read_roadmap_item")
            children = self._lookup.count_item_children(record.id)
            out.append(
                RoadmapItemContext(
                    id=record.id,
                    track_id=record.track_id,
                    title=_cap(record.title, text_cap),
                    description=truncate_text(record.description, text_cap),
                    status=record.status,
                    item_type=record.item_type,
                    deadline=record.end_date,
                    estimated_duration=record.estimated_duration,
                    order_index=record.order_index,
                    has_children=children > 0,
                    children_count=children,
                )
            )
        return tuple(out[: budget.max_roadmap_items])

    def _collaboration(
        self, scope: ContextScope, budget: ContextBudget, now: datetime
    ) -> CollaborationContext:
        assert scope.project_id is not None
        since = now - timedelta(days=self._collaboration_window_days)
        if scope.time_window is not None and scope.time_window.start is not None:
            since = scope.time_window.start
        limit = budget.max_collaboration_events
        records = sorted(
            self._lookup.list_collaboration_activity(scope.project_id, since=since, limit=limit),
            key=lambda item: (-item.created_at.timestamp(), item.id),
        )[:limit]

        counts: Counter[str] = Counter()
        first_seen: dict[str, int] = {}
        for index, record in enumerate(records):
            counts[record.user_id] += 1
            first_seen.setdefault(record.user_id, index)
        most_active = sorted(counts.items(), key=lambda pair: (-pair[1], first_seen[pair[0]]))

        surface_rows = self._lookup.list_surface_activity(scope.project_id, since=since)
        return CollaborationContext(
            total_collaborators=len(counts),
            recent_activity=tuple(
                ActivityContext(
                    activity_type=record.activity_type,
                    entity_type=record.entity_type,
                    timestamp=record.created_at,
                )
                for record in records
            ),
            most_active_users=tuple(
                UserActivityCount(user_id=user, activity_count=count)
                for user, count in most_active[:MOST_ACTIVE_USERS_LIMIT]
            ),
            surface_activity=tuple(
                SurfaceActivityContext(
                    surface_type=row.surface_type,
                    activity_count=row.activity_count,
                    unique_users=row.unique_users,
                )
                for row in sorted(surface_rows, key=lambda row: row.surface_type.value)
            ),
        )

    def _graph(self, project_id: str, budget: ContextBudget) -> GraphContext:
        text_cap = budget.max_text_length_per_entity
        nodes = list(self._lookup.list_graph_nodes(project_id, limit=budget.max_graph_nodes))[
            : budget.max_graph_nodes
        ]
        node_ids = [node.id for node in nodes]
        edges = (
            list(self._lookup.list_graph_edges(node_ids, limit=budget.max_graph_edges))[
                : budget.max_graph_edges
            ]
            if node_ids
            else []
        )
        return GraphContext(
            nodes=tuple(
                GraphNodeContext(
                    id=node.id,
                    label=_cap(node.label, text_cap),
                    node_type=node.node_type,
                    source_type=node.source_type,
                    source_entity_id=node.source_entity_id,
                )
                for node in nodes
            ),
            edges=tuple(
                GraphEdgeContext(
                    id=edge.id,
                    from_node_id=edge.from_node_id,
                    to_node_id=edge.to_node_id,
                    edge_type=edge.edge_type,
                )
                for edge in edges
            ),
        )

    def _tasks(self, project_id: str, budget: ContextBudget) -> TaskContext:
        text_cap = budget.max_text_length_per_entity
        records = list(self._lookup.list_tasks(project_id, limit=budget.max_tasks))[
            : budget.max_tasks
        ]
        breakdown: Counter[str] = Counter(record.status for record in records)
        return TaskContext(
            tasks=tuple(
                TaskItemContext(
                    id=record.id,
                    title=_cap(record.title, text_cap),
                    status=record.status,
                    synced_roadmap_item_id=record.synced_roadmap_item_id,
                )
                for record in records
            ),
            status_breakdown=dict(breakdown),
        )

    def _people(self, project_id: str, budget: ContextBudget) -> tuple[PersonContext, ...]:
        text_cap = budget.max_text_length_per_entity
        max_people = budget.max_people
        people: list[PersonContext] = []
        for person in list(self._lookup.list_project_people(project_id, limit=max_people))[
            :max_people
        ]:
            people.append(
                PersonContext(
                    id=person.id,
                    name=_cap(person.name, text_cap),
                    role=truncate_text(person.role, text_cap),
                    is_project_user=False,
                    assignment_count=self._lookup.count_person_assignments(person.id),
                )
            )
        remaining = max_people - len(people)
        if remaining > 0:
            users = list(self._lookup.list_project_users(project_id, limit=remaining))[:remaining]
            for user in users:
                people.append(
                    PersonContext(
                        id=user.user_id,
                        name=_cap(user.display_name or "Unknown User", text_cap),
                        role=truncate_text(user.role, text_cap),
                        is_project_user=True,
                        assignment_count=0,
                    )
                )
        return tuple(people)

    def _deadlines(
        self, scope: ContextScope, budget: ContextBudget, now: datetime
    ) -> tuple[DeadlineContext, ...]:
        assert scope.project_id is not None
        text_cap = budget.max_text_length_per_entity
        before = None if scope.time_window is None else scope.time_window.end
        records = [
            record
            for record in self._lookup.list_deadline_items(
                scope.project_id, limit=budget.max_deadlines, before=before
            )
            if record.end_date is not None and (before is None or record.end_date <= before)
        ]
        records.sort(key=lambda record: (record.end_date, record.id))
        out: list[DeadlineContext] = []
        for record in records[: budget.max_deadlines]:
            assert record.end_date is not None
            days = days_until(record.end_date, now)
            out.append(
                DeadlineContext(
                    item_id=record.id,
                    item_title=_cap(record.title, text_cap),
                    deadline=record.end_date,
                    status=record.status,
                    days_until_deadline=days,
                    is_overdue=days < 0,
                    track_id=record.track_id,
                )
            )
        return tuple(out)

    def _report_budget(
        self, validation: BudgetValidation, usage: ContextUsage, intent: Intent | None
    ) -> None:
        if validation.valid:
            return
        self._logger.info(
            "context_budget_violation",
            intent=None if intent is None else intent.value,
            violations=list(validation.violations),
            usage=usage.to_dict(),
        )


def days_until(deadline: datetime, now: datetime) -> int:
    """Whole days until ``deadline``, rounded up; negative when overdue."""

    return math.ceil((deadline - now) / timedelta(days=1))


def _cap(text: str, max_length: int) -> str:
    truncated = truncate_text(text, max_length)
    return "" if truncated is None else truncated


def _coerce_intent(intent: Intent | str | None) -> Intent | None:
    if intent is None:
        return None
    try:
        return Intent(intent)
    except ValueError:
        return None


__all__ = [
    "ActivityContext",
    "AssembledContext",
    "CollaborationContext",
    "ContextAssembler",
    "ContextDataLookup",
    "DeadlineContext",
    "GraphContext",
    "GraphEdgeContext",
    "GraphNodeContext",
    "PersonContext",
    "ProjectContext",
    "RoadmapItemContext",
    "SurfaceActivityContext",
    "TaskContext",
    "TaskItemContext",
    "TrackContext",
    "UserActivityCount",
    "compute_context_hash",
    "days_until",
]
