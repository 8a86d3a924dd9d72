"""
planning-ai-core — tag resolver

File: src/planning_ai/tagging/resolver.py
Last updated: 2026-10-19

Purpose
- Map normalized ``@tags`` to concrete entities the requesting user may access.

What should be included in this file
- Fixed candidate-source priorities (lower number wins):
  system entities 0, tracks 1, roadmap items 2, people 3, shared tracks 4,
  global people 5 (only when no project is given).
- Exact, case-insensitive, punctuation-insensitive name matching.
- Ambiguity detection: a tie at the best priority is never silently broken.

Functional requirements
- Every lookup is scoped to entities the user may access; a project the user
  cannot access contributes no candidates.
- Each tag is resolved independently so resolution can run in parallel.

Non-functional requirements
- Deterministic for identical inputs and identical lookup data.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final, Protocol

import structlog

from planning_ai.tagging.parser import normalize_entity_name
from planning_ai.utils.validation import validate_non_empty_str, validate_optional_str

if TYPE_CHECKING:
    from planning_ai.domain.records import (
        PersonRecord,
        ProjectUserRecord,
        RoadmapItemRecord,
        TrackRecord,
    )


class EntityType(StrEnum):
    TRACK = "track"
    ROADMAP_ITEM = "roadmap_item"
    PERSON = "person"
    SYSTEM = "system"
    SHARED_TRACK = "shared_track"


class ResolutionStatus(StrEnum):
    RESOLVED = "resolved"
    AMBIGUOUS = "ambiguous"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True, slots=True)
class SystemEntity:
    """Built-in, non-project entity addressable by tag."""

    key: str
    display_name: str
    description: str
    subtitle: str


SYSTEM_ENTITIES: Final[Mapping[str, SystemEntity]] = MappingProxyType(
    {
        "calendar": SystemEntity(
            "calendar", "Calendar", "User calendar and events", "Events and deadlines"
        ),
        "tasks": SystemEntity("tasks", "Tasks", "User task list", "Task list"),
        "habits": SystemEntity("habits", "Habits", "User habit tracking", "Habit tracking"),
        "goals": SystemEntity("goals", "Goals", "User goals", "Personal goals"),
        "taskflow": SystemEntity("taskflow", "Task Flow", "Project task flow board", "Task board"),
        "mindmesh": SystemEntity(
            "mindmesh", "Mind Mesh", "Project knowledge graph", "Knowledge graph"
        ),
        "roadmap": SystemEntity("roadmap", "Roadmap", "Project roadmap", "Project roadmap"),
    }
)

PRIORITY_SYSTEM: Final[int] = 0
PRIORITY_TRACK: Final[int] = 1
PRIORITY_ROADMAP_ITEM: Final[int] = 2
PRIORITY_PERSON: Final[int] = 3
PRIORITY_SHARED_TRACK: Final[int] = 4
PRIORITY_GLOBAL_PERSON: Final[int] = 5


class TagLookup(Protocol):
    """Read-only, permission-scoped entity lookups used for tag resolution."""

    def can_access_project(self, user_id: str, project_id: str) -> bool: ...

    def list_project_tracks(self, project_id: str) -> Sequence[TrackRecord]: ...

    def list_project_items(self, project_id: str) -> Sequence[RoadmapItemRecord]: ...

    def list_project_people(
        self, project_id: str, *, limit: int | None = None
    ) -> Sequence[PersonRecord]: ...

    def list_project_users(
        self, project_id: str, *, limit: int | None = None
    ) -> Sequence[ProjectUserRecord]: ...

    def list_shared_tracks(self) -> Sequence[TrackRecord]: ...

    def list_global_people(self, user_id: str) -> Sequence[PersonRecord]: ...


@dataclass(frozen=True, slots=True)
class TagResolutionContext:
    user_id: str
    project_id: str | None = None
    allow_system_entities: bool = True
    allow_shared_tracks: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "user_id", validate_non_empty_str(self.user_id, "TagResolutionContext.user_id")
        )
        object.__setattr__(
            self,
            "project_id",
            validate_optional_str(self.project_id, "TagResolutionContext.project_id"),
        )


@dataclass(frozen=True, slots=True)
class TagCandidate:
    """One entity whose normalized display name equals the tag."""

    entity_type: EntityType
    entity_id: str
    display_name: str
    priority: int
    metadata: Mapping[str, object] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "entity_type": self.entity_type.value,
            "entity_id": self.entity_id,
            "display_name": self.display_name,
            "priority": self.priority,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True, slots=True)
class ResolvedTag:
    """Resolution outcome for one normalized tag."""

    raw_tag: str
    normalized_tag: str
    status: ResolutionStatus
    entity_type: EntityType | None = None
    entity_id: str | None = None
    display_name: str | None = None
    metadata: Mapping[str, object] = field(default_factory=dict)
    candidates: tuple[TagCandidate, ...] = ()

    def __post_init__(self) -> None:
        if self.status is ResolutionStatus.RESOLVED:
            if self.entity_type is None or self.entity_id is None or self.display_name is None:
                raise ValueError("resolved tags must reference exactly one entity")
        elif self.status is ResolutionStatus.AMBIGUOUS:
            if len(self.candidates) < 2:
                raise ValueError("ambiguous tags must carry at least two candidates")
            if len({candidate.priority for candidate in self.candidates}) != 1:
                raise ValueError("ambiguous candidates must share one priority")
        elif self.entity_id is not None:
            raise ValueError("unresolved tags cannot reference an entity")

    @property
    def is_resolved(self) -> bool:
        return self.status is ResolutionStatus.RESOLVED

    def to_dict(self) -> dict[str, object]:
        return {
            "raw_tag": self.raw_tag,
            "normalized_tag": self.normalized_tag,
            "status": self.status.value,
            "entity_type": None if self.entity_type is None else self.entity_type.value,
            "entity_id": self.entity_id,
            "display_name": self.display_name,
            "metadata": dict(self.metadata),
            "candidates": [candidate.to_dict() for candidate in self.candidates],
        }


class TagResolver:
    """Resolve normalized tags against system entities and permission-scoped lookups."""

    def __init__(self, lookup: TagLookup, *, logger: Any | None = None) -> None:
        self._lookup = lookup
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def resolve_tag(
        self,
        tag: str,
        context: TagResolutionContext,
        *,
        raw_tag: str | None = None,
    ) -> ResolvedTag:
        normalized = normalize_entity_name(tag)
        raw = raw_tag if raw_tag is not None else f"@{normalized}"
        if not normalized:
            return ResolvedTag(raw, normalized, ResolutionStatus.UNRESOLVED)

        if context.allow_system_entities:
            system = SYSTEM_ENTITIES.get(normalized)
            if system is not None:
                resolved = ResolvedTag(
                    raw_tag=raw,
                    normalized_tag=normalized,
                    status=ResolutionStatus.RESOLVED,
                    entity_type=EntityType.SYSTEM,
                    entity_id=system.key,
                    display_name=system.display_name,
                    metadata={"is_system": True},
                )
                self._log(resolved, candidate_count=1)
                return resolved

        candidates = self.find_candidates(normalized, context)
        resolved = _decide(raw, normalized, candidates)
        self._log(resolved, candidate_count=len(candidates))
        return resolved

    def resolve_tags(
        self,
        tags: Sequence[str],
        context: TagResolutionContext,
        *,
        max_workers: int = 1,
    ) -> tuple[ResolvedTag, ...]:
        """Resolve each tag independently; output order matches input order."""

        if max_workers <= 1 or len(tags) <= 1:
            return tuple(self.resolve_tag(tag, context) for tag in tags)
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return tuple(pool.map(lambda tag: self.resolve_tag(tag, context), tags))

    def find_candidates(
        self, normalized: str, context: TagResolutionContext
    ) -> tuple[TagCandidate, ...]:
        """All accessible non-system candidates matching ``normalized``, in source order."""

        lookup = self._lookup
        found: list[TagCandidate] = []

        if context.project_id is None:
            for person in lookup.list_global_people(context.user_id):
                if person.created_by != context.user_id:
                    continue
                if normalize_entity_name(person.name) == normalized:
                    found.append(
                        TagCandidate(
                            EntityType.PERSON,
                            person.id,
                            person.name,
                            PRIORITY_GLOBAL_PERSON,
                            {"is_global": True},
                        )
                    )
            return tuple(found)

        project_id = context.project_id
        if not lookup.can_access_project(context.user_id, project_id):
            return ()

        track_ids: set[str] = set()
        for track in lookup.list_project_tracks(project_id):
            if track.project_id != project_id:
                continue
            track_ids.add(track.id)
            if normalize_entity_name(track.name) == normalized:
                found.append(
                    TagCandidate(
                        EntityType.TRACK,
                        track.id,
                        track.name,
                        PRIORITY_TRACK,
                        {"is_shared": track.is_shared, "parent_track_id": track.parent_track_id},
                    )
                )

        for item in lookup.list_project_items(project_id):
            if item.project_id != project_id:
                continue
            if normalize_entity_name(item.title) == normalized:
                found.append(
                    TagCandidate(
                        EntityType.ROADMAP_ITEM,
                        item.id,
                        item.title,
                        PRIORITY_ROADMAP_ITEM,
                        {"track_id": item.track_id, "item_type": item.item_type},
                    )
                )

        for person in lookup.list_project_people(project_id):
            if normalize_entity_name(person.name) == normalized:
                found.append(
                    TagCandidate(
                        EntityType.PERSON,
                        person.id,
                        person.name,
                        PRIORITY_PERSON,
                        {"role": person.role, "source": "project_people"},
                    )
                )
        for user in lookup.list_project_users(project_id):
            if user.display_name and normalize_entity_name(user.display_name) == normalized:
                found.append(
                    TagCandidate(
                        EntityType.PERSON,
                        user.user_id,
                        user.display_name,
                        PRIORITY_PERSON,
                        {"role": user.role, "source": "project_users"},
                    )
                )

        if context.allow_shared_tracks:
            for track in lookup.list_shared_tracks():
                if not track.is_shared or track.id in track_ids:
                    continue
                if normalize_entity_name(track.name) != normalized:
                    continue
                if not lookup.can_access_project(context.user_id, track.project_id):
                    continue
                found.append(
                    TagCandidate(
                        EntityType.SHARED_TRACK,
                        track.id,
                        track.name,
                        PRIORITY_SHARED_TRACK,
                        {"is_shared": True, "source_project_id": track.project_id},
                    )
                )

        return tuple(found)

    def _log(self, resolved: ResolvedTag, *, candidate_count: int) -> None:
        self._logger.info(
            "tag_resolved",
            tag=resolved.normalized_tag,
            status=resolved.status.value,
            entity_type=None if resolved.entity_type is None else resolved.entity_type.value,
            candidate_count=candidate_count,
        )


def _decide(raw: str, normalized: str, candidates: Sequence[TagCandidate]) -> ResolvedTag:
    if not candidates:
        return ResolvedTag(raw, normalized, ResolutionStatus.UNRESOLVED)

    best = min(candidate.priority for candidate in candidates)
    tied = tuple(candidate for candidate in candidates if candidate.priority == best)
    if len(tied) == 1:
        winner = tied[0]
        return ResolvedTag(
            raw_tag=raw,
            normalized_tag=normalized,
            status=ResolutionStatus.RESOLVED,
            entity_type=winner.entity_type,
            entity_id=winner.entity_id,
            display_name=winner.display_name,
            metadata=winner.metadata,
        )
    return ResolvedTag(
        raw_tag=raw,
        normalized_tag=normalized,
        status=ResolutionStatus.AMBIGUOUS,
        candidates=tied,
    )


def get_resolved_tags(results: Sequence[ResolvedTag]) -> tuple[ResolvedTag, ...]:
    return tuple(item for item in results if item.status is ResolutionStatus.RESOLVED)


def get_unresolved_tags(results: Sequence[ResolvedTag]) -> tuple[ResolvedTag, ...]:
    return tuple(item for item in results if item.status is ResolutionStatus.UNRESOLVED)


def get_ambiguous_tags(results: Sequence[ResolvedTag]) -> tuple[ResolvedTag, ...]:
    return tuple(item for item in results if item.status is ResolutionStatus.AMBIGUOUS)


def group_resolved_tags_by_type(
    results: Sequence[ResolvedTag],
) -> dict[EntityType, tuple[ResolvedTag, ...]]:
    grouped: dict[EntityType, list[ResolvedTag]] = {kind: [] for kind in EntityType}
    for item in get_resolved_tags(results):
        assert item.entity_type is not None
        grouped[item.entity_type].append(item)
    return {kind: tuple(items) for kind, items in grouped.items()}


__all__ = [
    "EntityType",
    "PRIORITY_GLOBAL_PERSON",
    "PRIORITY_PERSON",
    "PRIORITY_ROADMAP_ITEM",
    "PRIORITY_SHARED_TRACK",
    "PRIORITY_SYSTEM",
    "PRIORITY_TRACK",
    "ResolutionStatus",
    "ResolvedTag",
    "SYSTEM_ENTITIES",
    "SystemEntity",
    "TagCandidate",
    "TagLookup",
    "TagResolutionContext",
    "TagResolver",
    "get_ambiguous_tags",
    "get_resolved_tags",
    "get_unresolved_tags",
    "group_resolved_tags_by_type",
]
