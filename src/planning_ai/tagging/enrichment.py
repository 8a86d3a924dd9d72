"""
planning-ai-core — tag context enrichment

File: src/planning_ai/tagging/enrichment.py
Last updated: 2026-10-19

Purpose
- Turn ``@tags`` in a prompt into minimal, bounded entity snapshots and widen the
  request scope to the entities they name.

Functional requirements
- At most ``MAX_TAGS_IN_CONTEXT`` unique tags are resolved per prompt.
- Snapshots are summaries, never full entity dumps; text fields respect the budget's
  per-field cap.
- Scope augmentation only adds ids and include flags; it never removes anything.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Protocol

from jinja2 import Environment, StrictUndefined

from planning_ai.constants import MAX_TAGS_IN_CONTEXT, TAG_CONTEXT_TEXT_LIMIT
from planning_ai.context_plane.budgets import truncate_text
from planning_ai.tagging.parser import parse_tags
from planning_ai.tagging.resolver import (
    SYSTEM_ENTITIES,
    EntityType,
    ResolutionStatus,
    ResolvedTag,
    TagLookup,
    TagResolutionContext,
    TagResolver,
    get_resolved_tags,
)

if TYPE_CHECKING:
    from planning_ai.context_plane.budgets import ContextBudget
    from planning_ai.domain.records import PersonRecord, RoadmapItemRecord, TrackRecord
    from planning_ai.domain.scope import ContextScope


class TagSnapshotLookup(Protocol):
    """Point lookups used to build tag snapshots."""

    def get_track(self, track_id: str) -> TrackRecord | None: ...

    def count_track_items(self, track_id: str) -> int: ...

    def get_roadmap_item(self, item_id: str) -> RoadmapItemRecord | None: ...

    def get_person(self, person_id: str) -> PersonRecord | None: ...

    def get_user_display_name(self, user_id: str) -> str | None: ...

    def count_person_assignments(self, person_id: str) -> int: ...


class TagContextLookup(TagLookup, TagSnapshotLookup, Protocol):
    """Resolution plus snapshot lookups; the in-memory store implements both."""


@dataclass(frozen=True, slots=True)
class TagContextSnapshot:
    entity_type: EntityType
    entity_id: str
    display_name: str
    snapshot: Mapping[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "snapshot", MappingProxyType(dict(self.snapshot)))

    def to_dict(self) -> dict[str, object]:
        return {
            "entity_type": self.entity_type.value,
            "entity_id": self.entity_id,
            "display_name": self.display_name,
            "snapshot": dict(self.snapshot),
        }


@dataclass(frozen=True, slots=True)
class AmbiguousTagSummary:
    tag: str
    matches: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class EnrichedContext:
    original_scope: ContextScope
    tag_snapshots: tuple[TagContextSnapshot, ...] = ()
    resolved_tags: tuple[ResolvedTag, ...] = ()
    unresolved_tags: tuple[str, ...] = ()
    ambiguous_tags: tuple[AmbiguousTagSummary, ...] = ()
    context_summary: str = "No tags found in prompt"

    @property
    def has_tags(self) -> bool:
        return bool(self.resolved_tags or self.unresolved_tags or self.ambiguous_tags)


def enrich_context_with_tags(
    prompt: str,
    base_scope: ContextScope,
    user_id: str,
    lookup: TagContextLookup,
    budget: ContextBudget | None = None,
    *,
    resolver: TagResolver | None = None,
    allow_system_entities: bool = True,
    allow_shared_tracks: bool = True,
    logger: Any | None = None,
) -> EnrichedContext:
    """Resolve the prompt's tags and snapshot every resolved entity."""

    normalized = parse_tags(prompt, logger=logger).unique_normalized()[:MAX_TAGS_IN_CONTEXT]
    if not normalized:
        return EnrichedContext(original_scope=base_scope)

    active_resolver = resolver if resolver is not None else TagResolver(lookup, logger=logger)
    results = active_resolver.resolve_tags(
        normalized,
        TagResolutionContext(
            user_id=user_id,
            project_id=base_scope.project_id,
            allow_system_entities=allow_system_entities,
            allow_shared_tracks=allow_shared_tracks,
        ),
    )

    resolved = get_resolved_tags(results)
    unresolved = tuple(
        item.normalized_tag for item in results if item.status is ResolutionStatus.UNRESOLVED
    )
    ambiguous = tuple(
        AmbiguousTagSummary(
            tag=item.normalized_tag,
            matches=tuple(
                f"{candidate.entity_type.value}: {candidate.display_name}"
                for candidate in item.candidates
            ),
        )
        for item in results
        if item.status is ResolutionStatus.AMBIGUOUS
    )
    return EnrichedContext(
        original_scope=base_scope,
        tag_snapshots=build_tag_snapshots(resolved, lookup, budget),
        resolved_tags=resolved,
        unresolved_tags=unresolved,
        ambiguous_tags=ambiguous,
        context_summary=build_context_summary(resolved, unresolved, ambiguous),
    )


def build_tag_snapshots(
    resolved_tags: Sequence[ResolvedTag],
    lookup: TagSnapshotLookup,
    budget: ContextBudget | None = None,
) -> tuple[TagContextSnapshot, ...]:
    max_length = TAG_CONTEXT_TEXT_LIMIT if budget is None else budget.max_text_length_per_entity
    snapshots: list[TagContextSnapshot] = []
    for tag in get_resolved_tags(resolved_tags):
        if tag.entity_type is None or tag.entity_id is None:
            continue
        snapshot = _entity_snapshot(tag.entity_type, tag.entity_id, lookup, max_length)
        if snapshot is None:
            continue
        snapshots.append(
            TagContextSnapshot(
                entity_type=tag.entity_type,
                entity_id=tag.entity_id,
                display_name=tag.display_name or "Unknown",
                snapshot=snapshot,
            )
        )
    return tuple(snapshots)


def _entity_snapshot(
    entity_type: EntityType,
    entity_id: str,
    lookup: TagSnapshotLookup,
    max_length: int,
) -> dict[str, object] | None:
    if entity_type in (EntityType.TRACK, EntityType.SHARED_TRACK):
        track = lookup.get_track(entity_id)
        if track is None:
            return None
        return {
            "id": track.id,
            "name": truncate_text(track.name, max_length),
            "description": truncate_text(track.description, max_length),
            "color": track.color,
            "is_shared": track.is_shared,
            "parent_track_id": track.parent_track_id,
            "item_count": lookup.count_track_items(track.id),
        }
    if entity_type is EntityType.ROADMAP_ITEM:
        item = lookup.get_roadmap_item(entity_id)
        if item is None:
            return None
        return {
            "id": item.id,
            "title": truncate_text(item.title, max_length),
            "description": truncate_text(item.description, max_length),
            "item_type": item.item_type,
            "status": item.status,
            "deadline": None if item.end_date is None else item.end_date.isoformat(),
            "track_id": item.track_id,
            "estimated_duration": item.estimated_duration,
        }
    if entity_type is EntityType.PERSON:
        return _person_snapshot(entity_id, lookup, max_length)
    if entity_type is EntityType.SYSTEM:
        system = SYSTEM_ENTITIES.get(entity_id)
        if system is None:
            return {"type": "system", "name": entity_id}
        return {"type": "system", "name": system.display_name, "description": system.description}
    return None


def _person_snapshot(
    person_id: str, lookup: TagSnapshotLookup, max_length: int
) -> dict[str, object] | None:
    person = lookup.get_person(person_id)
    if person is not None and not person.is_global:
        return {
            "id": person.id,
            "name": truncate_text(person.name, max_length),
            "role": truncate_text(person.role, max_length),
            "is_project_user": False,
            "assignment_count": lookup.count_person_assignments(person.id),
        }
    display_name = lookup.get_user_display_name(person_id)
    if display_name is not None:
        return {
            "id": person_id,
            "name": truncate_text(display_name, max_length),
            "is_project_user": True,
        }
    if person is not None:
        return {"id": person.id, "name": truncate_text(person.name, max_length), "is_global": True}
    return None


def build_context_summary(
    resolved_tags: Sequence[ResolvedTag],
    unresolved_tags: Sequence[str],
    ambiguous_tags: Sequence[AmbiguousTagSummary],
) -> str:
    """One-line summary, e.g. ``Resolved: 2 track(s), 1 person(s) | Unresolved: foo``."""

    parts: list[str] = []
    if resolved_tags:
        counts: dict[str, int] = {}
        for tag in resolved_tags:
            if tag.entity_type is not None:
                counts[tag.entity_type.value] = counts.get(tag.entity_type.value, 0) + 1
        parts.append(
            "Resolved: " + ", ".join(f"{count} {kind}(s)" for kind, count in counts.items())
        )
    if unresolved_tags:
        parts.append("Unresolved: " + ", ".join(unresolved_tags))
    if ambiguous_tags:
        parts.append("Ambiguous: " + ", ".join(item.tag for item in ambiguous_tags))
    return " | ".join(parts) if parts else "No tags found in prompt"


def augment_scope_with_tags(scope: ContextScope, enriched: EnrichedContext) -> ContextScope:
    """Widen ``scope`` with ids and include flags implied by resolved tags.

    Tagged ids go first so the per-intent caps applied during assembly keep them.
    """

    track_ids: list[str] = []
    item_ids: list[str] = []
    system_keys: set[str] = set()
    has_person = False
    for tag in get_resolved_tags(enriched.resolved_tags):
        if tag.entity_id is None:
            continue
        if tag.entity_type in (EntityType.TRACK, EntityType.SHARED_TRACK):
            track_ids.append(tag.entity_id)
        elif tag.entity_type is EntityType.ROADMAP_ITEM:
            item_ids.append(tag.entity_id)
        elif tag.entity_type is EntityType.SYSTEM:
            system_keys.add(tag.entity_id)
        elif tag.entity_type is EntityType.PERSON:
            has_person = True

    return scope.with_updates(
        track_ids=(*track_ids, *scope.track_ids),
        roadmap_item_ids=(*item_ids, *scope.roadmap_item_ids),
        include_deadlines=scope.include_deadlines or "calendar" in system_keys,
        include_tasks=scope.include_tasks or bool(system_keys & {"tasks", "taskflow"}),
        include_graph=scope.include_graph or "mindmesh" in system_keys,
        include_people=scope.include_people or has_person,
    )


_TAG_TEMPLATE_PATH = Path(__file__).resolve().parent / "templates" / "tag_context.j2"
_ENVIRONMENT = Environment(undefined=StrictUndefined, autoescape=False, newline_sequence="\n")


def format_tag_context(enriched: EnrichedContext) -> str:
    """Render the "Referenced Entities:" block handed to the model."""

    template = _ENVIRONMENT.from_string(_TAG_TEMPLATE_PATH.read_text(encoding="utf-8"))
    return template.render(
        resolved=[
            {
                "tag": tag.normalized_tag,
                "entity_type": "" if tag.entity_type is None else tag.entity_type.value,
                "display_name": tag.display_name or "",
            }
            for tag in enriched.resolved_tags
        ],
        unresolved=list(enriched.unresolved_tags),
        ambiguous=[
            {"tag": item.tag, "matches": list(item.matches)} for item in enriched.ambiguous_tags
        ],
    ).rstrip()


__all__ = [
    "AmbiguousTagSummary",
    "EnrichedContext",
    "TagContextLookup",
    "TagContextSnapshot",
    "TagSnapshotLookup",
    "augment_scope_with_tags",
    "build_context_summary",
    "build_tag_snapshots",
    "enrich_context_with_tags",
    "format_tag_context",
]
