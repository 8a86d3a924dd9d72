"""Permission-safe ``@tag`` autocomplete over the same sources used for resolution."""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Final

from planning_ai.constants import DEFAULT_SUGGESTION_LIMIT
from planning_ai.tagging.parser import TAG_PATTERN, normalize_entity_name
from planning_ai.tagging.resolver import SYSTEM_ENTITIES, EntityType, TagLookup

_RECENT_SUGGESTION_POOL: Final[int] = 50

_ITEM_TYPE_LABELS: Final[Mapping[str, str]] = {
    "milestone": "Milestone",
    "task": "Task",
    "phase": "Phase",
    "event": "Event",
    "deliverable": "Deliverable",
    "decision": "Decision",
}


@dataclass(frozen=True, slots=True)
class TagSuggestion:
    normalized_tag: str
    display_name: str
    entity_type: EntityType
    entity_id: str
    subtitle: str | None = None
    metadata: Mapping[str, object] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "normalized_tag": self.normalized_tag,
            "display_name": self.display_name,
            "entity_type": self.entity_type.value,
            "entity_id": self.entity_id,
            "subtitle": self.subtitle,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True, slots=True)
class TagSuggestionContext:
    user_id: str
    project_id: str | None = None
    include_system_entities: bool = True
    include_shared_tracks: bool = True
    limit: int = DEFAULT_SUGGESTION_LIMIT

    def __post_init__(self) -> None:
        if self.limit <= 0:
            raise ValueError("TagSuggestionContext.limit must be > 0")


def relevance_score(suggestion: TagSuggestion, query: str) -> int:
    """Exact beats prefix beats substring, on the tag and on the display name."""

    score = 0
    tag = suggestion.normalized_tag
    if tag == query:
        score += 100
    elif tag.startswith(query):
        score += 50
    elif query in tag:
        score += 25

    name = suggestion.display_name.lower()
    if name == query:
        score += 90
    elif name.startswith(query):
        score += 40
    elif query in name:
        score += 20

    if suggestion.entity_type is EntityType.SYSTEM:
        score += 10
    return score


def get_tag_suggestions(
    query: str,
    context: TagSuggestionContext,
    lookup: TagLookup,
) -> list[TagSuggestion]:
    normalized_query = normalize_entity_name(query)
    lowered_query = query.lower()

    def matches(name: str) -> bool:
        return normalized_query in normalize_entity_name(name) or lowered_query in name.lower()

    suggestions: list[TagSuggestion] = []
    if context.include_system_entities:
        suggestions.extend(
            TagSuggestion(
                normalized_tag=entity.key,
                display_name=entity.display_name,
                entity_type=EntityType.SYSTEM,
                entity_id=entity.key,
                subtitle=entity.subtitle,
            )
            for entity in SYSTEM_ENTITIES.values()
            if matches(entity.display_name) or normalized_query in entity.key
        )

    if context.project_id is None:
        suggestions.extend(
            TagSuggestion(
                normalized_tag=normalize_entity_name(person.name),
                display_name=person.name,
                entity_type=EntityType.PERSON,
                entity_id=person.id,
                subtitle="Global Person",
                metadata={"is_global": True},
            )
            for person in lookup.list_global_people(context.user_id)
            if person.created_by == context.user_id and matches(person.name)
        )
    elif lookup.can_access_project(context.user_id, context.project_id):
        suggestions.extend(_project_suggestions(context.project_id, lookup, matches))
        if context.include_shared_tracks:
            suggestions.extend(
                TagSuggestion(
                    normalized_tag=normalize_entity_name(track.name),
                    display_name=track.name,
                    entity_type=EntityType.SHARED_TRACK,
                    entity_id=track.id,
                    subtitle="Shared Track",
                    metadata={"color": track.color, "source_project_id": track.project_id},
                )
                for track in lookup.list_shared_tracks()
                if track.is_shared
                and track.project_id != context.project_id
                and matches(track.name)
                and lookup.can_access_project(context.user_id, track.project_id)
            )

    ranked = sorted(suggestions, key=lambda item: -relevance_score(item, normalized_query))
    return ranked[: context.limit]


def _project_suggestions(
    project_id: str, lookup: TagLookup, matches: Callable[[str], bool]
) -> Iterator[TagSuggestion]:
    for track in lookup.list_project_tracks(project_id):
        if track.project_id == project_id and matches(track.name):
            yield TagSuggestion(
                normalized_tag=normalize_entity_name(track.name),
                display_name=track.name,
                entity_type=EntityType.TRACK,
                entity_id=track.id,
                subtitle="Shared Track" if track.is_shared else "Track",
                metadata={
                    "color": track.color,
                    "is_shared": track.is_shared,
                    "parent_track_id": track.parent_track_id,
                },
            )
    for item in lookup.list_project_items(project_id):
        if item.project_id == project_id and matches(item.title):
            yield TagSuggestion(
                normalized_tag=normalize_entity_name(item.title),
                display_name=item.title,
                entity_type=EntityType.ROADMAP_ITEM,
                entity_id=item.id,
                subtitle=_ITEM_TYPE_LABELS.get(item.item_type, "Item"),
                metadata={"item_type": item.item_type, "status": item.status},
            )
    for person in lookup.list_project_people(project_id):
        if matches(person.name):
            yield TagSuggestion(
                normalized_tag=normalize_entity_name(person.name),
                display_name=person.name,
                entity_type=EntityType.PERSON,
                entity_id=person.id,
                subtitle=person.role or "Team Member",
                metadata={"role": person.role},
            )
    for user in lookup.list_project_users(project_id):
        if user.display_name and matches(user.display_name):
            yield TagSuggestion(
                normalized_tag=normalize_entity_name(user.display_name),
                display_name=user.display_name,
                entity_type=EntityType.PERSON,
                entity_id=user.user_id,
                subtitle=user.role or "Project User",
                metadata={"role": user.role, "is_project_user": True},
            )


def get_recently_used_tags(
    prompts: Sequence[str],
    context: TagSuggestionContext,
    lookup: TagLookup,
    *,
    limit: int = 5,
) -> list[TagSuggestion]:
    """Suggestions for the ``limit`` tags used most often across ``prompts``."""

    counts: Counter[str] = Counter()
    for prompt in prompts:
        for match in TAG_PATTERN.finditer(prompt):
            counts[match.group(1).lower()] += 1
    top = {tag for tag, _ in counts.most_common(limit)}
    if not top:
        return []

    pool = get_tag_suggestions(
        "",
        TagSuggestionContext(
            user_id=context.user_id,
            project_id=context.project_id,
            include_system_entities=True,
            include_shared_tracks=True,
            limit=_RECENT_SUGGESTION_POOL,
        ),
        lookup,
    )
    return [suggestion for suggestion in pool if suggestion.normalized_tag in top]


__all__ = [
    "TagSuggestion",
    "TagSuggestionContext",
    "get_recently_used_tags",
    "get_tag_suggestions",
    "relevance_score",
]
