"""
planning-ai-core — unit tests for tag resolution

File: tests/unit/tagging/test_tag_resolver.py
Last updated: 2026-10-19

Purpose
- Validate tag resolution priority, ambiguity and permission scoping.

What this test file should cover
- System entities win over project entities with the same name.
- Lower priority numbers win; ties at the best priority are ambiguous.
- Inaccessible projects yield no candidates.
- Without a project, only the user's own global people are candidates.
"""

from __future__ import annotations

import pytest

from planning_ai.domain.records import PersonRecord, RoadmapItemRecord, TrackRecord
from planning_ai.tagging.resolver import (
    EntityType,
    ResolutionStatus,
    TagResolutionContext,
    TagResolver,
    get_ambiguous_tags,
    get_resolved_tags,
    get_unresolved_tags,
    group_resolved_tags_by_type,
)


@pytest.fixture()
def resolver(planning_store, recording_logger) -> TagResolver:
    return TagResolver(planning_store, logger=recording_logger)


def _ctx(project_id: str | None = "proj-1", **kwargs: object) -> TagResolutionContext:
    return TagResolutionContext(user_id="user-1", project_id=project_id, **kwargs)


@pytest.mark.unit
def test_system_entity_resolves_first(resolver: TagResolver, recording_logger) -> None:
    resolved = resolver.resolve_tag("Calendar", _ctx())

    assert resolved.status is ResolutionStatus.RESOLVED
    assert resolved.entity_type is EntityType.SYSTEM
    assert resolved.entity_id == "calendar"
    assert resolved.metadata["is_system"] is True
    assert recording_logger.first("tag_resolved")["status"] == "resolved"


@pytest.mark.unit
def test_system_entities_can_be_disabled(resolver: TagResolver) -> None:
    resolved = resolver.resolve_tag("calendar", _ctx(allow_system_entities=False))

    assert resolved.status is ResolutionStatus.UNRESOLVED


@pytest.mark.unit
def test_track_beats_roadmap_item_with_same_name(planning_store, resolver: TagResolver) -> None:
    planning_store.add_roadmap_item(
        RoadmapItemRecord(id="item-design", project_id="proj-1", track_id="track-build",
                          title="Design")
    )

    resolved = resolver.resolve_tag("design", _ctx())

    assert resolved.entity_type is EntityType.TRACK
    assert resolved.entity_id == "track-design"


@pytest.mark.unit
def test_roadmap_item_and_person_resolve(resolver: TagResolver) -> None:
    item = resolver.resolve_tag("wireframes", _ctx())
    person = resolver.resolve_tag("ana", _ctx())
    member = resolver.resolve_tag("riley", _ctx())

    assert (item.entity_type, item.entity_id) == (EntityType.ROADMAP_ITEM, "item-wireframes")
    assert (person.entity_type, person.entity_id) == (EntityType.PERSON, "person-ana")
    assert member.entity_id == "user-1"
    assert member.metadata["source"] == "project_users"


@pytest.mark.unit
def test_tie_at_best_priority_is_ambiguous(planning_store, resolver: TagResolver) -> None:
    planning_store.add_track(TrackRecord(id="track-design-2", project_id="proj-1", name="design!"))

    resolved = resolver.resolve_tag("design", _ctx())

    assert resolved.status is ResolutionStatus.AMBIGUOUS
    assert resolved.entity_id is None
    assert {candidate.entity_id for candidate in resolved.candidates} == {
        "track-design",
        "track-design-2",
    }


@pytest.mark.unit
def test_inaccessible_project_yields_unresolved(resolver: TagResolver) -> None:
    resolved = resolver.resolve_tag("sourcing", _ctx("proj-2"))

    assert resolved.status is ResolutionStatus.UNRESOLVED
    assert resolver.find_candidates("sourcing", _ctx("proj-2")) == ()


@pytest.mark.unit
def test_no_project_only_matches_own_global_people(planning_store, resolver: TagResolver) -> None:
    planning_store.add_person(
        PersonRecord(id="person-foreign", name="Sam", is_global=True, created_by="user-2")
    )

    resolved = resolver.resolve_tag("sam", _ctx(None))
    track = resolver.resolve_tag("design", _ctx(None))

    assert resolved.status is ResolutionStatus.RESOLVED
    assert resolved.entity_id == "person-global"
    assert track.status is ResolutionStatus.UNRESOLVED


@pytest.mark.unit
def test_shared_track_from_other_accessible_project(planning_store, resolver: TagResolver) -> None:
    planning_store.grant_access("user-1", "proj-2")
    planning_store.add_track(
        TrackRecord(id="track-ops", project_id="proj-2", name="Ops", is_shared=True)
    )

    resolved = resolver.resolve_tag("ops", _ctx())
    blocked = resolver.resolve_tag("ops", _ctx(allow_shared_tracks=False))

    assert resolved.entity_type is EntityType.SHARED_TRACK
    assert resolved.metadata["source_project_id"] == "proj-2"
    assert blocked.status is ResolutionStatus.UNRESOLVED


@pytest.mark.unit
@pytest.mark.parametrize("workers", [1, 4])
def test_resolve_tags_preserves_input_order(resolver: TagResolver, workers: int) -> None:
    results = resolver.resolve_tags(
        ["launch", "nothing", "calendar", "design"], _ctx(), max_workers=workers
    )

    assert [item.normalized_tag for item in results] == ["launch", "nothing", "calendar", "design"]
    assert [item.normalized_tag for item in get_resolved_tags(results)] == [
        "launch",
        "calendar",
        "design",
    ]
    assert [item.normalized_tag for item in get_unresolved_tags(results)] == ["nothing"]
    assert get_ambiguous_tags(results) == ()
    grouped = group_resolved_tags_by_type(results)
    assert [item.entity_id for item in grouped[EntityType.TRACK]] == ["track-design"]
    assert [item.entity_id for item in grouped[EntityType.ROADMAP_ITEM]] == ["item-launch"]
    assert grouped[EntityType.PERSON] == ()
