"""
planning-ai-core — unit tests for the in-memory planning store

File: tests/unit/persistence/test_memory_store.py
Last updated: 2026-10-19

Purpose
- Validate membership checks and the deterministic ordering of every list query.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from planning_ai.domain.records import ActivityRecord, GraphEdgeRecord, PersonRecord
from planning_ai.domain.scope import SurfaceType


@pytest.mark.unit
def test_membership_grants_and_revokes_access(planning_store) -> None:
    assert planning_store.can_access_project("user-1", "proj-1")
    assert not planning_store.can_access_project("user-1", "proj-2")
    assert not planning_store.can_access_project("user-1", "proj-missing")

    planning_store.grant_access("user-1", "proj-2")
    assert planning_store.can_access_project("user-1", "proj-2")
    planning_store.revoke_access("user-1", "proj-2")
    assert not planning_store.can_access_project("user-1", "proj-2")

    with pytest.raises(ValueError):
        planning_store.grant_access(" ", "proj-1")


@pytest.mark.unit
def test_point_lookups_skip_unknown_ids(planning_store) -> None:
    tracks = planning_store.get_tracks(["track-build", "ghost", "track-design"])
    items = planning_store.get_roadmap_items(["ghost", "item-launch"])

    assert [track.id for track in tracks] == ["track-build", "track-design"]
    assert [item.id for item in items] == ["item-launch"]
    assert planning_store.get_project("ghost") is None
    assert planning_store.get_user_display_name("user-1") == "Riley"

    planning_store.set_display_name("user-1", "Riley P.")
    assert planning_store.get_user_display_name("user-1") == "Riley P."


@pytest.mark.unit
def test_track_and_item_listings_are_ordered(planning_store) -> None:
    assert [track.id for track in planning_store.list_project_tracks("proj-1")] == [
        "track-build",
        "track-design",
        "track-shared",
    ]
    assert planning_store.list_project_track_ids("proj-1", limit=2) == (
        "track-build",
        "track-design",
    )
    assert [track.id for track in planning_store.list_shared_tracks()] == ["track-shared"]
    assert [item.id for item in planning_store.list_project_items("proj-1")] == [
        "item-wireframes",
        "item-launch",
    ]
    assert planning_store.list_track_item_ids("track-design", limit=5) == ("item-wireframes",)


@pytest.mark.unit
def test_counts(planning_store) -> None:
    assert planning_store.count_track_items("track-design") == 1
    assert planning_store.count_track_items("track-shared") == 0
    assert planning_store.count_item_children("item-wireframes") == 0
    assert planning_store.count_person_assignments("person-ana") == 1
    assert planning_store.count_person_assignments("person-global") == 0


@pytest.mark.unit
def test_deadlines_are_soonest_first_and_respect_cutoff(planning_store, now) -> None:
    everything = planning_store.list_deadline_items("proj-1", limit=10)
    soon = planning_store.list_deadline_items(
        "proj-1", limit=10, before=now + timedelta(days=7)
    )

    assert [item.id for item in everything] == ["item-wireframes", "item-launch"]
    assert [item.id for item in soon] == ["item-wireframes"]
    assert planning_store.list_deadline_items("proj-2", limit=10) == ()


@pytest.mark.unit
def test_people_visibility(planning_store) -> None:
    planning_store.add_person(PersonRecord(id="person-bo", name="bo", project_id="proj-1"))

    assert [p.id for p in planning_store.list_project_people("proj-1")] == [
        "person-ana",
        "person-bo",
    ]
    assert [p.id for p in planning_store.list_project_people("proj-1", limit=1)] == [
        "person-ana"
    ]
    assert [p.id for p in planning_store.list_global_people("user-1")] == ["person-global"]
    assert planning_store.list_global_people("user-2") == ()
    assert [u.user_id for u in planning_store.list_project_users("proj-1")] == ["user-1"]


@pytest.mark.unit
def test_activity_is_newest_first_and_aggregated_by_surface(planning_store, now) -> None:
    planning_store.add_activity(
        ActivityRecord(
            id="act-2",
            project_id="proj-1",
            user_id="user-3",
            activity_type="commented",
            entity_type="track",
            created_at=now - timedelta(hours=1),
            surface_type=SurfaceType.SHARED,
        )
    )
    planning_store.add_activity(
        ActivityRecord(
            id="act-old",
            project_id="proj-1",
            user_id="user-1",
            activity_type="created",
            entity_type="track",
            created_at=now - timedelta(days=60),
        )
    )
    since = now - timedelta(days=30)

    activity = planning_store.list_collaboration_activity("proj-1", since=since, limit=10)
    surfaces = planning_store.list_surface_activity("proj-1", since=since)

    assert [record.id for record in activity] == ["act-2", "act-1"]
    assert [(s.surface_type, s.activity_count, s.unique_users) for s in surfaces] == [
        (SurfaceType.PROJECT, 1, 1),
        (SurfaceType.SHARED, 1, 1),
    ]
    assert surfaces[1].last_activity_at == now - timedelta(hours=1)


@pytest.mark.unit
def test_graph_and_tasks(planning_store) -> None:
    planning_store.add_graph_edge(
        GraphEdgeRecord(
            id="edge-0", from_node_id="node-2", to_node_id="node-elsewhere", edge_type="links"
        )
    )

    nodes = planning_store.list_graph_nodes("proj-1", limit=10)
    edges = planning_store.list_graph_edges([node.id for node in nodes], limit=10)

    assert [node.id for node in nodes] == ["node-1", "node-2"]
    assert [edge.id for edge in edges] == ["edge-1"]
    assert [task.id for task in planning_store.list_tasks("proj-1", limit=5)] == ["task-1"]
    assert planning_store.list_tasks("proj-2", limit=5) == ()
