"""
planning-ai-core — shared pytest fixtures

File: tests/conftest.py
Last updated: 2026-10-19

Purpose
- Provide deterministic collaborators shared by unit and integration tests: a
  recording logger, a fixed clock and a seeded in-memory planning store.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from planning_ai.domain.records import (
    ActivityRecord,
    GraphEdgeRecord,
    GraphNodeRecord,
    PersonRecord,
    ProjectRecord,
    ProjectUserRecord,
    RoadmapItemRecord,
    TaskRecord,
    TrackRecord,
)
from planning_ai.domain.scope import SurfaceType
from planning_ai.persistence.memory import InMemoryPlanningStore

FIXED_NOW = datetime(2026, 3, 2, 9, 30, tzinfo=UTC)


class RecordingLogger:
    """Structlog-shaped logger that keeps ``(level, event, fields)`` tuples."""

    def __init__(self) -> None:
        self.entries: list[tuple[str, str, dict[str, Any]]] = []

    def _record(self, level: str, event: str, **fields: Any) -> None:
        self.entries.append((level, event, fields))

    def debug(self, event: str, **fields: Any) -> None:
        self._record("debug", event, **fields)

    def info(self, event: str, **fields: Any) -> None:
        self._record("info", event, **fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._record("warning", event, **fields)

    def error(self, event: str, **fields: Any) -> None:
        self._record("error", event, **fields)

    def events(self, level: str | None = None) -> list[str]:
        return [event for lvl, event, _ in self.entries if level is None or lvl == level]

    def first(self, event: str) -> dict[str, Any]:
        for _, name, fields in self.entries:
            if name == event:
                return fields
        raise AssertionError(f"event {event!r} was not logged; saw {self.events()}")


@pytest.fixture()
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture()
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture()
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


def seed_planning_store(store: InMemoryPlanningStore) -> InMemoryPlanningStore:
    """Populate ``store`` with a small two-project planning workspace.

    ``user-1`` is a member of ``proj-1`` only; ``user-2`` is a member of ``proj-2`` only.
    """

    store.add_project(
        ProjectRecord(
            id="proj-1",
            name="Website Relaunch",
            description="Rebuild the marketing site",
            project_type="software",
            status="active",
        ),
        members=["user-1"],
    )
    store.add_project(ProjectRecord(id="proj-2", name="Hiring Plan"), members=["user-2"])

    store.add_track(
        TrackRecord(id="track-design", project_id="proj-1", name="Design", order_index=1)
    )
    store.add_track(
        TrackRecord(
            id="track-build",
            project_id="proj-1",
            name="Build",
            description="Implementation work",
            order_index=0,
        )
    )
    store.add_track(
        TrackRecord(
            id="track-shared", project_id="proj-1", name="Brand", is_shared=True, order_index=2
        )
    )
    store.add_track(TrackRecord(id="track-other", project_id="proj-2", name="Sourcing"))

    store.add_roadmap_item(
        RoadmapItemRecord(
            id="item-wireframes",
            project_id="proj-1",
            track_id="track-design",
            title="Wireframes",
            status="in_progress",
            end_date=FIXED_NOW + timedelta(days=3),
            order_index=0,
        )
    )
    store.add_roadmap_item(
        RoadmapItemRecord(
            id="item-launch",
            project_id="proj-1",
            track_id="track-build",
            title="Launch",
            item_type="milestone",
            end_date=FIXED_NOW + timedelta(days=20),
            order_index=1,
        )
    )
    store.add_roadmap_item(
        RoadmapItemRecord(
            id="item-other",
            project_id="proj-2",
            track_id="track-other",
            title="Post job ads",
        )
    )

    store.add_person(PersonRecord(id="person-ana", name="Ana", project_id="proj-1", role="PM"))
    store.add_person(
        PersonRecord(id="person-global", name="Sam", is_global=True, created_by="user-1")
    )
    store.assign_person("person-ana", "item-wireframes")

    store.add_project_user(
        ProjectUserRecord(
            user_id="user-1", project_id="proj-1", display_name="Riley", role="owner"
        )
    )
    store.add_activity(
        ActivityRecord(
            id="act-1",
            project_id="proj-1",
            user_id="user-1",
            activity_type="updated",
            entity_type="roadmap_item",
            entity_id="item-wireframes",
            created_at=FIXED_NOW - timedelta(days=2),
            surface_type=SurfaceType.PROJECT,
        )
    )
    store.add_graph_node(
        GraphNodeRecord(id="node-1", project_id="proj-1", label="Homepage", node_type="idea")
    )
    store.add_graph_node(
        GraphNodeRecord(id="node-2", project_id="proj-1", label="Pricing", node_type="idea")
    )
    store.add_graph_edge(
        GraphEdgeRecord(id="edge-1", from_node_id="node-1", to_node_id="node-2", edge_type="links")
    )
    store.add_task(
        TaskRecord(
            id="task-1",
            project_id="proj-1",
            title="Collect copy",
            status="open",
            synced_roadmap_item_id="item-wireframes",
        )
    )
    return store


@pytest.fixture()
def planning_store() -> InMemoryPlanningStore:
    return seed_planning_store(InMemoryPlanningStore())
