"""
planning-ai-core — in-memory planning store

File: src/planning_ai/persistence/memory.py
Last updated: 2026-10-19

Purpose
- Dict-backed implementation of the read-only lookups consumed by tag resolution,
  tag enrichment and context assembly.

What should be included in this file
- Project, track, roadmap item, person, project user, activity, graph and task storage.
- Project membership for access checks.
- Conversation bindings, so requests can be checked against their conversation's surface.
- Deterministic ordering for every list query.

Functional requirements
- Track lookups return only the track's primary project via ``project_id``.
- Global people are visible only to the user that created them.
- Activity is returned newest first; deadlines soonest first.

Non-functional requirements
- Safe for concurrent readers and writers via a single lock.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import datetime

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
from planning_ai.domain.scope import SurfaceType
from planning_ai.policy.conversations import ConversationBinding
from planning_ai.utils.validation import as_utc, validate_non_empty_str


class InMemoryPlanningStore:
    """Planning data held in process memory.

    Satisfies ``ContextDataLookup``, ``TagLookup``, ``TagSnapshotLookup`` and
    ``ConversationLookup``.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._projects: dict[str, ProjectRecord] = {}
        self._members: defaultdict[str, set[str]] = defaultdict(set)
        self._tracks: dict[str, TrackRecord] = {}
        self._items: dict[str, RoadmapItemRecord] = {}
        self._people: dict[str, PersonRecord] = {}
        self._project_users: dict[tuple[str, str], ProjectUserRecord] = {}
        self._display_names: dict[str, str] = {}
        self._activity: list[ActivityRecord] = []
        self._graph_nodes: dict[str, GraphNodeRecord] = {}
        self._graph_edges: dict[str, GraphEdgeRecord] = {}
        self._tasks: dict[str, TaskRecord] = {}
        self._assignments: defaultdict[str, set[str]] = defaultdict(set)
        self._conversations: dict[str, ConversationBinding] = {}

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    def add_project(self, project: ProjectRecord, *, members: Iterable[str] = ()) -> None:
        with self._lock:
            self._projects[project.id] = project
            for user_id in members:
                self.grant_access(user_id, project.id)

    def grant_access(self, user_id: str, project_id: str) -> None:
        user_id = validate_non_empty_str(user_id, "user_id")
        project_id = validate_non_empty_str(project_id, "project_id")
        with self._lock:
            self._members[project_id].add(user_id)

    def revoke_access(self, user_id: str, project_id: str) -> None:
        with self._lock:
            self._members[project_id].discard(user_id)

    def add_track(self, track: TrackRecord) -> None:
        with self._lock:
            self._tracks[track.id] = track

    def add_roadmap_item(self, item: RoadmapItemRecord) -> None:
        with self._lock:
            self._items[item.id] = item

    def add_person(self, person: PersonRecord) -> None:
        with self._lock:
            self._people[person.id] = person

    def add_project_user(self, user: ProjectUserRecord) -> None:
        """Register a project member; membership also grants project access."""

        with self._lock:
            self._project_users[(user.project_id, user.user_id)] = user
            if user.display_name:
                self._display_names[user.user_id] = user.display_name
            self.grant_access(user.user_id, user.project_id)

    def set_display_name(self, user_id: str, display_name: str) -> None:
        with self._lock:
            self._display_names[user_id] = display_name

    def add_activity(self, activity: ActivityRecord) -> None:
        with self._lock:
            self._activity.append(activity)

    def add_conversation(self, binding: ConversationBinding) -> None:
        with self._lock:
            self._conversations[binding.conversation_id] = binding

    def add_graph_node(self, node: GraphNodeRecord) -> None:
        with self._lock:
            self._graph_nodes[node.id] = node

    def add_graph_edge(self, edge: GraphEdgeRecord) -> None:
        with self._lock:
            self._graph_edges[edge.id] = edge

    def add_task(self, task: TaskRecord) -> None:
        with self._lock:
            self._tasks[task.id] = task

    def assign_person(self, person_id: str, item_id: str) -> None:
        with self._lock:
            self._assignments[person_id].add(item_id)

    # ------------------------------------------------------------------
    # access
    # ------------------------------------------------------------------

    def can_access_project(self, user_id: str, project_id: str) -> bool:
        with self._lock:
            return project_id in self._projects and user_id in self._members.get(project_id, ())

    # ------------------------------------------------------------------
    # point lookups
    # ------------------------------------------------------------------

    def get_conversation(self, conversation_id: str) -> ConversationBinding | None:
        with self._lock:
            return self._conversations.get(conversation_id)

    def get_project(self, project_id: str) -> ProjectRecord | None:
        with self._lock:
            return self._projects.get(project_id)

    def get_track(self, track_id: str) -> TrackRecord | None:
        with self._lock:
            return self._tracks.get(track_id)

    def get_tracks(self, track_ids: Sequence[str]) -> Sequence[TrackRecord]:
        with self._lock:
            return tuple(
                self._tracks[track_id] for track_id in track_ids if track_id in self._tracks
            )

    def get_roadmap_item(self, item_id: str) -> RoadmapItemRecord | None:
        with self._lock:
            return self._items.get(item_id)

    def get_roadmap_items(self, item_ids: Sequence[str]) -> Sequence[RoadmapItemRecord]:
        with self._lock:
            return tuple(self._items[item_id] for item_id in item_ids if item_id in self._items)

    def get_person(self, person_id: str) -> PersonRecord | None:
        with self._lock:
            return self._people.get(person_id)

    def get_user_display_name(self, user_id: str) -> str | None:
        with self._lock:
            return self._display_names.get(user_id)

    # ------------------------------------------------------------------
    # counts
    # ------------------------------------------------------------------

    def count_track_items(self, track_id: str) -> int:
        with self._lock:
            return sum(1 for item in self._items.values() if item.track_id == track_id)

    def count_item_children(self, item_id: str) -> int:
        with self._lock:
            return sum(1 for item in self._items.values() if item.parent_item_id == item_id)

    def count_person_assignments(self, person_id: str) -> int:
        with self._lock:
            return len(self._assignments.get(person_id, ()))

    # ------------------------------------------------------------------
    # list queries
    # ------------------------------------------------------------------

    def list_project_tracks(self, project_id: str) -> Sequence[TrackRecord]:
        with self._lock:
            return _ordered_tracks(t for t in self._tracks.values() if t.project_id == project_id)

    def list_shared_tracks(self) -> Sequence[TrackRecord]:
        with self._lock:
            return _ordered_tracks(t for t in self._tracks.values() if t.is_shared)

    def list_project_track_ids(self, project_id: str, *, limit: int) -> Sequence[str]:
        return tuple(track.id for track in self.list_project_tracks(project_id)[:limit])

    def list_project_items(self, project_id: str) -> Sequence[RoadmapItemRecord]:
        with self._lock:
            return _ordered_items(i for i in self._items.values() if i.project_id == project_id)

    def list_track_item_ids(self, track_id: str, *, limit: int) -> Sequence[str]:
        with self._lock:
            items = _ordered_items(i for i in self._items.values() if i.track_id == track_id)
        return tuple(item.id for item in items[:limit])

    def list_deadline_items(
        self, project_id: str, *, limit: int, before: datetime | None = None
    ) -> Sequence[RoadmapItemRecord]:
        cutoff = None if before is None else as_utc(before, "before")
        with self._lock:
            candidates = [
                item
                for item in self._items.values()
                if item.project_id == project_id
                and item.end_date is not None
                and (cutoff is None or item.end_date <= cutoff)
            ]
        candidates.sort(key=lambda item: (item.end_date, item.id))
        return tuple(candidates[:limit])

    def list_project_people(
        self, project_id: str, *, limit: int | None = None
    ) -> Sequence[PersonRecord]:
        with self._lock:
            people = sorted(
                (
                    person
                    for person in self._people.values()
                    if person.project_id == project_id and not person.is_global
                ),
                key=lambda person: (person.name.lower(), person.id),
            )
        return tuple(people if limit is None else people[:limit])

    def list_global_people(self, user_id: str) -> Sequence[PersonRecord]:
        with self._lock:
            people = sorted(
                (
                    person
                    for person in self._people.values()
                    if person.is_global and person.created_by == user_id
                ),
                key=lambda person: (person.name.lower(), person.id),
            )
        return tuple(people)

    def list_project_users(
        self, project_id: str, *, limit: int | None = None
    ) -> Sequence[ProjectUserRecord]:
        with self._lock:
            users = sorted(
                (user for (pid, _), user in self._project_users.items() if pid == project_id),
                key=lambda user: user.user_id,
            )
        return tuple(users if limit is None else users[:limit])

    def list_collaboration_activity(
        self, project_id: str, *, since: datetime, limit: int
    ) -> Sequence[ActivityRecord]:
        records = self._activity_since(project_id, since)
        records.sort(key=lambda record: (-record.created_at.timestamp(), record.id))
        return tuple(records[:limit])

    def list_surface_activity(
        self, project_id: str, *, since: datetime
    ) -> Sequence[SurfaceActivityRecord]:
        counts: dict[SurfaceType, int] = defaultdict(int)
        users: dict[SurfaceType, set[str]] = defaultdict(set)
        latest: dict[SurfaceType, datetime] = {}
        for record in self._activity_since(project_id, since):
            surface = record.surface_type
            counts[surface] += 1
            users[surface].add(record.user_id)
            if surface not in latest or record.created_at > latest[surface]:
                latest[surface] = record.created_at
        return tuple(
            SurfaceActivityRecord(
                surface_type=surface,
                activity_count=counts[surface],
                unique_users=len(users[surface]),
                last_activity_at=latest[surface],
            )
            for surface in sorted(counts, key=lambda surface: surface.value)
        )

    def list_graph_nodes(self, project_id: str, *, limit: int) -> Sequence[GraphNodeRecord]:
        with self._lock:
            nodes = sorted(
                (node for node in self._graph_nodes.values() if node.project_id == project_id),
                key=lambda node: node.id,
            )
        return tuple(nodes[:limit])

    def list_graph_edges(
        self, node_ids: Sequence[str], *, limit: int
    ) -> Sequence[GraphEdgeRecord]:
        wanted = set(node_ids)
        with self._lock:
            edges = sorted(
                (
                    edge
                    for edge in self._graph_edges.values()
                    if edge.from_node_id in wanted and edge.to_node_id in wanted
                ),
                key=lambda edge: edge.id,
            )
        return tuple(edges[:limit])

    def list_tasks(self, project_id: str, *, limit: int) -> Sequence[TaskRecord]:
        with self._lock:
            tasks = sorted(
                (task for task in self._tasks.values() if task.project_id == project_id),
                key=lambda task: task.id,
            )
        return tuple(tasks[:limit])

    def _activity_since(self, project_id: str, since: datetime) -> list[ActivityRecord]:
        cutoff = as_utc(since, "since")
        with self._lock:
            return [
                record
                for record in self._activity
                if record.project_id == project_id and record.created_at >= cutoff
            ]


def _ordered_tracks(tracks: Iterable[TrackRecord]) -> tuple[TrackRecord, ...]:
    return tuple(sorted(tracks, key=lambda track: (track.order_index, track.id)))


def _ordered_items(items: Iterable[RoadmapItemRecord]) -> tuple[RoadmapItemRecord, ...]:
    return tuple(sorted(items, key=lambda item: (item.order_index, item.id)))


__all__ = ["InMemoryPlanningStore"]
