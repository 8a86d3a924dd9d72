"""
planning-ai-core — per-intent context budgets

File: src/planning_ai/context_plane/budgets.py
Last updated: 2026-10-19

Purpose
- Static numeric ceilings on how much data and text one AI request may pull in.

What should be included in this file
- ``Intent`` enumeration and a read-only intent -> ``ContextBudget`` table.
- A conservative default budget for undeclared or unknown intents.
- Text truncation with an ellipsis marker.
- Usage accounting and budget validation over an assembled context.

Functional requirements
- Budgets are immutable at runtime.
- Validation reports violations; it never raises.

Non-functional requirements
- Pure functions only.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from planning_ai.constants import TRUNCATION_MARKER
from planning_ai.utils.validation import validate_positive_int

if TYPE_CHECKING:
    from planning_ai.context_plane.assembler import AssembledContext


class Intent(StrEnum):
    """Declared purpose of an AI request."""

    EXPLAIN = "explain"
    SUMMARIZE = "summarize"
    DRAFT_ROADMAP_ITEMS = "draft_roadmap_items"
    DRAFT_TASK_LIST = "draft_task_list"
    BREAKDOWN_ITEM = "breakdown_item"
    ANALYZE_DEADLINES = "analyze_deadlines"
    IDENTIFY_RISKS = "identify_risks"
    SUGGEST_NEXT_STEPS = "suggest_next_steps"
    EXPLORE_GRAPH = "explore_graph"
    ASSIST_TASKS = "assist_tasks"
    GENERAL_CHAT = "general_chat"


@dataclass(frozen=True, slots=True)
class ContextBudget:
    """Per-entity-kind maximum counts plus per-field and total text caps."""

    max_projects: int
    max_tracks: int
    max_roadmap_items: int
    max_collaboration_events: int
    max_graph_nodes: int
    max_graph_edges: int
    max_tasks: int
    max_people: int
    max_deadlines: int
    max_text_length_per_entity: int
    max_total_text_length: int

    def __post_init__(self) -> None:
        for item in fields(self):
            validate_positive_int(getattr(self, item.name), f"ContextBudget.{item.name}")
        if self.max_text_length_per_entity <= len(TRUNCATION_MARKER):
            raise ValueError("ContextBudget.max_text_length_per_entity must exceed the marker")

    def to_dict(self) -> dict[str, int]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


def _budget(
    *,
    tracks: int,
    items: int,
    collaboration: int,
    nodes: int,
    edges: int,
    tasks: int,
    people: int,
    deadlines: int,
    text: int,
    total: int,
) -> ContextBudget:
    return ContextBudget(
        max_projects=1,
        max_tracks=tracks,
        max_roadmap_items=items,
        max_collaboration_events=collaboration,
        max_graph_nodes=nodes,
        max_graph_edges=edges,
        max_tasks=tasks,
        max_people=people,
        max_deadlines=deadlines,
        max_text_length_per_entity=text,
        max_total_text_length=total,
    )


DEFAULT_BUDGET: Final[ContextBudget] = _budget(
    tracks=5,
    items=20,
    collaboration=10,
    nodes=50,
    edges=100,
    tasks=20,
    people=10,
    deadlines=15,
    text=300,
    total=8_000,
)

# tracks, items, collaboration, nodes, edges, tasks, people, deadlines, text, total
_INTENT_LIMITS: Final[dict[Intent, tuple[int, ...]]] = {
    Intent.EXPLAIN: (10, 30, 10, 50, 100, 20, 10, 15, 500, 15_000),
    Intent.SUMMARIZE: (20, 100, 20, 100, 200, 30, 20, 30, 300, 25_000),
    Intent.DRAFT_ROADMAP_ITEMS: (10, 50, 10, 50, 100, 20, 20, 30, 500, 20_000),
    Intent.DRAFT_TASK_LIST: (5, 30, 10, 30, 60, 50, 10, 20, 400, 15_000),
    Intent.BREAKDOWN_ITEM: (3, 20, 5, 30, 60, 20, 10, 10, 800, 12_000),
    Intent.ANALYZE_DEADLINES: (10, 100, 10, 20, 40, 30, 20, 50, 200, 20_000),
    Intent.IDENTIFY_RISKS: (10, 50, 20, 50, 100, 30, 20, 30, 400, 20_000),
    Intent.SUGGEST_NEXT_STEPS: (10, 50, 20, 50, 100, 30, 20, 30, 400, 20_000),
    Intent.EXPLORE_GRAPH: (5, 20, 5, 100, 200, 10, 10, 10, 300, 20_000),
    Intent.ASSIST_TASKS: (5, 20, 5, 20, 40, 50, 10, 20, 300, 12_000),
    Intent.GENERAL_CHAT: (10, 30, 10, 30, 60, 20, 10, 15, 400, 12_000),
}

INTENT_BUDGETS: Final[Mapping[Intent, ContextBudget]] = MappingProxyType(
    {
        intent: _budget(
            tracks=limits[0],
            items=limits[1],
            collaboration=limits[2],
            nodes=limits[3],
            edges=limits[4],
            tasks=limits[5],
            people=limits[6],
            deadlines=limits[7],
            text=limits[8],
            total=limits[9],
        )
        for intent, limits in _INTENT_LIMITS.items()
    }
)


def get_budget_for_intent(intent: Intent | str | None) -> ContextBudget:
    """Budget for ``intent``; ``DEFAULT_BUDGET`` when undeclared or unknown."""

    if intent is None:
        return DEFAULT_BUDGET
    try:
        key = Intent(intent)
    except ValueError:
        return DEFAULT_BUDGET
    return INTENT_BUDGETS.get(key, DEFAULT_BUDGET)


def truncate_text(text: str | None, max_length: int) -> str | None:
    """Cap ``text`` at ``max_length`` characters, ending in the marker when cut."""

    if text is None:
        return None
    if max_length <= 0:
        raise ValueError("max_length must be > 0")
    if len(text) <= max_length:
        return text
    if max_length <= len(TRUNCATION_MARKER):
        return text[:max_length]
    return text[: max_length - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER


@dataclass(frozen=True, slots=True)
class ContextUsage:
    """Entity counts and total free-text length of an assembled context."""

    projects: int = 0
    tracks: int = 0
    roadmap_items: int = 0
    collaboration_events: int = 0
    graph_nodes: int = 0
    graph_edges: int = 0
    tasks: int = 0
    people: int = 0
    deadlines: int = 0
    total_text_length: int = 0

    def to_dict(self) -> dict[str, int]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass(frozen=True, slots=True)
class BudgetValidation:
    valid: bool
    violations: tuple[str, ...] = ()


_USAGE_LIMITS: Final[tuple[tuple[str, str, str], ...]] = (
    ("projects", "max_projects", "Projects"),
    ("tracks", "max_tracks", "Tracks"),
    ("roadmap_items", "max_roadmap_items", "Roadmap items"),
    ("collaboration_events", "max_collaboration_events", "Collaboration events"),
    ("graph_nodes", "max_graph_nodes", "Graph nodes"),
    ("graph_edges", "max_graph_edges", "Graph edges"),
    ("tasks", "max_tasks", "Tasks"),
    ("people", "max_people", "People"),
    ("deadlines", "max_deadlines", "Deadlines"),
    ("total_text_length", "max_total_text_length", "Total text length"),
)


def calculate_context_usage(context: AssembledContext) -> ContextUsage:
    """Count entities and free-text characters in ``context``."""

    text_total = sum(len(text) for text in context.iter_text_fields())
    collaboration = context.collaboration
    graph = context.graph
    return ContextUsage(
        projects=0 if context.project is None else 1,
        tracks=len(context.tracks),
        roadmap_items=len(context.roadmap_items),
        collaboration_events=0 if collaboration is None else len(collaboration.recent_activity),
        graph_nodes=0 if graph is None else len(graph.nodes),
        graph_edges=0 if graph is None else len(graph.edges),
        tasks=0 if context.tasks is None else len(context.tasks.tasks),
        people=len(context.people),
        deadlines=len(context.deadlines),
        total_text_length=text_total,
    )


def validate_context_budget(usage: ContextUsage, budget: ContextBudget) -> BudgetValidation:
    """Compare ``usage`` against ``budget`` and describe every exceeded ceiling."""

    violations: list[str] = []
    for usage_field, budget_field, label in _USAGE_LIMITS:
        actual = getattr(usage, usage_field)
        limit = getattr(budget, budget_field)
        if actual > limit:
            violations.append(f"{label} ({actual}) exceeds budget ({limit})")
    return BudgetValidation(valid=not violations, violations=tuple(violations))


__all__ = [
    "BudgetValidation",
    "ContextBudget",
    "ContextUsage",
    "DEFAULT_BUDGET",
    "INTENT_BUDGETS",
    "Intent",
    "calculate_context_usage",
    "get_budget_for_intent",
    "truncate_text",
    "validate_context_budget",
]
