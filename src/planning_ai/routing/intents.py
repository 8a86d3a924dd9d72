"""
planning-ai-core — intent to feature mapping

File: src/planning_ai/routing/intents.py
Last updated: 2026-10-19

Purpose
- Map each request intent to the feature key the route resolver looks up.

Functional requirements
- Requests without an intent, or with an unknown one, route as ``ai_chat``.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Final

from planning_ai.context_plane.budgets import Intent
from planning_ai.routing.models import FeatureKey

INTENT_FEATURE_MAP: Final[Mapping[Intent, FeatureKey]] = MappingProxyType(
    {
        Intent.EXPLAIN: FeatureKey.AI_CHAT,
        Intent.GENERAL_CHAT: FeatureKey.AI_CHAT,
        Intent.SUGGEST_NEXT_STEPS: FeatureKey.AI_CHAT,
        Intent.SUMMARIZE: FeatureKey.PROJECT_SUMMARY,
        Intent.DRAFT_ROADMAP_ITEMS: FeatureKey.DRAFT_GENERATION,
        Intent.DRAFT_TASK_LIST: FeatureKey.DRAFT_GENERATION,
        Intent.BREAKDOWN_ITEM: FeatureKey.DRAFT_GENERATION,
        Intent.IDENTIFY_RISKS: FeatureKey.DRAFT_GENERATION,
        Intent.ANALYZE_DEADLINES: FeatureKey.DEADLINE_ANALYSIS,
        Intent.EXPLORE_GRAPH: FeatureKey.MIND_MESH_EXPLAIN,
        Intent.ASSIST_TASKS: FeatureKey.TASKFLOW_ASSIST,
    }
)


def feature_for_intent(intent: Intent | str | None) -> FeatureKey:
    """Feature routed for ``intent``; unknown or missing intents route as chat."""

    if intent is None:
        return FeatureKey.AI_CHAT
    try:
        return INTENT_FEATURE_MAP[Intent(intent)]
    except (KeyError, ValueError):
        return FeatureKey.AI_CHAT


__all__ = ["INTENT_FEATURE_MAP", "feature_for_intent"]
