"""
planning-ai-core — domain value objects

File: src/planning_ai/domain/__init__.py
Last updated: 2026-10-19

Purpose
- Domain types shared across planes: scopes, surfaces, lookup records, drafts.

What should be included in this file
- Re-export of core domain entities for convenience.
- Keep domain layer free of IO side effects.
"""

from planning_ai.domain.drafts import (
    AIDraft,
    ConfidenceLevel,
    DraftProvenance,
    DraftStatus,
    DraftType,
)
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
from planning_ai.domain.scope import ChatSurface, ContextScope, SurfaceType, TimeWindow

__all__ = [
    "AIDraft",
    "ActivityRecord",
    "ChatSurface",
    "ConfidenceLevel",
    "ContextScope",
    "DraftProvenance",
    "DraftStatus",
    "DraftType",
    "GraphEdgeRecord",
    "GraphNodeRecord",
    "PersonRecord",
    "ProjectRecord",
    "ProjectUserRecord",
    "RoadmapItemRecord",
    "SurfaceActivityRecord",
    "SurfaceType",
    "TaskRecord",
    "TimeWindow",
    "TrackRecord",
]
