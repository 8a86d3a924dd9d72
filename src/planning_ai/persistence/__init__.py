"""
planning-ai-core — persistence

File: src/planning_ai/persistence/__init__.py
Last updated: 2026-10-19

Purpose
- In-memory backing store for planning data lookups.
"""

from planning_ai.persistence.memory import InMemoryPlanningStore

__all__ = ["InMemoryPlanningStore"]
