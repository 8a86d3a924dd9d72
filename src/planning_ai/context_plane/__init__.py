"""
planning-ai-core — context plane

File: src/planning_ai/context_plane/__init__.py
Last updated: 2026-10-19

Purpose
- Budgeted, permission-checked and surface-isolated context assembly for AI requests.
"""

from planning_ai.context_plane.assembler import (
    AssembledContext,
    ContextAssembler,
    ContextDataLookup,
    compute_context_hash,
)
from planning_ai.context_plane.budgets import (
    DEFAULT_BUDGET,
    INTENT_BUDGETS,
    BudgetValidation,
    ContextBudget,
    ContextUsage,
    Intent,
    calculate_context_usage,
    get_budget_for_intent,
    truncate_text,
    validate_context_budget,
)
from planning_ai.context_plane.rendering import ContextRenderer, RenderedContext
from planning_ai.context_plane.surface_guard import (
    SurfaceValidation,
    enforce_surface_scope,
    validate_surface_scope,
)

__all__ = [
    "AssembledContext",
    "BudgetValidation",
    "ContextAssembler",
    "ContextBudget",
    "ContextDataLookup",
    "ContextRenderer",
    "ContextUsage",
    "DEFAULT_BUDGET",
    "INTENT_BUDGETS",
    "Intent",
    "RenderedContext",
    "SurfaceValidation",
    "calculate_context_usage",
    "compute_context_hash",
    "enforce_surface_scope",
    "get_budget_for_intent",
    "truncate_text",
    "validate_context_budget",
    "validate_surface_scope",
]
