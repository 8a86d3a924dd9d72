"""
planning-ai-core — draft plane

File: src/planning_ai/drafts/__init__.py
Last updated: 2026-10-19

Purpose
- Draft safety tables, the lifecycle state machine and owner-scoped draft storage.
"""

from planning_ai.drafts.lifecycle import (
    ALLOWED_TRANSITIONS,
    apply_draft,
    apply_partial,
    can_transition,
    create_draft,
    discard_draft,
    edit_draft,
    transition,
)
from planning_ai.drafts.safety import (
    DRAFT_APPLICATION_PLANS,
    DRAFT_SAFETY_RULES,
    ApplyCheck,
    DraftApplicationPlan,
    DraftSafetyRule,
    ProvenanceVerification,
    can_apply_draft,
    check_draft_safety,
    get_application_plan,
    verify_draft_provenance,
)
from planning_ai.drafts.store import DraftService, DraftStore, InMemoryDraftStore

__all__ = [
    "ALLOWED_TRANSITIONS",
    "ApplyCheck",
    "DRAFT_APPLICATION_PLANS",
    "DRAFT_SAFETY_RULES",
    "DraftApplicationPlan",
    "DraftSafetyRule",
    "DraftService",
    "DraftStore",
    "InMemoryDraftStore",
    "ProvenanceVerification",
    "apply_draft",
    "apply_partial",
    "can_apply_draft",
    "can_transition",
    "check_draft_safety",
    "create_draft",
    "discard_draft",
    "edit_draft",
    "get_application_plan",
    "transition",
    "verify_draft_provenance",
]
