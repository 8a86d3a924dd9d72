"""
planning-ai-core — policy plane

File: src/planning_ai/policy/__init__.py
Last updated: 2026-10-19

Purpose
- Versioned invariant policy, its assertions, and conversation surface rules.
"""

from planning_ai.policy.conversations import (
    ConversationBinding,
    ConversationLookup,
    generate_conversation_title,
    surface_label,
    validate_conversation_surface,
    validate_conversation_title,
)
from planning_ai.policy.invariants import (
    DEFAULT_POLICY,
    InvariantPolicy,
    PolicyValidation,
    PolicyViolation,
    assert_authority_boundary,
    assert_chat_surface_required,
    assert_collaboration_log_immutability,
    assert_composition_depth,
    assert_draft_safety,
    assert_no_cross_surface_reads,
    assert_no_global_chat,
    assert_no_surface_switching,
    assert_ownership,
    assert_permission_boundary,
    assert_personal_cannot_access_project,
    assert_shared_track_invariant,
    assert_side_effect_boundary,
    assert_table_authority,
    assert_timeline_eligibility,
    validate_policy,
)

__all__ = [
    "ConversationBinding",
    "ConversationLookup",
    "DEFAULT_POLICY",
    "InvariantPolicy",
    "PolicyValidation",
    "PolicyViolation",
    "assert_authority_boundary",
    "assert_chat_surface_required",
    "assert_collaboration_log_immutability",
    "assert_composition_depth",
    "assert_draft_safety",
    "assert_no_cross_surface_reads",
    "assert_no_global_chat",
    "assert_no_surface_switching",
    "assert_ownership",
    "assert_permission_boundary",
    "assert_personal_cannot_access_project",
    "assert_shared_track_invariant",
    "assert_side_effect_boundary",
    "assert_table_authority",
    "assert_timeline_eligibility",
    "generate_conversation_title",
    "surface_label",
    "validate_conversation_surface",
    "validate_conversation_title",
    "validate_policy",
]
