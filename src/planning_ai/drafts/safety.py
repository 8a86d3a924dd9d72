"""
planning-ai-core — draft safety tables

File: src/planning_ai/drafts/safety.py
Last updated: 2026-10-19

Purpose
- Static, read-only rules for how each draft type may be applied.

What should be included in this file
- ``DRAFT_SAFETY_RULES``: confirmation and service-validation requirements per type.
- ``DRAFT_APPLICATION_PLANS``: which service call applies a draft, and whether
  partial application is supported.
- Provenance verification and the pre-application gate.

Functional requirements
- No draft type may ever be auto-applied; the tables refuse to load otherwise.
- Drafts are applied only through authoritative services, never written directly.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from planning_ai.domain.drafts import DraftStatus, DraftType

if TYPE_CHECKING:
    from planning_ai.domain.drafts import AIDraft

NO_TARGET_SERVICE: Final[str] = "none"


@dataclass(frozen=True, slots=True)
class DraftSafetyRule:
    can_auto_apply: bool
    requires_user_confirmation: bool
    requires_service_validation: bool
    warnings: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.can_auto_apply:
            raise ValueError("draft types can never be auto-applied")


@dataclass(frozen=True, slots=True)
class DraftApplicationPlan:
    draft_type: DraftType
    target_service: str
    service_method: str
    required_parameters: tuple[str, ...]
    partial_application_supported: bool
    steps: tuple[str, ...]

    @property
    def writes_authoritative_data(self) -> bool:
        return self.target_service != NO_TARGET_SERVICE

    def to_dict(self) -> dict[str, object]:
        return {
            "draft_type": self.draft_type.value,
            "target_service": self.target_service,
            "service_method": self.service_method,
            "required_parameters": list(self.required_parameters),
            "partial_application_supported": self.partial_application_supported,
            "steps": list(self.steps),
        }


def _rule(confirm: bool, validate: bool, *warnings: str) -> DraftSafetyRule:
    return DraftSafetyRule(
        can_auto_apply=False,
        requires_user_confirmation=confirm,
        requires_service_validation=validate,
        warnings=warnings,
    )


DRAFT_SAFETY_RULES: Final[Mapping[DraftType, DraftSafetyRule]] = MappingProxyType(
    {
        DraftType.ROADMAP_ITEM: _rule(
            True,
            True,
            "Draft must be reviewed before creating roadmap item",
            "User must call the roadmap service to create the item",
            "No AI-generated IDs are persisted directly",
        ),
        DraftType.CHILD_ITEM: _rule(
            True,
            True,
            "Draft must be reviewed before creating child item",
            "User must call the roadmap service with a parent item id",
            "No AI-generated IDs are persisted directly",
        ),
        DraftType.TASK_LIST: _rule(
            True,
            True,
            "Draft task list must be reviewed",
            "User must create each task via the task flow service",
            "Tasks can be created one-by-one or in batch",
        ),
        DraftType.DOCUMENT: _rule(
            True,
            False,
            "Draft document must be reviewed",
            "User can copy content or attach to entity",
            "Content should be validated before use",
        ),
        DraftType.SUMMARY: _rule(
            False,
            False,
            "Summary is informational only",
            "No action required",
            "Can be saved as note if desired",
        ),
        DraftType.INSIGHT: _rule(
            False,
            False,
            "Insight is advisory only",
            "User should evaluate before acting",
            "Can be saved for reference",
        ),
        DraftType.CHECKLIST: _rule(
            True,
            False,
            "Checklist should be reviewed and edited",
            "User can copy to task list or notes",
            "Items may need adjustment for context",
        ),
        DraftType.TIMELINE: _rule(
            True,
            True,
            "Timeline proposal must be reviewed",
            "Dates and durations should be validated",
            "User must manually apply via roadmap services",
        ),
        DraftType.BREAKDOWN: _rule(
            True,
            True,
            "Breakdown must be reviewed",
            "User must create child items via service",
            "Structure may need refinement",
        ),
        DraftType.RISK_ANALYSIS: _rule(
            False,
            False,
            "Risk analysis is informational",
            "User should validate risks",
            "Mitigation strategies are suggestions only",
        ),
    }
)


def _plan(
    draft_type: DraftType,
    target_service: str,
    service_method: str,
    required_parameters: tuple[str, ...],
    partial: bool,
    steps: tuple[str, ...],
) -> DraftApplicationPlan:
    return DraftApplicationPlan(
        draft_type=draft_type,
        target_service=target_service,
        service_method=service_method,
        required_parameters=required_parameters,
        partial_application_supported=partial,
        steps=steps,
    )


DRAFT_APPLICATION_PLANS: Final[Mapping[DraftType, DraftApplicationPlan]] = MappingProxyType(
    {
        DraftType.ROADMAP_ITEM: _plan(
            DraftType.ROADMAP_ITEM,
            "roadmap_service",
            "create_roadmap_item",
            ("project_id", "track_id", "title"),
            False,
            (
                "Review draft content",
                "Edit title, description, duration if needed",
                "Select target track",
                "Create the roadmap item with draft content",
                "On success, accept the draft with the created item id",
            ),
        ),
        DraftType.CHILD_ITEM: _plan(
            DraftType.CHILD_ITEM,
            "roadmap_service",
            "create_roadmap_item",
            ("project_id", "track_id", "title", "parent_item_id"),
            False,
            (
                "Review draft content",
                "Confirm parent item",
                "Edit details if needed",
                "Create the roadmap item with its parent item id",
                "On success, accept the draft",
            ),
        ),
        DraftType.TASK_LIST: _plan(
            DraftType.TASK_LIST,
            "task_flow_service",
            "create_task",
            ("project_id", "title"),
            True,
            (
                "Review task list",
                "Select which tasks to create",
                "Create each selected task",
                "Track created task ids",
                "Mark the draft partially applied or accept it",
            ),
        ),
        DraftType.DOCUMENT: _plan(
            DraftType.DOCUMENT,
            NO_TARGET_SERVICE,
            NO_TARGET_SERVICE,
            (),
            False,
            (
                "Review document content",
                "Copy to clipboard or save as note",
                "Optionally attach to entity",
                "Accept the draft if satisfied",
            ),
        ),
        DraftType.SUMMARY: _plan(
            DraftType.SUMMARY,
            NO_TARGET_SERVICE,
            NO_TARGET_SERVICE,
            (),
            False,
            ("Read summary", "Use insights for decision-making", "Optionally save for reference"),
        ),
        DraftType.INSIGHT: _plan(
            DraftType.INSIGHT,
            NO_TARGET_SERVICE,
            NO_TARGET_SERVICE,
            (),
            False,
            ("Review insight", "Evaluate relevance", "Take action if warranted"),
        ),
        DraftType.CHECKLIST: _plan(
            DraftType.CHECKLIST,
            NO_TARGET_SERVICE,
            NO_TARGET_SERVICE,
            (),
            False,
            (
                "Review checklist items",
                "Edit or reorder as needed",
                "Copy to task list or notes",
                "Use for tracking progress",
            ),
        ),
        DraftType.TIMELINE: _plan(
            DraftType.TIMELINE,
            "roadmap_service",
            "create_roadmap_item",
            ("project_id", "track_id"),
            True,
            (
                "Review timeline phases",
                "Adjust dates and durations",
                "Create roadmap items for each phase",
                "Set deadlines appropriately",
                "Mark the draft partially applied or accept it",
            ),
        ),
        DraftType.BREAKDOWN: _plan(
            DraftType.BREAKDOWN,
            "roadmap_service",
            "create_roadmap_item",
            ("project_id", "track_id", "parent_item_id"),
            True,
            (
                "Review breakdown structure",
                "Edit items as needed",
                "Create child items via the roadmap service",
                "Maintain hierarchy",
                "Mark the draft partially applied or accept it",
            ),
        ),
        DraftType.RISK_ANALYSIS: _plan(
            DraftType.RISK_ANALYSIS,
            NO_TARGET_SERVICE,
            NO_TARGET_SERVICE,
            (),
            False,
            (
                "Review identified risks",
                "Validate severity and likelihood",
                "Consider mitigation strategies",
                "Document in project notes",
            ),
        ),
    }
)

if set(DRAFT_SAFETY_RULES) != set(DraftType) or set(DRAFT_APPLICATION_PLANS) != set(DraftType):
    raise RuntimeError("draft safety tables must cover every draft type")


def check_draft_safety(draft_type: DraftType | str) -> DraftSafetyRule:
    return DRAFT_SAFETY_RULES[DraftType(draft_type)]


def get_application_plan(draft_type: DraftType | str) -> DraftApplicationPlan:
    return DRAFT_APPLICATION_PLANS[DraftType(draft_type)]


@dataclass(frozen=True, slots=True)
class ProvenanceVerification:
    valid: bool
    has_source_entities: bool
    has_context_snapshot: bool
    has_generation_timestamp: bool
    has_context_scope: bool
    issues: tuple[str, ...] = ()


def verify_draft_provenance(draft: AIDraft) -> ProvenanceVerification:
    """Check the provenance fields required before a draft may be applied."""

    provenance = draft.provenance
    issues: list[str] = []
    has_sources = provenance is not None and bool(provenance.source_entity_ids)
    if not has_sources:
        issues.append("Missing source entity IDs")
    has_snapshot = provenance is not None and bool(provenance.context_snapshot)
    if not has_snapshot:
        issues.append("Missing context snapshot")
    has_timestamp = provenance is not None and provenance.generated_at is not None
    if not has_timestamp:
        issues.append("Missing generation timestamp")
    has_scope = draft.context_scope is not None
    if not has_scope:
        issues.append("Missing context scope")
    if provenance is not None and len(provenance.source_entity_ids) != len(
        provenance.source_entity_types
    ):
        issues.append("Source entity IDs and types length mismatch")
    return ProvenanceVerification(
        valid=not issues,
        has_source_entities=has_sources,
        has_context_snapshot=has_snapshot,
        has_generation_timestamp=has_timestamp,
        has_context_scope=has_scope,
        issues=tuple(issues),
    )


@dataclass(frozen=True, slots=True)
class ApplyCheck:
    allowed: bool
    reason: str | None = None


def can_apply_draft(draft: AIDraft) -> ApplyCheck:
    rule = check_draft_safety(draft.draft_type)
    if rule.can_auto_apply:
        return ApplyCheck(False, "This draft type cannot be auto-applied (safety rule)")
    if draft.status is DraftStatus.ACCEPTED:
        return ApplyCheck(False, "Draft has already been applied")
    if draft.status is DraftStatus.DISCARDED:
        return ApplyCheck(False, "Draft has been discarded")
    if draft.provenance is None or not draft.provenance.source_entity_ids:
        return ApplyCheck(False, "Draft is missing provenance metadata")
    if draft.context_scope is None:
        return ApplyCheck(False, "Draft is missing context scope")
    return ApplyCheck(True)


__all__ = [
    "ApplyCheck",
    "DRAFT_APPLICATION_PLANS",
    "DRAFT_SAFETY_RULES",
    "DraftApplicationPlan",
    "DraftSafetyRule",
    "ProvenanceVerification",
    "can_apply_draft",
    "check_draft_safety",
    "get_application_plan",
    "verify_draft_provenance",
]
