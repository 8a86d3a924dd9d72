"""
planning-ai-core — draft lifecycle

File: src/planning_ai/drafts/lifecycle.py
Last updated: 2026-10-19

Purpose
- State machine for AI drafts: generated -> edited -> partially_applied -> accepted,
  with discard allowed from any non-terminal state.

What should be included in this file
- The static transition table and ``transition`` primitive.
- Creation, edit, discard, full and partial application operations.

Functional requirements
- Transitions are monotonic; ``accepted`` and ``discarded`` are terminal.
- Only the owning user may modify a draft.
- Application never writes authoritative data; it records which entities the
  caller created through authoritative services.
- ``apply_draft`` and ``apply_partial`` return ``Result`` values instead of raising.

Non-functional requirements
- All operations are pure functions over immutable ``AIDraft`` values.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final

import structlog

from planning_ai.domain.drafts import AIDraft, DraftStatus, DraftType
from planning_ai.drafts.safety import (
    can_apply_draft,
    check_draft_safety,
    get_application_plan,
    verify_draft_provenance,
)
from planning_ai.errors import (
    DraftFinalizedError,
    FieldError,
    Result,
    ValidationError,
    capture,
)
from planning_ai.policy.invariants import (
    DEFAULT_POLICY,
    InvariantPolicy,
    assert_draft_safety,
    assert_ownership,
    assert_table_authority,
)
from planning_ai.utils.validation import utc_now

if TYPE_CHECKING:
    from planning_ai.domain.drafts import DraftProvenance
    from planning_ai.domain.scope import ContextScope

DRAFT_TABLE: Final[str] = "ai_drafts"

ALLOWED_TRANSITIONS: Final[Mapping[DraftStatus, frozenset[DraftStatus]]] = MappingProxyType(
    {
        DraftStatus.GENERATED: frozenset(
            {
                DraftStatus.EDITED,
                DraftStatus.ACCEPTED,
                DraftStatus.DISCARDED,
                DraftStatus.PARTIALLY_APPLIED,
            }
        ),
        DraftStatus.EDITED: frozenset(
            {
                DraftStatus.EDITED,
                DraftStatus.ACCEPTED,
                DraftStatus.DISCARDED,
                DraftStatus.PARTIALLY_APPLIED,
            }
        ),
        DraftStatus.PARTIALLY_APPLIED: frozenset(
            {DraftStatus.PARTIALLY_APPLIED, DraftStatus.ACCEPTED, DraftStatus.DISCARDED}
        ),
        DraftStatus.ACCEPTED: frozenset(),
        DraftStatus.DISCARDED: frozenset(),
    }
)


def can_transition(current: DraftStatus | str, target: DraftStatus | str) -> bool:
    return DraftStatus(target) in ALLOWED_TRANSITIONS[DraftStatus(current)]


def _finalized(draft: AIDraft) -> DraftFinalizedError:
    reason = (
        "Draft has already been applied"
        if draft.status is DraftStatus.ACCEPTED
        else "Draft has been discarded"
    )
    return DraftFinalizedError(draft.id, draft.status.value, reason)


def transition(
    draft: AIDraft,
    target: DraftStatus | str,
    *,
    user_id: str,
    policy: InvariantPolicy = DEFAULT_POLICY,
    now: datetime | None = None,
    logger: Any | None = None,
    **changes: Any,
) -> AIDraft:
    """Move ``draft`` to ``target`` after ownership and transition-table checks."""

    target_status = DraftStatus(target)
    assert_ownership("draft", draft.user_id, user_id, "write", policy=policy, logger=logger)
    if draft.is_terminal:
        raise _finalized(draft)
    if not can_transition(draft.status, target_status):
        raise ValidationError(
            f"Illegal draft transition {draft.status.value} -> {target_status.value}",
            (FieldError("status", f"cannot move to {target_status.value}"),),
        )

    timestamp = now if now is not None else utc_now()
    if target_status is DraftStatus.ACCEPTED:
        changes.setdefault("applied_at", timestamp)
    elif target_status is DraftStatus.DISCARDED:
        changes.setdefault("discarded_at", timestamp)
    updated = draft.with_updates(status=target_status, updated_at=timestamp, **changes)

    log = logger if logger is not None else structlog.get_logger(__name__)
    log.info(
        "draft_transition",
        draft_id=draft.id,
        draft_type=draft.draft_type.value,
        from_status=draft.status.value,
        to_status=target_status.value,
    )
    return updated


def create_draft(
    *,
    draft_id: str,
    user_id: str,
    draft_type: DraftType | str,
    title: str,
    content: Mapping[str, Any],
    context_scope: ContextScope | None,
    provenance: DraftProvenance | None,
    project_id: str | None = None,
    policy: InvariantPolicy = DEFAULT_POLICY,
    now: datetime | None = None,
    logger: Any | None = None,
) -> AIDraft:
    """Wrap model output as a ``generated`` draft owned by ``user_id``."""

    kind = DraftType(draft_type)
    rule = check_draft_safety(kind)
    assert_draft_safety(
        "create_draft",
        True,
        rule.requires_user_confirmation,
        policy=policy,
        logger=logger,
    )
    assert_table_authority(DRAFT_TABLE, "write", "ai", policy=policy, logger=logger)

    field_errors: list[FieldError] = []
    if context_scope is None:
        field_errors.append(FieldError("context_scope", "drafts require a context scope"))
    if provenance is None:
        field_errors.append(FieldError("provenance", "drafts require provenance"))
    if field_errors:
        raise ValidationError("Draft is missing required metadata", field_errors)

    timestamp = now if now is not None else utc_now()
    return AIDraft(
        id=draft_id,
        user_id=user_id,
        draft_type=kind,
        title=title,
        content=content,
        created_at=timestamp,
        updated_at=timestamp,
        status=DraftStatus.GENERATED,
        project_id=project_id,
        provenance=provenance,
        context_scope=context_scope,
    )


def edit_draft(
    draft: AIDraft,
    content: Mapping[str, Any],
    *,
    user_id: str,
    title: str | None = None,
    policy: InvariantPolicy = DEFAULT_POLICY,
    now: datetime | None = None,
    logger: Any | None = None,
) -> AIDraft:
    changes: dict[str, Any] = {"content": content}
    if title is not None:
        changes["title"] = title
    return transition(
        draft,
        DraftStatus.EDITED,
        user_id=user_id,
        policy=policy,
        now=now,
        logger=logger,
        **changes,
    )


def discard_draft(
    draft: AIDraft,
    *,
    user_id: str,
    policy: InvariantPolicy = DEFAULT_POLICY,
    now: datetime | None = None,
    logger: Any | None = None,
) -> AIDraft:
    return transition(
        draft, DraftStatus.DISCARDED, user_id=user_id, policy=policy, now=now, logger=logger
    )


def _check_applicable(draft: AIDraft) -> None:
    if draft.is_terminal:
        raise _finalized(draft)
    verification = verify_draft_provenance(draft)
    if not verification.valid:
        raise ValidationError(
            "Draft provenance is incomplete",
            [FieldError("provenance", issue) for issue in verification.issues],
        )
    check = can_apply_draft(draft)
    if not check.allowed:
        raise ValidationError(check.reason or "Draft cannot be applied")


def _apply_draft(
    draft: AIDraft,
    *,
    user_id: str,
    created_entity_ids: Sequence[str],
    policy: InvariantPolicy,
    now: datetime | None,
    logger: Any | None,
) -> AIDraft:
    assert_ownership("draft", draft.user_id, user_id, "write", policy=policy, logger=logger)
    _check_applicable(draft)
    return transition(
        draft,
        DraftStatus.ACCEPTED,
        user_id=user_id,
        policy=policy,
        now=now,
        logger=logger,
        applied_entity_ids=tuple(dict.fromkeys((*draft.applied_entity_ids, *created_entity_ids))),
    )


def apply_draft(
    draft: AIDraft,
    *,
    user_id: str,
    created_entity_ids: Sequence[str] = (),
    policy: InvariantPolicy = DEFAULT_POLICY,
    now: datetime | None = None,
    logger: Any | None = None,
) -> Result[AIDraft]:
    """Record a full application and accept the draft."""

    return capture(
        _apply_draft,
        draft,
        user_id=user_id,
        created_entity_ids=created_entity_ids,
        policy=policy,
        now=now,
        logger=logger,
    )


def _apply_partial(
    draft: AIDraft,
    *,
    user_id: str,
    element_indices: Sequence[int],
    created_entity_ids: Sequence[str],
    policy: InvariantPolicy,
    now: datetime | None,
    logger: Any | None,
) -> AIDraft:
    assert_ownership("draft", draft.user_id, user_id, "write", policy=policy, logger=logger)
    _check_applicable(draft)
    plan = get_application_plan(draft.draft_type)
    if not plan.partial_application_supported:
        raise ValidationError(
            f"Draft type {draft.draft_type.value} does not support partial application",
            (FieldError("draft_type", "partial application not supported"),),
        )

    indices = list(element_indices)
    if not indices:
        raise ValidationError(
            "At least one element must be selected",
            (FieldError("element_indices", "must not be empty"),),
        )
    if len(set(indices)) != len(indices):
        raise ValidationError(
            "Element indices must be unique",
            (FieldError("element_indices", "duplicate index"),),
        )
    total = draft.element_count()
    if total == 0:
        raise ValidationError(
            "Draft has no applicable elements",
            (FieldError("content", "draft has no items to apply"),),
        )
    out_of_range = [
        index for index in indices if isinstance(index, bool) or not 0 <= index < total
    ]
    if out_of_range:
        raise ValidationError(
            f"Element indices out of range: {out_of_range}",
            (FieldError("element_indices", f"valid range is 0..{total - 1}"),),
        )

    applied = tuple(sorted(set(draft.applied_elements) | set(indices)))
    content = dict(draft.content)
    content["applied_elements"] = list(applied)
    return transition(
        draft,
        DraftStatus.PARTIALLY_APPLIED,
        user_id=user_id,
        policy=policy,
        now=now,
        logger=logger,
        content=content,
        applied_elements=applied,
        applied_entity_ids=tuple(dict.fromkeys((*draft.applied_entity_ids, *created_entity_ids))),
    )


def apply_partial(
    draft: AIDraft,
    *,
    user_id: str,
    element_indices: Sequence[int],
    created_entity_ids: Sequence[str] = (),
    policy: InvariantPolicy = DEFAULT_POLICY,
    now: datetime | None = None,
    logger: Any | None = None,
) -> Result[AIDraft]:
    """Record application of selected elements; the draft stays open for more."""

    return capture(
        _apply_partial,
        draft,
        user_id=user_id,
        element_indices=element_indices,
        created_entity_ids=created_entity_ids,
        policy=policy,
        now=now,
        logger=logger,
    )


__all__ = [
    "ALLOWED_TRANSITIONS",
    "apply_draft",
    "apply_partial",
    "can_transition",
    "create_draft",
    "discard_draft",
    "edit_draft",
    "transition",
]
