"""
planning-ai-core — unit tests for the draft lifecycle

File: tests/unit/drafts/test_lifecycle.py
Last updated: 2026-10-19

Purpose
- Validate draft creation, the transition table, ownership and partial application.

What this test file should cover
- Drafts cannot be created without scope and provenance.
- Terminal drafts cannot move; illegal transitions are rejected.
- Only the owner may transition a draft.
- Partial application validates indices and accumulates them across calls.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from planning_ai.domain.drafts import AIDraft, DraftProvenance, DraftStatus, DraftType
from planning_ai.domain.scope import ContextScope
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
from planning_ai.errors import (
    DraftFinalizedError,
    Err,
    ErrorKind,
    InvariantViolationError,
    Ok,
    ValidationError,
)

_NOW = datetime(2026, 3, 2, tzinfo=UTC)
_LATER = _NOW + timedelta(minutes=5)
_PROVENANCE = DraftProvenance(
    source_entity_ids=("proj-1",),
    source_entity_types=("project",),
    context_snapshot={"route_id": "draft-generation"},
    generated_at=_NOW,
)


def _create(draft_type: DraftType = DraftType.TASK_LIST, logger=None) -> AIDraft:
    return create_draft(
        draft_id="d1",
        user_id="u1",
        draft_type=draft_type,
        title="Launch tasks",
        content={"items": [{"title": "a"}, {"title": "b"}, {"title": "c"}]},
        context_scope=ContextScope(project_id="proj-1"),
        provenance=_PROVENANCE,
        project_id="proj-1",
        now=_NOW,
        logger=logger,
    )


@pytest.mark.unit
def test_create_draft_starts_generated(recording_logger) -> None:
    draft = _create(logger=recording_logger)

    assert draft.status is DraftStatus.GENERATED
    assert draft.created_at == draft.updated_at == _NOW
    assert draft.project_id == "proj-1"


@pytest.mark.unit
def test_create_draft_requires_scope_and_provenance(recording_logger) -> None:
    with pytest.raises(ValidationError) as excinfo:
        create_draft(
            draft_id="d1",
            user_id="u1",
            draft_type="summary",
            title="Summary",
            content={"text": "x"},
            context_scope=None,
            provenance=None,
            logger=recording_logger,
        )

    assert [error.field for error in excinfo.value.field_errors] == [
        "context_scope",
        "provenance",
    ]


@pytest.mark.unit
def test_transition_table() -> None:
    assert ALLOWED_TRANSITIONS[DraftStatus.ACCEPTED] == frozenset()
    assert can_transition("generated", "edited")
    assert can_transition("partially_applied", "partially_applied")
    assert not can_transition("partially_applied", "edited")
    assert not can_transition("edited", "generated")


@pytest.mark.unit
def test_edit_then_discard(recording_logger) -> None:
    draft = _create(logger=recording_logger)

    edited = edit_draft(
        draft, {"text": "new"}, user_id="u1", title="Renamed", now=_LATER, logger=recording_logger
    )
    discarded = discard_draft(edited, user_id="u1", now=_LATER, logger=recording_logger)

    assert edited.status is DraftStatus.EDITED
    assert edited.title == "Renamed"
    assert edited.updated_at == _LATER
    assert discarded.discarded_at == _LATER
    assert draft.status is DraftStatus.GENERATED
    transitions = [f for _, e, f in recording_logger.entries if e == "draft_transition"]
    assert [(f["from_status"], f["to_status"]) for f in transitions] == [
        ("generated", "edited"),
        ("edited", "discarded"),
    ]


@pytest.mark.unit
def test_terminal_drafts_cannot_move(recording_logger) -> None:
    discarded = discard_draft(_create(), user_id="u1", now=_LATER, logger=recording_logger)

    with pytest.raises(DraftFinalizedError) as excinfo:
        edit_draft(discarded, {"text": "x"}, user_id="u1", logger=recording_logger)

    assert excinfo.value.status == "discarded"
    assert excinfo.value.message == "Draft has been discarded"


@pytest.mark.unit
def test_illegal_transition_is_rejected(recording_logger) -> None:
    draft = _create().with_updates(status=DraftStatus.PARTIALLY_APPLIED)

    with pytest.raises(ValidationError, match="partially_applied -> edited"):
        transition(draft, "edited", user_id="u1", logger=recording_logger)


@pytest.mark.unit
def test_only_owner_may_transition(recording_logger) -> None:
    with pytest.raises(InvariantViolationError) as excinfo:
        discard_draft(_create(), user_id="intruder", logger=recording_logger)

    assert excinfo.value.invariant_name == "OWNERSHIP_VIOLATION"


@pytest.mark.unit
def test_apply_draft_accepts_and_records_entities(recording_logger) -> None:
    result = apply_draft(
        _create(), user_id="u1", created_entity_ids=["task-9"], now=_LATER,
        logger=recording_logger,
    )

    assert isinstance(result, Ok)
    assert result.value.status is DraftStatus.ACCEPTED
    assert result.value.applied_at == _LATER
    assert result.value.applied_entity_ids == ("task-9",)

    again = apply_draft(result.value, user_id="u1", logger=recording_logger)
    assert isinstance(again, Err)
    assert again.kind is ErrorKind.DRAFT_FINALIZED


@pytest.mark.unit
def test_apply_requires_complete_provenance(recording_logger) -> None:
    draft = _create().with_updates(provenance=DraftProvenance())

    result = apply_draft(draft, user_id="u1", logger=recording_logger)

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.VALIDATION_ERROR
    assert result.message == "Draft provenance is incomplete"


@pytest.mark.unit
def test_apply_by_non_owner_is_an_invariant_error(recording_logger) -> None:
    result = apply_draft(_create(), user_id="u2", logger=recording_logger)

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.INVARIANT_VIOLATION


@pytest.mark.unit
def test_partial_application_accumulates(recording_logger) -> None:
    first = apply_partial(
        _create(), user_id="u1", element_indices=[2, 0], created_entity_ids=["t2", "t0"],
        logger=recording_logger,
    )
    assert isinstance(first, Ok)
    second = apply_partial(
        first.value, user_id="u1", element_indices=[0, 1], created_entity_ids=["t1"],
        logger=recording_logger,
    )

    assert isinstance(second, Ok)
    draft = second.value
    assert draft.status is DraftStatus.PARTIALLY_APPLIED
    assert draft.applied_elements == (0, 1, 2)
    assert draft.content["applied_elements"] == [0, 1, 2]
    assert draft.applied_entity_ids == ("t2", "t0", "t1")


@pytest.mark.unit
@pytest.mark.parametrize(
    ("indices", "message"),
    [
        ([], "At least one element must be selected"),
        ([1, 1], "Element indices must be unique"),
        ([3], "Element indices out of range: [3]"),
        ([-1], "Element indices out of range: [-1]"),
    ],
)
def test_partial_application_rejects_bad_indices(
    indices: list[int], message: str, recording_logger
) -> None:
    result = apply_partial(
        _create(), user_id="u1", element_indices=indices, logger=recording_logger
    )

    assert isinstance(result, Err)
    assert result.message == message


@pytest.mark.unit
def test_partial_application_requires_supported_type(recording_logger) -> None:
    result = apply_partial(
        _create(DraftType.DOCUMENT), user_id="u1", element_indices=[0], logger=recording_logger
    )

    assert isinstance(result, Err)
    assert result.message == "Draft type document does not support partial application"


@pytest.mark.unit
def test_partial_application_of_an_itemless_draft_is_rejected(recording_logger) -> None:
    draft = create_draft(
        draft_id="d2",
        user_id="u1",
        draft_type=DraftType.TASK_LIST,
        title="Empty list",
        content={"text": "nothing to list", "items": []},
        context_scope=ContextScope(project_id="proj-1"),
        provenance=_PROVENANCE,
        project_id="proj-1",
        now=_NOW,
    )

    result = apply_partial(draft, user_id="u1", element_indices=[0], logger=recording_logger)

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.VALIDATION_ERROR
    assert result.message == "Draft has no applicable elements"
    assert "0..-1" not in str(result.details)
