"""
planning-ai-core — unit tests for the surface scope guard

File: tests/unit/context_plane/test_surface_guard.py
Last updated: 2026-10-19

Purpose
- Validate that project, personal and shared surfaces keep scopes inside their boundary.
"""

from __future__ import annotations

import pytest

from planning_ai.context_plane.surface_guard import enforce_surface_scope, validate_surface_scope
from planning_ai.domain.scope import ChatSurface, ContextScope
from planning_ai.errors import ErrorKind, InvariantViolationError, SurfaceScopeViolationError
from planning_ai.policy.invariants import InvariantPolicy


@pytest.mark.unit
def test_project_surface_allows_own_project_only() -> None:
    surface = ChatSurface.project("p1")

    assert validate_surface_scope(ContextScope(project_id="p1"), surface).valid
    assert validate_surface_scope(ContextScope(), surface).valid
    result = validate_surface_scope(ContextScope(project_id="p2"), surface)
    assert not result.valid
    assert "not p2" in result.violations[0]


@pytest.mark.unit
def test_personal_surface_rejects_project_data_and_collaboration() -> None:
    scope = ContextScope(track_ids=("t1",), include_collaboration=True)

    result = validate_surface_scope(scope, ChatSurface.personal())

    assert result.violations == (
        "Personal surface cannot access project-authoritative data",
        "Personal surface cannot access collaboration data",
    )
    assert validate_surface_scope(
        ContextScope(include_tasks=True), ChatSurface.personal()
    ).valid


@pytest.mark.unit
def test_shared_surface_allows_tracks_but_not_projects_or_items() -> None:
    shared = ChatSurface.shared()

    assert validate_surface_scope(ContextScope(track_ids=("t1",)), shared).valid
    assert not validate_surface_scope(ContextScope(project_id="p1"), shared).valid
    assert not validate_surface_scope(ContextScope(roadmap_item_ids=("i1",)), shared).valid


@pytest.mark.unit
def test_enforce_raises_and_logs(recording_logger) -> None:
    with pytest.raises(SurfaceScopeViolationError) as excinfo:
        enforce_surface_scope(
            ContextScope(project_id="p1"), ChatSurface.personal(), logger=recording_logger
        )

    error = excinfo.value
    assert error.kind is ErrorKind.SURFACE_SCOPE_VIOLATION
    assert error.violations == ("Personal surface cannot access project-authoritative data",)
    fields = recording_logger.first("surface_scope_violation")
    assert fields["surface_type"] == "personal"
    assert fields["policy_version"] == "2025.12"


@pytest.mark.unit
def test_enforce_passes_silently_for_valid_scope(recording_logger) -> None:
    enforce_surface_scope(
        ContextScope(project_id="p1"), ChatSurface.project("p1"), logger=recording_logger
    )

    assert recording_logger.entries == []


@pytest.mark.unit
def test_policy_with_cross_surface_reads_is_refused(recording_logger) -> None:
    policy = InvariantPolicy()
    # The constructor rejects the flag; force it to reach the guard itself.
    object.__setattr__(policy, "allow_cross_surface_reads", True)

    with pytest.raises(InvariantViolationError) as excinfo:
        enforce_surface_scope(
            ContextScope(), ChatSurface.personal(), policy=policy, logger=recording_logger
        )

    assert excinfo.value.invariant_name == "NO_CROSS_SURFACE_READS"
    assert not isinstance(excinfo.value, SurfaceScopeViolationError)
    assert recording_logger.first("invariant_violation")["invariant"] == "NO_CROSS_SURFACE_READS"
