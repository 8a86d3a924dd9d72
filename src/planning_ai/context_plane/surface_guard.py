"""
planning-ai-core — surface scope guard

File: src/planning_ai/context_plane/surface_guard.py
Last updated: 2026-10-19

Purpose
- Keep a request's context scope inside the boundary of the chat surface it came from.

Functional requirements
- Project surfaces read only their own project; personal surfaces read no project data.
- Shared surfaces read shared tracks only, never a project or roadmap items.
- A violation is logged as ``surface_scope_violation`` and raised before any data is read.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from planning_ai.domain.scope import ChatSurface, ContextScope, SurfaceType
from planning_ai.errors import InvariantViolationError, SurfaceScopeViolationError
from planning_ai.policy.invariants import DEFAULT_POLICY, InvariantPolicy


@dataclass(frozen=True, slots=True)
class SurfaceValidation:
    valid: bool
    violations: tuple[str, ...] = ()


def validate_surface_scope(scope: ContextScope, surface: ChatSurface) -> SurfaceValidation:
    """Describe every way ``scope`` reaches outside ``surface``. Pure."""

    violations: list[str] = []
    if surface.surface_type is SurfaceType.PROJECT:
        if not surface.project_id:
            violations.append("Project surface requires a project id")
        elif scope.project_id is not None and scope.project_id != surface.project_id:
            violations.append(
                f"Project surface can only access its own project data "
                f"({surface.project_id}), not {scope.project_id}"
            )
    elif surface.surface_type is SurfaceType.PERSONAL:
        if scope.requests_project_data:
            violations.append("Personal surface cannot access project-authoritative data")
        if scope.include_collaboration:
            violations.append("Personal surface cannot access collaboration data")
    elif surface.surface_type is SurfaceType.SHARED:
        if scope.project_id is not None or scope.roadmap_item_ids:
            violations.append(
                "Shared surface can only access shared tracks and shared collaboration metadata"
            )
    return SurfaceValidation(valid=not violations, violations=tuple(violations))


def enforce_surface_scope(
    scope: ContextScope,
    surface: ChatSurface,
    *,
    policy: InvariantPolicy = DEFAULT_POLICY,
    logger: Any | None = None,
) -> None:
    """Raise ``SurfaceScopeViolationError`` when ``scope`` crosses ``surface``."""

    log = logger if logger is not None else structlog.get_logger(__name__)
    if policy.allow_cross_surface_reads:
        log.info(
            "invariant_violation",
            invariant="NO_CROSS_SURFACE_READS",
            policy_version=policy.version,
        )
        raise InvariantViolationError(
            "NO_CROSS_SURFACE_READS",
            {"policy_version": policy.version},
            "Cross-surface reads cannot be enabled",
        )
    validation = validate_surface_scope(scope, surface)
    if validation.valid:
        return
    log.info(
        "surface_scope_violation",
        surface_type=surface.surface_type.value,
        violations=list(validation.violations),
        policy_version=policy.version,
    )
    raise SurfaceScopeViolationError(
        f"Context scope violates {surface.surface_type.value} surface boundaries",
        violations=validation.violations,
        context={"scope": scope.to_dict(), "surface": surface.to_dict()},
    )


__all__ = ["SurfaceValidation", "enforce_surface_scope", "validate_surface_scope"]
