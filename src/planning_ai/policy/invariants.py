"""
planning-ai-core — invariant enforcer

File: src/planning_ai/policy/invariants.py
Last updated: 2026-10-19

Purpose
- Hold the versioned invariant policy and the assertion helpers that enforce it.

What should be included in this file
- ``InvariantPolicy`` (frozen) and the ``DEFAULT_POLICY`` instance.
- Authority, draft, permission, structure, collaboration-log, ownership, table,
  side-effect and chat-surface assertions.
- ``validate_policy`` for startup self-checks.

Functional requirements
- Each assertion raises ``InvariantViolationError(name, context, message)`` and emits
  an ``invariant_violation`` decision log before raising.
- The policy is passed explicitly; there is no module-level mutable state.

Non-functional requirements
- Assertions are pure apart from logging.
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final, Literal, NoReturn

import structlog

from planning_ai.constants import INVARIANT_POLICY_VERSION, MAX_COMPOSITION_DEPTH
from planning_ai.errors import InvariantViolationError

if TYPE_CHECKING:
    from planning_ai.domain.scope import ChatSurface

AuthoritySource = Literal[
    "ai", "personal_spaces", "task_flow", "mind_mesh", "household", "guardrails"
]
TableSource = Literal["ui", "api", "ai", "external"]
AccessOperation = Literal["read", "write"]

AUTHORITATIVE_TABLES: Final[frozenset[str]] = frozenset(
    {
        "master_projects",
        "guardrails_tracks_v2",
        "roadmap_items",
        "roadmap_item_assignments",
        "project_people",
        "global_people",
        "project_users",
        "guardrails_subtracks",
    }
)
DRAFT_TABLES: Final[frozenset[str]] = frozenset(
    {"ai_drafts", "ai_interactions", "ai_tag_resolutions"}
)
CONSUMPTION_TABLES: Final[frozenset[str]] = frozenset(
    {"personal_space_consumption", "task_flow_tasks", "mind_mesh_nodes"}
)

_ROADMAP_WRITE_FORBIDDEN: Final[tuple[str, ...]] = (
    "create_ai_draft",
    "affect_personal_spaces",
    "send_notification",
)
ILLEGAL_SIDE_EFFECTS: Final[Mapping[str, frozenset[str]]] = MappingProxyType(
    {
        "create_roadmap_item": frozenset(_ROADMAP_WRITE_FORBIDDEN),
        "update_roadmap_item": frozenset(_ROADMAP_WRITE_FORBIDDEN),
        "ai_generate_content": frozenset(
            {"create_roadmap_item", "trigger_automation", "send_notification"}
        ),
        "personal_space_action": frozenset({"mutate_guardrails", "affect_other_users"}),
    }
)

_OWNED_ENTITY_TYPES: Final[frozenset[str]] = frozenset({"draft", "personal_link"})
_REVISION_SUFFIX = re.compile(r"^(?P<base>.+?)-r(?P<rev>\d+)$")


@dataclass(frozen=True, slots=True)
class InvariantPolicy:
    """Versioned set of system invariants; build variants with ``with_overrides``."""

    version: str = INVARIANT_POLICY_VERSION
    ai_can_write: bool = False
    personal_spaces_can_write: bool = False
    task_flow_can_originate_tasks: bool = False
    mind_mesh_can_create_authority: bool = False
    household_can_mutate: bool = False
    outputs_are_drafts: bool = True
    requires_user_confirmation: bool = True
    no_cross_project_reads_without_check: bool = True
    max_composition_depth: int = MAX_COMPOSITION_DEPTH
    one_primary_authority: bool = True
    collaboration_logs_append_only: bool = True
    allow_surface_switching: bool = False
    allow_cross_surface_reads: bool = False
    allow_global_chat: bool = False
    authoritative_tables: frozenset[str] = AUTHORITATIVE_TABLES
    draft_tables: frozenset[str] = DRAFT_TABLES
    consumption_tables: frozenset[str] = CONSUMPTION_TABLES
    illegal_side_effects: Mapping[str, frozenset[str]] = field(
        default_factory=lambda: ILLEGAL_SIDE_EFFECTS
    )

    def __post_init__(self) -> None:
        if not isinstance(self.version, str) or not self.version.strip():
            raise ValueError("InvariantPolicy.version must be a non-empty string")
        if isinstance(self.max_composition_depth, bool) or self.max_composition_depth < 1:
            raise ValueError("InvariantPolicy.max_composition_depth must be >= 1")
        if self.allow_cross_surface_reads:
            raise ValueError("InvariantPolicy.allow_cross_surface_reads must be False")
        for name in ("authoritative_tables", "draft_tables", "consumption_tables"):
            object.__setattr__(self, name, frozenset(getattr(self, name)))
        object.__setattr__(
            self,
            "illegal_side_effects",
            MappingProxyType(
                {
                    str(action): frozenset(effects)
                    for action, effects in self.illegal_side_effects.items()
                }
            ),
        )

    def with_overrides(self, **changes: Any) -> InvariantPolicy:
        """Copy with ``changes`` applied and the version's revision suffix bumped."""

        if "version" not in changes:
            match = _REVISION_SUFFIX.match(self.version)
            if match is None:
                changes["version"] = f"{self.version}-r1"
            else:
                changes["version"] = f"{match.group('base')}-r{int(match.group('rev')) + 1}"
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, object]:
        return {
            "version": self.version,
            "ai_can_write": self.ai_can_write,
            "personal_spaces_can_write": self.personal_spaces_can_write,
            "task_flow_can_originate_tasks": self.task_flow_can_originate_tasks,
            "mind_mesh_can_create_authority": self.mind_mesh_can_create_authority,
            "household_can_mutate": self.household_can_mutate,
            "outputs_are_drafts": self.outputs_are_drafts,
            "requires_user_confirmation": self.requires_user_confirmation,
            "no_cross_project_reads_without_check": self.no_cross_project_reads_without_check,
            "max_composition_depth": self.max_composition_depth,
            "one_primary_authority": self.one_primary_authority,
            "collaboration_logs_append_only": self.collaboration_logs_append_only,
            "allow_surface_switching": self.allow_surface_switching,
            "allow_cross_surface_reads": self.allow_cross_surface_reads,
            "allow_global_chat": self.allow_global_chat,
            "authoritative_tables": sorted(self.authoritative_tables),
            "draft_tables": sorted(self.draft_tables),
            "consumption_tables": sorted(self.consumption_tables),
            "illegal_side_effects": {
                action: sorted(effects)
                for action, effects in sorted(self.illegal_side_effects.items())
            },
        }


DEFAULT_POLICY: Final[InvariantPolicy] = InvariantPolicy()


def _violate(
    name: str,
    context: Mapping[str, object],
    message: str,
    *,
    policy: InvariantPolicy,
    logger: Any | None,
) -> NoReturn:
    log = logger if logger is not None else structlog.get_logger(__name__)
    log.info(
        "invariant_violation",
        invariant=name,
        policy_version=policy.version,
        context=dict(context),
    )
    raise InvariantViolationError(name, context, message)


def assert_authority_boundary(
    operation: str,
    source: AuthoritySource | str,
    *,
    policy: InvariantPolicy = DEFAULT_POLICY,
    logger: Any | None = None,
) -> None:
    """Reject writes to authoritative state from any non-guardrails source."""

    context = {"operation": operation, "source": source}
    if source == "ai" and not policy.ai_can_write:
        _violate(
            "AI_CAN_WRITE",
            context,
            "AI cannot write directly to authoritative tables. "
            "All outputs must be drafts requiring user confirmation.",
            policy=policy,
            logger=logger,
        )
    if source == "personal_spaces" and not policy.personal_spaces_can_write:
        _violate(
            "PERSONAL_SPACES_CAN_WRITE",
            context,
            "Personal Spaces cannot mutate authoritative state. Only consumption allowed.",
            policy=policy,
            logger=logger,
        )
    if source == "task_flow" and not policy.task_flow_can_originate_tasks:
        _violate(
            "TASK_FLOW_CAN_ORIGINATE_TASKS",
            context,
            "Task Flow cannot originate tasks. All tasks must sync from roadmap items.",
            policy=policy,
            logger=logger,
        )
    if source == "mind_mesh" and not policy.mind_mesh_can_create_authority:
        _violate(
            "MIND_MESH_CAN_CREATE_AUTHORITY",
            context,
            "Mind Mesh cannot create authoritative entities. Only nodes and edges allowed.",
            policy=policy,
            logger=logger,
        )
    if source == "household" and not policy.household_can_mutate:
        _violate(
            "HOUSEHOLD_CAN_MUTATE_GUARDRAILS",
            context,
            "Household system cannot mutate project authority.",
            policy=policy,
            logger=logger,
        )


def assert_draft_safety(
    operation: str,
    is_draft: bool,
    requires_confirmation: bool,
    *,
    policy: InvariantPolicy = DEFAULT_POLICY,
    logger: Any | None = None,
) -> None:
    if not policy.outputs_are_drafts:
        _violate(
            "OUTPUTS_ARE_DRAFTS",
            {"operation": operation, "is_draft": is_draft},
            "AI outputs must always be drafts.",
            policy=policy,
            logger=logger,
        )
    if not is_draft:
        _violate(
            "OUTPUTS_ARE_DRAFTS",
            {"operation": operation, "is_draft": is_draft},
            "This AI operation must produce a draft, not a direct write.",
            policy=policy,
            logger=logger,
        )
    if requires_confirmation and not policy.requires_user_confirmation:
        _violate(
            "REQUIRES_USER_CONFIRMATION",
            {"operation": operation},
            "This operation requires explicit user confirmation.",
            policy=policy,
            logger=logger,
        )


def assert_permission_boundary(
    operation: str,
    user_id: str,
    project_id: str | None,
    entity_project_id: str | None,
    *,
    permission_checked: bool = False,
    policy: InvariantPolicy = DEFAULT_POLICY,
    logger: Any | None = None,
) -> None:
    """Cross-project reads are allowed only after an explicit access check."""

    if not project_id or not entity_project_id or project_id == entity_project_id:
        return
    if permission_checked or not policy.no_cross_project_reads_without_check:
        return
    _violate(
        "NO_CROSS_PROJECT_READS_WITHOUT_CHECK",
        {
            "operation": operation,
            "user_id": user_id,
            "project_id": project_id,
            "entity_project_id": entity_project_id,
        },
        "Cross-project access requires explicit permission check.",
        policy=policy,
        logger=logger,
    )


def assert_timeline_eligibility(
    item_id: str,
    has_parent: bool,
    has_children: bool,
    *,
    policy: InvariantPolicy = DEFAULT_POLICY,
    logger: Any | None = None,
) -> None:
    if has_parent and has_children:
        _violate(
            "NO_CHILD_ON_TIMELINE",
            {"item_id": item_id, "has_parent": has_parent, "has_children": has_children},
            "Middle-tier items (with both parent and children) cannot appear on timeline.",
            policy=policy,
            logger=logger,
        )


def assert_composition_depth(
    depth: int,
    *,
    policy: InvariantPolicy = DEFAULT_POLICY,
    logger: Any | None = None,
) -> None:
    max_depth = policy.max_composition_depth
    if depth > max_depth:
        _violate(
            "MAX_COMPOSITION_DEPTH",
            {"depth": depth, "max_depth": max_depth},
            f"Composition depth {depth} exceeds maximum {max_depth}.",
            policy=policy,
            logger=logger,
        )


def assert_shared_track_invariant(
    track_id: str,
    primary_authority_count: int,
    *,
    policy: InvariantPolicy = DEFAULT_POLICY,
    logger: Any | None = None,
) -> None:
    """A shared track has exactly one primary authority project."""

    if not policy.one_primary_authority:
        return
    if primary_authority_count > 1:
        _violate(
            "ONE_PRIMARY_AUTHORITY",
            {"track_id": track_id, "primary_authority_count": primary_authority_count},
            "Shared track cannot have multiple primary authority projects.",
            policy=policy,
            logger=logger,
        )
    if primary_authority_count <= 0:
        _violate(
            "NO_ORPHANED_SHARED_TRACKS",
            {"track_id": track_id, "primary_authority_count": primary_authority_count},
            "Shared track must have exactly one primary authority project.",
            policy=policy,
            logger=logger,
        )


def assert_collaboration_log_immutability(
    operation: Literal["update", "delete"] | str,
    log_id: str,
    *,
    policy: InvariantPolicy = DEFAULT_POLICY,
    logger: Any | None = None,
) -> None:
    if not policy.collaboration_logs_append_only:
        return
    if operation == "update":
        _violate(
            "NO_LOG_MUTATION",
            {"operation": operation, "log_id": log_id},
            "Collaboration logs are append-only and cannot be updated.",
            policy=policy,
            logger=logger,
        )
    if operation == "delete":
        _violate(
            "NO_LOG_DELETION",
            {"operation": operation, "log_id": log_id},
            "Collaboration logs are append-only and cannot be deleted.",
            policy=policy,
            logger=logger,
        )


def assert_ownership(
    entity_type: str,
    owner_id: str,
    user_id: str,
    operation: AccessOperation | str,
    *,
    policy: InvariantPolicy = DEFAULT_POLICY,
    logger: Any | None = None,
) -> None:
    """Only the owner may write user-owned entities (drafts, personal links)."""

    if operation != "write" or owner_id == user_id:
        return
    if entity_type in _OWNED_ENTITY_TYPES:
        _violate(
            "OWNERSHIP_VIOLATION",
            {"entity_type": entity_type, "owner_id": owner_id, "user_id": user_id},
            f"Only owner can modify {entity_type}.",
            policy=policy,
            logger=logger,
        )


def assert_table_authority(
    table: str,
    operation: AccessOperation | str,
    source: TableSource | str,
    *,
    policy: InvariantPolicy = DEFAULT_POLICY,
    logger: Any | None = None,
) -> None:
    if operation != "write":
        return
    context = {"table": table, "operation": operation, "source": source}
    is_authoritative = table in policy.authoritative_tables
    if is_authoritative and source == "ai":
        _violate(
            "AI_CANNOT_WRITE_AUTHORITATIVE",
            context,
            "AI cannot write directly to authoritative tables.",
            policy=policy,
            logger=logger,
        )
    if is_authoritative and source == "external":
        _violate(
            "EXTERNAL_SYSTEMS_READ_ONLY",
            context,
            "External systems cannot write to authoritative tables.",
            policy=policy,
            logger=logger,
        )
    if source == "ai" and table not in policy.draft_tables:
        _violate(
            "AI_MUST_WRITE_DRAFTS",
            context,
            "AI can only write to draft tables.",
            policy=policy,
            logger=logger,
        )


def assert_side_effect_boundary(
    action: str,
    effect: str,
    *,
    policy: InvariantPolicy = DEFAULT_POLICY,
    logger: Any | None = None,
) -> None:
    if effect in policy.illegal_side_effects.get(action, frozenset()):
        _violate(
            "ILLEGAL_SIDE_EFFECT",
            {"action": action, "effect": effect},
            f"Action {action} cannot trigger side effect {effect}.",
            policy=policy,
            logger=logger,
        )


def assert_chat_surface_required(
    conversation_id: str,
    surface: ChatSurface | None,
    *,
    policy: InvariantPolicy = DEFAULT_POLICY,
    logger: Any | None = None,
) -> None:
    if surface is None:
        _violate(
            "NO_CONVERSATION_WITHOUT_SURFACE",
            {"conversation_id": conversation_id},
            "Every AI conversation must have a surface type",
            policy=policy,
            logger=logger,
        )


def assert_no_surface_switching(
    conversation_id: str,
    current: str,
    requested: str,
    *,
    policy: InvariantPolicy = DEFAULT_POLICY,
    logger: Any | None = None,
) -> None:
    if policy.allow_surface_switching or str(current) == str(requested):
        return
    _violate(
        "NO_SURFACE_SWITCHING",
        {
            "conversation_id": conversation_id,
            "current_surface": str(current),
            "requested_surface": str(requested),
        },
        "Cannot switch surface type within a conversation",
        policy=policy,
        logger=logger,
    )


def assert_no_cross_surface_reads(
    conversation_surface: str,
    data_surface: str,
    data_type: str,
    *,
    policy: InvariantPolicy = DEFAULT_POLICY,
    logger: Any | None = None,
) -> None:
    if str(conversation_surface) == str(data_surface):
        return
    _violate(
        "NO_CROSS_SURFACE_READS",
        {
            "conversation_surface": str(conversation_surface),
            "data_surface": str(data_surface),
            "data_type": data_type,
        },
        f"Surface {conversation_surface} cannot read data from {data_surface}",
        policy=policy,
        logger=logger,
    )


def assert_no_global_chat(
    surface: ChatSurface | None,
    *,
    policy: InvariantPolicy = DEFAULT_POLICY,
    logger: Any | None = None,
) -> None:
    if surface is None and not policy.allow_global_chat:
        _violate(
            "NO_GLOBAL_CHAT",
            {},
            "Global AI chat is not allowed. All conversations must be surface-scoped",
            policy=policy,
            logger=logger,
        )


def assert_personal_cannot_access_project(
    surface: ChatSurface,
    project_id: str | None,
    *,
    policy: InvariantPolicy = DEFAULT_POLICY,
    logger: Any | None = None,
) -> None:
    if surface.surface_type.value == "personal" and project_id:
        _violate(
            "PERSONAL_CANNOT_ACCESS_PROJECT",
            {"surface_type": surface.surface_type.value, "project_id": project_id},
            "Personal surface cannot access project-authoritative data",
            policy=policy,
            logger=logger,
        )


@dataclass(frozen=True, slots=True)
class PolicyViolation:
    invariant: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"invariant": self.invariant, "reason": self.reason}


@dataclass(frozen=True, slots=True)
class PolicyValidation:
    valid: bool
    violations: tuple[PolicyViolation, ...] = ()


def validate_policy(policy: InvariantPolicy = DEFAULT_POLICY) -> PolicyValidation:
    """Check that ``policy`` keeps the mandatory invariant values."""

    violations: list[PolicyViolation] = []
    for name, actual, required in (
        ("AI_CAN_WRITE", policy.ai_can_write, False),
        ("PERSONAL_SPACES_CAN_WRITE", policy.personal_spaces_can_write, False),
        ("TASK_FLOW_CAN_ORIGINATE_TASKS", policy.task_flow_can_originate_tasks, False),
        ("MIND_MESH_CAN_CREATE_AUTHORITY", policy.mind_mesh_can_create_authority, False),
        ("OUTPUTS_ARE_DRAFTS", policy.outputs_are_drafts, True),
        (
            "NO_CROSS_PROJECT_READS_WITHOUT_CHECK",
            policy.no_cross_project_reads_without_check,
            True,
        ),
        ("LOGS_APPEND_ONLY", policy.collaboration_logs_append_only, True),
        ("NO_GLOBAL_CHAT", policy.allow_global_chat, False),
    ):
        if actual is not required:
            violations.append(
                PolicyViolation(invariant=name, reason=f"{name} must be {str(required).lower()}")
            )
    return PolicyValidation(valid=not violations, violations=tuple(violations))


__all__ = [
    "AUTHORITATIVE_TABLES",
    "CONSUMPTION_TABLES",
    "DEFAULT_POLICY",
    "DRAFT_TABLES",
    "ILLEGAL_SIDE_EFFECTS",
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
    "validate_policy",
]
