"""
planning-ai-core — route registry models

File: src/planning_ai/routing/models.py
Last updated: 2026-10-19

Purpose
- Typed records for providers, provider models, feature routes and the resolved
  route handed to the execution layer.

Functional requirements
- Records validate on construction; numeric limits are positive.
- ``ResolvedRoute`` carries everything needed to call a provider without a second
  store lookup.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from planning_ai.domain.scope import SurfaceType
from planning_ai.utils.validation import (
    validate_non_empty_str,
    validate_optional_str,
    validate_positive_int,
)


class FeatureKey(StrEnum):
    AI_CHAT = "ai_chat"
    DRAFT_GENERATION = "draft_generation"
    PROJECT_SUMMARY = "project_summary"
    DEADLINE_ANALYSIS = "deadline_analysis"
    MIND_MESH_EXPLAIN = "mind_mesh_explain"
    TASKFLOW_ASSIST = "taskflow_assist"
    SPACES_MEAL_PLANNER = "spaces_meal_planner"
    SPACES_NOTES_ASSIST = "spaces_notes_assist"
    REALITY_CHECK_ASSIST = "reality_check_assist"
    OFFSHOOT_ANALYSIS = "offshoot_analysis"
    REALITY_CHECK_INITIAL = "reality_check_initial"
    REALITY_CHECK_SECONDARY = "reality_check_secondary"
    REALITY_CHECK_DETAILED = "reality_check_detailed"
    REALITY_CHECK_REFRAME = "reality_check_reframe"


@dataclass(frozen=True, slots=True)
class ModelCapabilities:
    chat: bool = True
    reasoning: bool = False
    vision: bool = False
    tools: bool = False
    long_context: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {
            "chat": self.chat,
            "reasoning": self.reasoning,
            "vision": self.vision,
            "tools": self.tools,
            "long_context": self.long_context,
        }


FULL_CAPABILITIES = ModelCapabilities(
    chat=True, reasoning=True, vision=True, tools=True, long_context=True
)


@dataclass(frozen=True, slots=True)
class AIProvider:
    id: str
    name: str
    is_enabled: bool = True
    supports_tools: bool = False
    supports_streaming: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", validate_non_empty_str(self.id, "AIProvider.id"))
        object.__setattr__(self, "name", validate_non_empty_str(self.name, "AIProvider.name"))


@dataclass(frozen=True, slots=True)
class ProviderModel:
    id: str
    provider_id: str
    model_key: str
    display_name: str
    capabilities: ModelCapabilities = field(default_factory=ModelCapabilities)
    context_window_tokens: int = 128_000
    max_output_tokens: int = 4096
    cost_input_per_1m: float | None = None
    cost_output_per_1m: float | None = None
    is_enabled: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", validate_non_empty_str(self.id, "ProviderModel.id"))
        object.__setattr__(
            self,
            "provider_id",
            validate_non_empty_str(self.provider_id, "ProviderModel.provider_id"),
        )
        object.__setattr__(
            self, "model_key", validate_non_empty_str(self.model_key, "ProviderModel.model_key")
        )
        object.__setattr__(
            self,
            "context_window_tokens",
            validate_positive_int(
                self.context_window_tokens, "ProviderModel.context_window_tokens"
            ),
        )
        object.__setattr__(
            self,
            "max_output_tokens",
            validate_positive_int(self.max_output_tokens, "ProviderModel.max_output_tokens"),
        )
        for name in ("cost_input_per_1m", "cost_output_per_1m"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"ProviderModel.{name} must be >= 0")


@dataclass(frozen=True, slots=True)
class RouteConstraints:
    max_context_tokens: int | None = None
    max_output_tokens: int | None = None
    allowed_intents: tuple[str, ...] | None = None
    disallowed_intents: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        for name in ("max_context_tokens", "max_output_tokens"):
            value = getattr(self, name)
            if value is not None:
                validate_positive_int(value, f"RouteConstraints.{name}")
        if self.allowed_intents is not None:
            object.__setattr__(self, "allowed_intents", tuple(self.allowed_intents))
        object.__setattr__(self, "disallowed_intents", tuple(self.disallowed_intents))

    def permits_intent(self, intent: str | None) -> bool:
        if intent is None:
            return True
        if intent in self.disallowed_intents:
            return False
        return self.allowed_intents is None or intent in self.allowed_intents

    def to_dict(self) -> dict[str, object]:
        return {
            "max_context_tokens": self.max_context_tokens,
            "max_output_tokens": self.max_output_tokens,
            "allowed_intents": None
            if self.allowed_intents is None
            else list(self.allowed_intents),
            "disallowed_intents": list(self.disallowed_intents),
        }


@dataclass(frozen=True, slots=True)
class AIFeatureRoute:
    id: str
    feature_key: str
    provider_model_id: str
    surface_type: SurfaceType | None = None
    project_id: str | None = None
    is_enabled: bool = True
    priority: int = 0
    is_fallback: bool = False
    constraints: RouteConstraints = field(default_factory=RouteConstraints)

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", validate_non_empty_str(self.id, "AIFeatureRoute.id"))
        object.__setattr__(
            self,
            "feature_key",
            validate_non_empty_str(str(self.feature_key), "AIFeatureRoute.feature_key"),
        )
        object.__setattr__(
            self,
            "provider_model_id",
            validate_non_empty_str(self.provider_model_id, "AIFeatureRoute.provider_model_id"),
        )
        object.__setattr__(
            self, "project_id", validate_optional_str(self.project_id, "AIFeatureRoute.project_id")
        )
        if self.surface_type is not None:
            object.__setattr__(self, "surface_type", SurfaceType(self.surface_type))
        if isinstance(self.priority, bool) or not isinstance(self.priority, int):
            raise ValueError("AIFeatureRoute.priority must be an integer")


@dataclass(frozen=True, slots=True)
class ResolvedRoute:
    """Provider/model selection for one request."""

    provider: str
    model_key: str
    route_id: str | None
    constraints: RouteConstraints
    capabilities: ModelCapabilities
    context_window_tokens: int
    max_output_tokens: int
    is_default: bool = False

    @property
    def effective_max_output_tokens(self) -> int:
        if self.constraints.max_output_tokens is None:
            return self.max_output_tokens
        return min(self.max_output_tokens, self.constraints.max_output_tokens)

    def to_dict(self) -> dict[str, object]:
        return {
            "provider": self.provider,
            "model_key": self.model_key,
            "route_id": self.route_id,
            "constraints": self.constraints.to_dict(),
            "capabilities": self.capabilities.to_dict(),
            "context_window_tokens": self.context_window_tokens,
            "max_output_tokens": self.max_output_tokens,
            "is_default": self.is_default,
        }


__all__ = [
    "AIFeatureRoute",
    "AIProvider",
    "FULL_CAPABILITIES",
    "FeatureKey",
    "ModelCapabilities",
    "ProviderModel",
    "ResolvedRoute",
    "RouteConstraints",
]
