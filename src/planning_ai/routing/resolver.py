"""
planning-ai-core — route resolver

File: src/planning_ai/routing/resolver.py
Last updated: 2026-10-19

Purpose
- Pick the provider/model for a request from the configured feature routes.

What should be included in this file
- ``RouteRequest`` input, scored candidate listing and the ``resolve`` entry point.
- The bundled ``DEFAULT_ROUTE`` used when nothing matches.

Functional requirements
- Candidates are enabled routes for the feature whose model and provider are enabled.
- Specificity: project match +3, surface match +2, surface-agnostic +1; routes naming
  another project or another surface never apply.
- Intent filters narrow the set unless that would empty it.
- Ordering is total: specificity, priority, non-fallback, route id.

Non-functional requirements
- Pure: no store writes and no state between calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

import structlog

from planning_ai.domain.scope import SurfaceType
from planning_ai.routing.intents import feature_for_intent
from planning_ai.routing.models import (
    FULL_CAPABILITIES,
    AIFeatureRoute,
    AIProvider,
    ProviderModel,
    ResolvedRoute,
    RouteConstraints,
)

if TYPE_CHECKING:
    from planning_ai.routing.store import RouteConfigStore

DEFAULT_ROUTE: Final[ResolvedRoute] = ResolvedRoute(
    provider="anthropic",
    model_key="claude-3-5-sonnet-20241022",
    route_id=None,
    constraints=RouteConstraints(),
    capabilities=FULL_CAPABILITIES,
    context_window_tokens=200_000,
    max_output_tokens=8192,
    is_default=True,
)

PROJECT_MATCH_SCORE: Final[int] = 3
SURFACE_MATCH_SCORE: Final[int] = 2
SURFACE_AGNOSTIC_SCORE: Final[int] = 1


@dataclass(frozen=True, slots=True)
class RouteRequest:
    feature_key: str | None = None
    intent: str | None = None
    surface_type: SurfaceType | None = None
    project_id: str | None = None

    def __post_init__(self) -> None:
        if self.surface_type is not None:
            object.__setattr__(self, "surface_type", SurfaceType(self.surface_type))
        if self.feature_key is not None:
            object.__setattr__(self, "feature_key", str(self.feature_key))
        if self.intent is not None:
            object.__setattr__(self, "intent", str(self.intent))

    @property
    def effective_feature_key(self) -> str:
        if self.feature_key is not None:
            return self.feature_key
        return feature_for_intent(self.intent).value


@dataclass(frozen=True, slots=True)
class ScoredRoute:
    route: AIFeatureRoute
    model: ProviderModel
    provider: AIProvider
    specificity: int
    intent_permitted: bool

    def sort_key(self) -> tuple[int, int, int, str]:
        return (-self.specificity, -self.route.priority, int(self.route.is_fallback), self.route.id)

    def to_resolved(self) -> ResolvedRoute:
        return ResolvedRoute(
            provider=self.provider.name,
            model_key=self.model.model_key,
            route_id=self.route.id,
            constraints=self.route.constraints,
            capabilities=self.model.capabilities,
            context_window_tokens=self.model.context_window_tokens,
            max_output_tokens=self.model.max_output_tokens,
            is_default=False,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "route_id": self.route.id,
            "provider": self.provider.name,
            "model_key": self.model.model_key,
            "specificity": self.specificity,
            "priority": self.route.priority,
            "is_fallback": self.route.is_fallback,
            "intent_permitted": self.intent_permitted,
        }


def route_specificity(route: AIFeatureRoute, request: RouteRequest) -> int | None:
    """Specificity of ``route`` for ``request``, or ``None`` when it cannot apply."""

    score = 0
    if route.project_id is not None:
        if request.project_id is None or route.project_id != request.project_id:
            return None
        score += PROJECT_MATCH_SCORE
    if route.surface_type is None:
        score += SURFACE_AGNOSTIC_SCORE
    elif route.surface_type == request.surface_type:
        score += SURFACE_MATCH_SCORE
    else:
        return None
    return score


class RouteResolver:
    """Stateless resolver over a ``RouteConfigStore``."""

    def __init__(
        self,
        store: RouteConfigStore,
        *,
        logger: Any | None = None,
        default_route: ResolvedRoute = DEFAULT_ROUTE,
    ) -> None:
        self._store = store
        self._default_route = default_route
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def resolve_candidates(self, request: RouteRequest) -> tuple[ScoredRoute, ...]:
        """All applicable routes, best first, with their scores."""

        scored: list[ScoredRoute] = []
        for route in self._store.list_routes(request.effective_feature_key):
            if not route.is_enabled:
                continue
            model = self._store.get_model(route.provider_model_id)
            if model is None or not model.is_enabled:
                continue
            provider = self._store.get_provider(model.provider_id)
            if provider is None or not provider.is_enabled:
                continue
            specificity = route_specificity(route, request)
            if specificity is None:
                continue
            scored.append(
                ScoredRoute(
                    route=route,
                    model=model,
                    provider=provider,
                    specificity=specificity,
                    intent_permitted=route.constraints.permits_intent(request.intent),
                )
            )
        return tuple(sorted(scored, key=ScoredRoute.sort_key))

    def resolve(self, request: RouteRequest) -> ResolvedRoute:
        feature_key = request.effective_feature_key
        candidates = self.resolve_candidates(request)
        if not candidates:
            self._logger.info(
                "route_default_fallback",
                feature_key=feature_key,
                surface_type=None if request.surface_type is None else request.surface_type.value,
                project_id=request.project_id,
            )
            return self._default_route

        permitted = tuple(candidate for candidate in candidates if candidate.intent_permitted)
        if not permitted:
            self._logger.info(
                "route_intent_filter_ignored",
                feature_key=feature_key,
                intent=request.intent,
                candidate_count=len(candidates),
            )
            permitted = candidates

        winner = permitted[0]
        self._logger.info(
            "route_resolved",
            feature_key=feature_key,
            route_id=winner.route.id,
            provider=winner.provider.name,
            model_key=winner.model.model_key,
            specificity=winner.specificity,
            priority=winner.route.priority,
        )
        return winner.to_resolved()


__all__ = [
    "DEFAULT_ROUTE",
    "RouteRequest",
    "RouteResolver",
    "ScoredRoute",
    "route_specificity",
]
