"""
planning-ai-core — routing plane

File: src/planning_ai/routing/__init__.py
Last updated: 2026-10-19

Purpose
- Provider registry models, intent-to-feature mapping, route store and resolver.
"""

from planning_ai.routing.intents import INTENT_FEATURE_MAP, feature_for_intent
from planning_ai.routing.models import (
    FULL_CAPABILITIES,
    AIFeatureRoute,
    AIProvider,
    FeatureKey,
    ModelCapabilities,
    ProviderModel,
    ResolvedRoute,
    RouteConstraints,
)
from planning_ai.routing.resolver import (
    DEFAULT_ROUTE,
    RouteRequest,
    RouteResolver,
    ScoredRoute,
    route_specificity,
)
from planning_ai.routing.store import (
    DEFAULT_ROUTES_PATH,
    InMemoryRouteStore,
    RouteConfigError,
    RouteConfigStore,
    load_route_config,
    parse_route_config,
)

__all__ = [
    "AIFeatureRoute",
    "AIProvider",
    "DEFAULT_ROUTE",
    "DEFAULT_ROUTES_PATH",
    "FULL_CAPABILITIES",
    "FeatureKey",
    "INTENT_FEATURE_MAP",
    "InMemoryRouteStore",
    "ModelCapabilities",
    "ProviderModel",
    "ResolvedRoute",
    "RouteConfigError",
    "RouteConfigStore",
    "RouteConstraints",
    "RouteRequest",
    "RouteResolver",
    "ScoredRoute",
    "feature_for_intent",
    "load_route_config",
    "parse_route_config",
    "route_specificity",
]
