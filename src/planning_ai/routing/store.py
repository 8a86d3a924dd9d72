"""
planning-ai-core — route configuration store

File: src/planning_ai/routing/store.py
Last updated: 2026-10-19

Purpose
- Read-only access to providers, provider models and feature routes.
- Load that registry from YAML; a bundled default registry ships with the package.

Functional requirements
- Malformed documents fail with ``RouteConfigError`` naming the offending path.
- Route listings are returned in a stable order regardless of input order.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any, Final, Protocol

import yaml

from planning_ai.constants import ROUTE_CONFIG_SCHEMA_VERSION
from planning_ai.routing.models import (
    AIFeatureRoute,
    AIProvider,
    ModelCapabilities,
    ProviderModel,
    RouteConstraints,
)

DEFAULT_ROUTES_PATH: Final[Path] = Path(__file__).resolve().parent / "default_routes.yaml"

_CAPABILITY_KEYS: Final[frozenset[str]] = frozenset(
    {"chat", "reasoning", "vision", "tools", "long_context"}
)
_CONSTRAINT_KEYS: Final[frozenset[str]] = frozenset(
    {"max_context_tokens", "max_output_tokens", "allowed_intents", "disallowed_intents"}
)


class RouteConfigError(ValueError):
    """Route configuration document is malformed."""


class RouteConfigStore(Protocol):
    def list_routes(self, feature_key: str) -> Sequence[AIFeatureRoute]: ...

    def get_model(self, model_id: str) -> ProviderModel | None: ...

    def get_provider(self, provider_id: str) -> AIProvider | None: ...

    def list_providers(self) -> Sequence[AIProvider]: ...


class InMemoryRouteStore:
    """Immutable registry snapshot."""

    def __init__(
        self,
        *,
        providers: Iterable[AIProvider] = (),
        models: Iterable[ProviderModel] = (),
        routes: Iterable[AIFeatureRoute] = (),
    ) -> None:
        self._providers = _index(providers, "provider")
        self._models = _index(models, "model")
        self._routes = tuple(sorted(_index(routes, "route").values(), key=lambda r: r.id))
        for model in self._models.values():
            if model.provider_id not in self._providers:
                raise RouteConfigError(
                    f"model {model.id!r} references unknown provider {model.provider_id!r}"
                )
        for route in self._routes:
            if route.provider_model_id not in self._models:
                raise RouteConfigError(
                    f"route {route.id!r} references unknown model {route.provider_model_id!r}"
                )

    def list_routes(self, feature_key: str) -> tuple[AIFeatureRoute, ...]:
        return tuple(route for route in self._routes if route.feature_key == feature_key)

    def all_routes(self) -> tuple[AIFeatureRoute, ...]:
        return self._routes

    def get_model(self, model_id: str) -> ProviderModel | None:
        return self._models.get(model_id)

    def get_provider(self, provider_id: str) -> AIProvider | None:
        return self._providers.get(provider_id)

    def list_providers(self) -> tuple[AIProvider, ...]:
        return tuple(self._providers[key] for key in sorted(self._providers))

    def list_models(self) -> tuple[ProviderModel, ...]:
        return tuple(self._models[key] for key in sorted(self._models))


def _index(items: Iterable[Any], label: str) -> dict[str, Any]:
    indexed: dict[str, Any] = {}
    for item in items:
        if item.id in indexed:
            raise RouteConfigError(f"duplicate {label} id {item.id!r}")
        indexed[item.id] = item
    return indexed


def load_route_config(path: str | Path | None = None) -> InMemoryRouteStore:
    """Load a registry from YAML; ``None`` loads the bundled defaults."""

    source = DEFAULT_ROUTES_PATH if path is None else Path(path)
    try:
        raw = yaml.safe_load(source.read_text(encoding="utf-8"))
    except OSError as exc:
        raise RouteConfigError(f"unable to read route config {source}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise RouteConfigError(f"invalid YAML in route config {source}: {exc}") from exc
    return parse_route_config(raw if raw is not None else {})


def parse_route_config(document: Mapping[str, Any]) -> InMemoryRouteStore:
    if not isinstance(document, Mapping):
        raise RouteConfigError("route config root must be a mapping")
    version = document.get("schema_version", ROUTE_CONFIG_SCHEMA_VERSION)
    if version != ROUTE_CONFIG_SCHEMA_VERSION:
        raise RouteConfigError(
            f"schema_version: expected {ROUTE_CONFIG_SCHEMA_VERSION}, got {version!r}"
        )
    unknown = set(document) - {"schema_version", "providers", "models", "routes"}
    if unknown:
        raise RouteConfigError(f"unknown top-level keys: {', '.join(sorted(unknown))}")

    try:
        providers = [
            AIProvider(
                id=entry["id"],
                name=entry.get("name", entry["id"]),
                is_enabled=bool(entry.get("is_enabled", True)),
                supports_tools=bool(entry.get("supports_tools", False)),
                supports_streaming=bool(entry.get("supports_streaming", False)),
            )
            for entry in _entries(document, "providers")
        ]
        models = [
            ProviderModel(
                id=entry["id"],
                provider_id=entry["provider_id"],
                model_key=entry["model_key"],
                display_name=entry.get("display_name", entry["model_key"]),
                capabilities=_capabilities(entry.get("capabilities") or {}),
                context_window_tokens=entry.get("context_window_tokens", 128_000),
                max_output_tokens=entry.get("max_output_tokens", 4096),
                cost_input_per_1m=entry.get("cost_input_per_1m"),
                cost_output_per_1m=entry.get("cost_output_per_1m"),
                is_enabled=bool(entry.get("is_enabled", True)),
            )
            for entry in _entries(document, "models")
        ]
        routes = [
            AIFeatureRoute(
                id=entry["id"],
                feature_key=entry["feature_key"],
                provider_model_id=entry["provider_model_id"],
                surface_type=entry.get("surface_type"),
                project_id=entry.get("project_id"),
                is_enabled=bool(entry.get("is_enabled", True)),
                priority=entry.get("priority", 0),
                is_fallback=bool(entry.get("is_fallback", False)),
                constraints=_constraints(entry.get("constraints") or {}),
            )
            for entry in _entries(document, "routes")
        ]
    except RouteConfigError:
        raise
    except KeyError as exc:
        raise RouteConfigError(f"missing required key {exc.args[0]!r}") from exc
    except (TypeError, ValueError) as exc:
        raise RouteConfigError(str(exc)) from exc

    return InMemoryRouteStore(providers=providers, models=models, routes=routes)


def _entries(document: Mapping[str, Any], section: str) -> list[Mapping[str, Any]]:
    raw = document.get(section) or []
    if not isinstance(raw, list):
        raise RouteConfigError(f"{section}: expected a list")
    for index, entry in enumerate(raw):
        if not isinstance(entry, Mapping):
            raise RouteConfigError(f"{section}[{index}]: expected a mapping")
    return raw


def _capabilities(raw: Mapping[str, Any]) -> ModelCapabilities:
    unknown = set(raw) - _CAPABILITY_KEYS
    if unknown:
        raise RouteConfigError(f"unknown capability keys: {', '.join(sorted(unknown))}")
    return ModelCapabilities(**{key: bool(value) for key, value in raw.items()})


def _constraints(raw: Mapping[str, Any]) -> RouteConstraints:
    unknown = set(raw) - _CONSTRAINT_KEYS
    if unknown:
        raise RouteConfigError(f"unknown constraint keys: {', '.join(sorted(unknown))}")
    allowed = raw.get("allowed_intents")
    return RouteConstraints(
        max_context_tokens=raw.get("max_context_tokens"),
        max_output_tokens=raw.get("max_output_tokens"),
        allowed_intents=None if allowed is None else tuple(str(item) for item in allowed),
        disallowed_intents=tuple(str(item) for item in raw.get("disallowed_intents") or ()),
    )


__all__ = [
    "DEFAULT_ROUTES_PATH",
    "InMemoryRouteStore",
    "RouteConfigError",
    "RouteConfigStore",
    "load_route_config",
    "parse_route_config",
]
