"""Read-through cache of provider adapters keyed by provider name."""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, TypeAlias

import structlog

from planning_ai.errors import ProviderNotConfiguredError
from planning_ai.providers.anthropic_adapter import AnthropicAdapter
from planning_ai.providers.openai_adapter import OpenAIAdapter
from planning_ai.utils.validation import validate_non_empty_str

if TYPE_CHECKING:
    from planning_ai.providers.base import ProviderAdapter

AdapterFactory: TypeAlias = Callable[[], "ProviderAdapter"]


class ProviderAdapterCache:
    """Concurrency-safe adapter cache.

    The lock guards only dict access; factories run outside it. Two threads racing
    on a cold key may both build an adapter, and the first insert wins.
    """

    def __init__(
        self,
        factories: Mapping[str, AdapterFactory] | None = None,
        *,
        logger: Any | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._factories: dict[str, AdapterFactory] = {}
        self._adapters: dict[str, ProviderAdapter] = {}
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        for name, factory in (factories or {}).items():
            self.register_factory(name, factory)

    def register_factory(self, name: str, factory: AdapterFactory) -> None:
        normalized = validate_non_empty_str(name, "name").lower()
        with self._lock:
            self._factories[normalized] = factory
            self._adapters.pop(normalized, None)

    def registered(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(sorted(self._factories))

    def get(self, name: str) -> ProviderAdapter:
        normalized = validate_non_empty_str(name, "name").lower()
        with self._lock:
            cached = self._adapters.get(normalized)
            factory = self._factories.get(normalized)
        if cached is not None:
            return cached
        if factory is None:
            raise ProviderNotConfiguredError(normalized, f"no adapter registered for {normalized}")

        adapter = factory()
        with self._lock:
            winner = self._adapters.setdefault(normalized, adapter)
        if winner is adapter:
            self._logger.info("adapter_created", provider=normalized)
        return winner

    def clear(self) -> None:
        with self._lock:
            self._adapters.clear()


def default_adapter_cache(
    provider_settings: Mapping[str, Mapping[str, Any]] | None = None,
    *,
    logger: Any | None = None,
) -> ProviderAdapterCache:
    """Cache with the bundled OpenAI and Anthropic adapters.

    ``provider_settings`` is the ``providers`` config section; disabled providers are
    not registered.
    """

    settings = provider_settings or {}
    factories: dict[str, AdapterFactory] = {}

    openai_settings = settings.get("openai", {})
    if openai_settings.get("enabled", True):
        factories["openai"] = lambda: OpenAIAdapter(
            api_key_env=openai_settings.get("api_key_env", "OPENAI_API_KEY"),
            base_url=openai_settings.get("base_url"),
            timeout_seconds=openai_settings.get("timeout_seconds"),
            logger=logger,
        )

    anthropic_settings = settings.get("anthropic", {})
    if anthropic_settings.get("enabled", True):
        factories["anthropic"] = lambda: AnthropicAdapter(
            api_key_env=anthropic_settings.get("api_key_env", "ANTHROPIC_API_KEY"),
            base_url=anthropic_settings.get("base_url"),
            timeout_seconds=anthropic_settings.get("timeout_seconds"),
            logger=logger,
        )

    return ProviderAdapterCache(factories, logger=logger)


__all__ = ["AdapterFactory", "ProviderAdapterCache", "default_adapter_cache"]
