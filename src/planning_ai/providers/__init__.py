"""
planning-ai-core — provider adapters

File: src/planning_ai/providers/__init__.py
Last updated: 2026-10-19

Purpose
- Provider-agnostic request/response models, concrete adapters and the adapter cache.
"""

from planning_ai.providers.anthropic_adapter import AnthropicAdapter
from planning_ai.providers.base import (
    FinishReason,
    MessageRole,
    ProviderAdapter,
    ProviderMessage,
    ProviderRequest,
    ProviderResponse,
    ProviderUsage,
    ReasoningLevel,
    ReasoningSettings,
    StreamCallbacks,
    StreamingProviderAdapter,
    classify_http_error,
    is_retryable_error,
    map_provider_exception,
    normalize_finish_reason,
    resolve_reasoning_settings,
)
from planning_ai.providers.openai_adapter import OpenAIAdapter
from planning_ai.providers.registry import ProviderAdapterCache, default_adapter_cache

__all__ = [
    "AnthropicAdapter",
    "FinishReason",
    "MessageRole",
    "OpenAIAdapter",
    "ProviderAdapter",
    "ProviderAdapterCache",
    "ProviderMessage",
    "ProviderRequest",
    "ProviderResponse",
    "ProviderUsage",
    "ReasoningLevel",
    "ReasoningSettings",
    "StreamCallbacks",
    "StreamingProviderAdapter",
    "classify_http_error",
    "default_adapter_cache",
    "is_retryable_error",
    "map_provider_exception",
    "normalize_finish_reason",
    "resolve_reasoning_settings",
]
