"""
planning-ai-core — provider base models and shared utilities

File: src/planning_ai/providers/base.py
Last updated: 2026-10-19

Purpose
- Provider-agnostic request/response models and the adapter interface.

What should be included in this file
- Request fields: model key, system/user prompts, prior messages, sampling limits.
- Response fields: text, token usage, latency, normalized finish reason.
- HTTP status classification into the core error taxonomy.

Functional requirements
- Adapters never retry; retryability is reported on the raised error.
- Reasoning presets expand into concrete limits at request time.

Non-functional requirements
- Adding a provider must not touch the pipeline or resolver.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Final, NamedTuple, Protocol, runtime_checkable

from planning_ai.errors import (
    ModelNotSupportedError,
    NetworkError,
    PlanningAIError,
    ProviderAPIError,
    ProviderNotConfiguredError,
    ProviderTimeoutError,
    RateLimitError,
)
from planning_ai.utils.validation import validate_non_empty_str

DEFAULT_MAX_TOKENS: Final[int] = 4096
DEFAULT_TEMPERATURE: Final[float] = 0.7


class MessageRole(StrEnum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True, slots=True)
class ProviderMessage:
    role: MessageRole
    content: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", MessageRole(self.role))
        if not isinstance(self.content, str):
            raise TypeError("ProviderMessage.content must be a string")

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class ReasoningLevel(StrEnum):
    FAST = "fast"
    BALANCED = "balanced"
    DEEP = "deep"
    LONG_FORM = "long_form"


class ReasoningSettings(NamedTuple):
    max_tokens: int
    temperature: float


_REASONING_PRESETS: Final[Mapping[ReasoningLevel, ReasoningSettings]] = MappingProxyType(
    {
        ReasoningLevel.FAST: ReasoningSettings(800, 0.3),
        ReasoningLevel.BALANCED: ReasoningSettings(1500, 0.7),
        ReasoningLevel.DEEP: ReasoningSettings(3000, 0.7),
        ReasoningLevel.LONG_FORM: ReasoningSettings(6000, 0.8),
    }
)


def resolve_reasoning_settings(level: ReasoningLevel | str) -> ReasoningSettings:
    """Expand a reasoning preset into ``(max_tokens, temperature)``."""

    return _REASONING_PRESETS[ReasoningLevel(level)]


@dataclass(frozen=True, slots=True)
class ProviderRequest:
    """Provider-agnostic request payload."""

    model_key: str
    user_prompt: str
    system_prompt: str | None = None
    messages: tuple[ProviderMessage, ...] = ()
    temperature: float | None = None
    max_tokens: int | None = None
    reasoning_level: ReasoningLevel | None = None
    metadata: Mapping[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "model_key", validate_non_empty_str(self.model_key, "ProviderRequest.model_key")
        )
        if not isinstance(self.user_prompt, str):
            raise TypeError("ProviderRequest.user_prompt must be a string")
        object.__setattr__(self, "messages", tuple(self.messages))
        if self.reasoning_level is not None:
            object.__setattr__(self, "reasoning_level", ReasoningLevel(self.reasoning_level))
        if self.max_tokens is not None and self.max_tokens <= 0:
            raise ValueError("ProviderRequest.max_tokens must be > 0")
        if self.temperature is not None and not 0.0 <= self.temperature <= 2.0:
            raise ValueError("ProviderRequest.temperature must be within [0, 2]")
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def sampling(self) -> ReasoningSettings:
        """Effective limits: reasoning preset, then explicit values, then defaults."""

        if self.reasoning_level is not None:
            return resolve_reasoning_settings(self.reasoning_level)
        return ReasoningSettings(
            self.max_tokens if self.max_tokens is not None else DEFAULT_MAX_TOKENS,
            self.temperature if self.temperature is not None else DEFAULT_TEMPERATURE,
        )

    def conversation(self) -> list[dict[str, str]]:
        """Prior messages followed by the user prompt, system messages excluded."""

        out = [
            message.to_dict()
            for message in self.messages
            if message.role is not MessageRole.SYSTEM
        ]
        out.append({"role": MessageRole.USER.value, "content": self.user_prompt})
        return out


@dataclass(frozen=True, slots=True)
class ProviderUsage:
    """Token accounting for a provider response."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def __post_init__(self) -> None:
        if self.input_tokens < 0:
            raise ValueError("input_tokens must be >= 0")
        if self.output_tokens < 0:
            raise ValueError("output_tokens must be >= 0")
        if self.total_tokens < 0:
            raise ValueError("total_tokens must be >= 0")
        if self.total_tokens == 0:
            object.__setattr__(self, "total_tokens", self.input_tokens + self.output_tokens)

    def to_dict(self) -> dict[str, int]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
        }


class FinishReason(StrEnum):
    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"
    ERROR = "error"


_FINISH_REASON_ALIASES: Final[Mapping[str, FinishReason]] = MappingProxyType(
    {
        "stop": FinishReason.STOP,
        "end_turn": FinishReason.STOP,
        "stop_sequence": FinishReason.STOP,
        "length": FinishReason.LENGTH,
        "max_tokens": FinishReason.LENGTH,
        "tool_calls": FinishReason.TOOL_CALLS,
        "tool_use": FinishReason.TOOL_CALLS,
        "function_call": FinishReason.TOOL_CALLS,
        "content_filter": FinishReason.CONTENT_FILTER,
        "refusal": FinishReason.CONTENT_FILTER,
        "error": FinishReason.ERROR,
    }
)


def normalize_finish_reason(raw: str | None) -> FinishReason | None:
    """Map provider-specific stop reasons; unknown non-empty values count as ``stop``."""

    if raw is None or not raw.strip():
        return None
    return _FINISH_REASON_ALIASES.get(raw.strip().lower(), FinishReason.STOP)


@dataclass(frozen=True, slots=True)
class ProviderResponse:
    """Provider-agnostic normalized response payload."""

    text: str
    provider: str
    model_key: str
    usage: ProviderUsage = field(default_factory=ProviderUsage)
    latency_ms: int = 0
    finish_reason: FinishReason | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.text, str):
            raise TypeError("ProviderResponse.text must be a string")
        if self.latency_ms < 0:
            raise ValueError("ProviderResponse.latency_ms must be >= 0")
        if self.finish_reason is not None:
            object.__setattr__(self, "finish_reason", FinishReason(self.finish_reason))

    def to_dict(self) -> dict[str, object]:
        return {
            "provider": self.provider,
            "model_key": self.model_key,
            "usage": self.usage.to_dict(),
            "latency_ms": self.latency_ms,
            "finish_reason": None if self.finish_reason is None else self.finish_reason.value,
        }


@dataclass(frozen=True, slots=True)
class StreamCallbacks:
    on_token: Callable[[str], None]
    on_complete: Callable[[ProviderResponse], None] | None = None
    on_error: Callable[[PlanningAIError], None] | None = None


@runtime_checkable
class ProviderAdapter(Protocol):
    """Protocol implemented by concrete provider adapters."""

    provider_name: str

    async def generate(self, request: ProviderRequest) -> ProviderResponse: ...


@runtime_checkable
class StreamingProviderAdapter(ProviderAdapter, Protocol):
    async def stream(
        self, request: ProviderRequest, callbacks: StreamCallbacks
    ) -> ProviderResponse: ...


def classify_http_error(
    provider: str, status: int, detail: str, *, model_key: str | None = None
) -> PlanningAIError:
    """Map an HTTP error status into the core error taxonomy."""

    if status in (401, 403):
        return ProviderNotConfiguredError(
            provider, f"provider={provider} rejected credentials: {detail}"
        )
    if status == 404 and "model" in detail.lower():
        return ModelNotSupportedError(provider, model_key or "unknown", detail)
    if status == 429:
        return RateLimitError(provider, detail)
    return ProviderAPIError(provider, detail, status_code=status)


def map_provider_exception(
    provider: str, exc: BaseException, *, model_key: str | None = None
) -> PlanningAIError:
    """Normalize an SDK or transport exception raised by ``provider``."""

    if isinstance(exc, PlanningAIError):
        return exc
    detail = exception_detail(exc)
    class_name = exc.__class__.__name__.lower()
    if isinstance(exc, asyncio.TimeoutError | TimeoutError) or "timeout" in class_name:
        return ProviderTimeoutError(provider, detail)
    status = read_status_code(exc)
    if status is not None:
        return classify_http_error(provider, status, detail, model_key=model_key)
    if "ratelimit" in class_name:
        return RateLimitError(provider, detail)
    if "authentication" in class_name or "permission" in class_name:
        return ProviderNotConfiguredError(provider, detail)
    if "connection" in class_name or isinstance(exc, OSError):
        return NetworkError(provider, detail)
    return ProviderAPIError(provider, detail)


def is_retryable_error(error: BaseException) -> bool:
    return isinstance(error, PlanningAIError) and error.retryable


def exception_detail(exc: BaseException) -> str:
    text = str(exc).strip()
    if text:
        return " ".join(text.split())
    return exc.__class__.__name__


def read_status_code(exc: BaseException) -> int | None:
    for key in ("status_code", "status", "http_status"):
        value = getattr(exc, key, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(exc, "response", None)
    if response is not None:
        nested = getattr(response, "status_code", None)
        if isinstance(nested, int):
            return nested
    return None


def read_value(value: object, key: str, *, default: object | None = None) -> object | None:
    if isinstance(value, Mapping):
        return value.get(key, default)
    return getattr(value, key, default)


def read_sequence(value: object, key: str) -> tuple[object, ...]:
    candidate = read_value(value, key)
    if isinstance(candidate, Sequence) and not isinstance(candidate, str | bytes | bytearray):
        return tuple(candidate)
    return ()


def read_str(value: object, key: str) -> str | None:
    candidate = read_value(value, key)
    if isinstance(candidate, str) and candidate.strip():
        return candidate
    return None


def read_int(value: object, key: str) -> int | None:
    candidate = read_value(value, key)
    if isinstance(candidate, int) and not isinstance(candidate, bool):
        return candidate
    return None


__all__ = [
    "DEFAULT_MAX_TOKENS",
    "DEFAULT_TEMPERATURE",
    "FinishReason",
    "MessageRole",
    "ProviderAdapter",
    "ProviderMessage",
    "ProviderRequest",
    "ProviderResponse",
    "ProviderUsage",
    "ReasoningLevel",
    "ReasoningSettings",
    "StreamCallbacks",
    "StreamingProviderAdapter",
    "classify_http_error",
    "exception_detail",
    "is_retryable_error",
    "map_provider_exception",
    "normalize_finish_reason",
    "read_int",
    "read_sequence",
    "read_str",
    "read_status_code",
    "read_value",
    "resolve_reasoning_settings",
]
