"""
planning-ai-core — error taxonomy and result variants

File: src/planning_ai/errors.py
Last updated: 2026-10-19

Purpose
- Define the closed set of failure kinds raised by the orchestration core.
- Provide tagged ``Ok`` / ``Err`` result variants for public boundaries.

What should be included in this file
- ``ErrorKind`` enumeration and one exception class per kind.
- Retryability classification (429/5xx provider failures, network, timeout, rate limits).
- Short, non-technical user messages per kind.

Functional requirements
- Every exception carries ``kind``, ``retryable`` and a structured ``details`` mapping.
- ``Err`` values can be built from any ``PlanningAIError`` without losing the retryable flag.

Non-functional requirements
- Diagnostic detail stays in ``details`` and the exception message; user-facing
  text never includes identifiers, stack traces or provider payloads.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Any, ClassVar, Final, Generic, TypeAlias, TypeVar

T = TypeVar("T")


class ErrorKind(StrEnum):
    """Closed set of failure kinds surfaced by the core."""

    PERMISSION_DENIED = "permission_denied"
    SURFACE_SCOPE_VIOLATION = "surface_scope_violation"
    INVARIANT_VIOLATION = "invariant_violation"
    BUDGET_EXCEEDED = "budget_exceeded"
    NO_ROUTE_FOUND = "no_route_found"
    PROVIDER_NOT_CONFIGURED = "provider_not_configured"
    MODEL_NOT_SUPPORTED = "model_not_supported"
    PROVIDER_API_ERROR = "provider_api_error"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    VALIDATION_ERROR = "validation_error"
    DRAFT_FINALIZED = "draft_finalized"
    NOT_FOUND = "not_found"


USER_MESSAGES: Final[Mapping[ErrorKind, str]] = MappingProxyType(
    {
        ErrorKind.PERMISSION_DENIED: "You do not have access to this content.",
        ErrorKind.SURFACE_SCOPE_VIOLATION: "This request reaches outside the current space.",
        ErrorKind.INVARIANT_VIOLATION: "This action is not allowed.",
        ErrorKind.BUDGET_EXCEEDED: "The request included too much context. Try narrowing it.",
        ErrorKind.NO_ROUTE_FOUND: "No AI model is configured for this feature.",
        ErrorKind.PROVIDER_NOT_CONFIGURED: "This AI provider is currently disabled",
        ErrorKind.MODEL_NOT_SUPPORTED: "The selected AI model is not available.",
        ErrorKind.PROVIDER_API_ERROR: "The AI service returned an error. Please try again.",
        ErrorKind.NETWORK_ERROR: "Could not reach the AI service. Check your connection.",
        ErrorKind.TIMEOUT: "The AI service took too long to respond.",
        ErrorKind.RATE_LIMITED: "Too many AI requests. Please wait a moment.",
        ErrorKind.VALIDATION_ERROR: "Some of the provided information is invalid.",
        ErrorKind.DRAFT_FINALIZED: "This draft has already been finalized.",
        ErrorKind.NOT_FOUND: "The requested item could not be found.",
    }
)


def user_message_for(kind: ErrorKind | str) -> str:
    """Return the short user-facing message for ``kind``."""

    return USER_MESSAGES[ErrorKind(kind)]


def is_retryable_status(status_code: int | None) -> bool:
    """HTTP status classification: 429 and 5xx are retryable, everything else is not."""

    if status_code is None:
        return False
    return status_code == 429 or status_code >= 500


class PlanningAIError(RuntimeError):
    """Base error with deterministic machine-readable fields."""

    kind: ClassVar[ErrorKind] = ErrorKind.VALIDATION_ERROR
    default_retryable: ClassVar[bool] = False

    def __init__(
        self,
        message: str,
        *,
        details: Mapping[str, object] | None = None,
        retryable: bool | None = None,
    ) -> None:
        self.message = message
        self.details: dict[str, object] = dict(details or {})
        self.retryable = self.default_retryable if retryable is None else bool(retryable)
        super().__init__(
            f"kind={self.kind.value} retryable={str(self.retryable).lower()} detail={message}"
        )

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.kind]

    def to_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
            "details": dict(self.details),
        }


class PermissionDeniedError(PlanningAIError):
    """Requesting user may not access the named resource. Never carries resource content."""

    kind = ErrorKind.PERMISSION_DENIED

    def __init__(
        self,
        message: str = "Access denied",
        *,
        details: Mapping[str, object] | None = None,
    ) -> None:
        super().__init__(message, details=details)


class InvariantViolationError(PlanningAIError):
    """A named system invariant was violated."""

    kind = ErrorKind.INVARIANT_VIOLATION

    def __init__(
        self,
        invariant_name: str,
        context: Mapping[str, object] | None = None,
        message: str | None = None,
    ) -> None:
        self.invariant_name = invariant_name
        self.context: dict[str, object] = dict(context or {})
        super().__init__(
            message or f"Invariant violated: {invariant_name}",
            details={"invariant": invariant_name, "context": self.context},
        )


class SurfaceScopeViolationError(InvariantViolationError):
    """A context scope crossed its chat surface's isolation boundary."""

    kind = ErrorKind.SURFACE_SCOPE_VIOLATION

    def __init__(
        self,
        message: str,
        *,
        violations: Sequence[str] = (),
        context: Mapping[str, object] | None = None,
    ) -> None:
        self.violations = tuple(violations)
        merged = dict(context or {})
        merged["violations"] = list(self.violations)
        super().__init__("SURFACE_SCOPE_VIOLATION", merged, message)


class BudgetExceededError(PlanningAIError):
    """Assembled context exceeded its budget and the caller asked for a hard failure."""

    kind = ErrorKind.BUDGET_EXCEEDED

    def __init__(self, violations: Sequence[str]) -> None:
        self.violations = tuple(violations)
        super().__init__(
            f"context budget exceeded: {'; '.join(self.violations)}",
            details={"violations": list(self.violations)},
        )


class NoRouteFoundError(PlanningAIError):
    kind = ErrorKind.NO_ROUTE_FOUND

    def __init__(self, feature_key: str) -> None:
        self.feature_key = feature_key
        super().__init__(
            f"no route configured for feature {feature_key!r}",
            details={"feature_key": feature_key},
        )


class ProviderNotConfiguredError(PlanningAIError):
    """Provider is unknown, disabled, or missing credentials."""

    kind = ErrorKind.PROVIDER_NOT_CONFIGURED

    def __init__(self, provider: str, message: str | None = None) -> None:
        self.provider = provider
        super().__init__(
            message or f"provider {provider!r} is not configured",
            details={"provider": provider},
        )


class ModelNotSupportedError(PlanningAIError):
    kind = ErrorKind.MODEL_NOT_SUPPORTED

    def __init__(self, provider: str, model_key: str, message: str | None = None) -> None:
        self.provider = provider
        self.model_key = model_key
        super().__init__(
            message or f"model {model_key!r} is not supported by provider {provider!r}",
            details={"provider": provider, "model_key": model_key},
        )


class ProviderAPIError(PlanningAIError):
    """Provider returned an error response; retryable iff status is 429 or 5xx."""

    kind = ErrorKind.PROVIDER_API_ERROR

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        status_code: int | None = None,
        provider_code: str | None = None,
    ) -> None:
        self.provider = provider
        self.status_code = status_code
        self.provider_code = provider_code
        super().__init__(
            message,
            details={
                "provider": provider,
                "status_code": status_code,
                "provider_code": provider_code,
            },
            retryable=is_retryable_status(status_code),
        )


class NetworkError(PlanningAIError):
    kind = ErrorKind.NETWORK_ERROR
    default_retryable = True

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(message, details={"provider": provider})


class ProviderTimeoutError(PlanningAIError):
    kind = ErrorKind.TIMEOUT
    default_retryable = True

    def __init__(
        self, provider: str, message: str, *, timeout_seconds: float | None = None
    ) -> None:
        self.provider = provider
        self.timeout_seconds = timeout_seconds
        super().__init__(
            message,
            details={"provider": provider, "timeout_seconds": timeout_seconds},
        )


class RateLimitError(PlanningAIError):
    kind = ErrorKind.RATE_LIMITED
    default_retryable = True

    def __init__(
        self, provider: str, message: str, *, retry_after_seconds: float | None = None
    ) -> None:
        self.provider = provider
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            message,
            details={
                "provider": provider,
                "status_code": 429,
                "retry_after_seconds": retry_after_seconds,
            },
        )


@dataclass(frozen=True, slots=True)
class FieldError:
    """Single field-level validation failure."""

    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


class ValidationError(PlanningAIError):
    """Input failed validation; carries structured field-level detail."""

    kind = ErrorKind.VALIDATION_ERROR

    def __init__(self, message: str, field_errors: Sequence[FieldError] = ()) -> None:
        self.field_errors = tuple(field_errors)
        super().__init__(
            message,
            details={"field_errors": [item.to_dict() for item in self.field_errors]},
        )


class DraftFinalizedError(PlanningAIError):
    kind = ErrorKind.DRAFT_FINALIZED

    def __init__(self, draft_id: str, status: str, message: str) -> None:
        self.draft_id = draft_id
        self.status = status
        super().__init__(message, details={"draft_id": draft_id, "status": status})


class NotFoundError(PlanningAIError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity_type: str, entity_id: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} {entity_id!r} not found",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )


class UnwrapError(RuntimeError):
    """Raised when ``unwrap`` is called on an ``Err`` that carries no original exception."""

    def __init__(self, err: Err) -> None:
        self.err = err
        super().__init__(f"called unwrap on Err(kind={err.kind.value}): {err.message}")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful result variant."""

    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Err:
    """Failed result variant tagged with an ``ErrorKind``."""

    kind: ErrorKind
    message: str
    details: Mapping[str, object] = field(default_factory=dict)
    retryable: bool = False
    cause: PlanningAIError | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", ErrorKind(self.kind))
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))

    @property
    def is_ok(self) -> bool:
        return False

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.kind]

    def unwrap(self) -> Any:
        if self.cause is not None:
            raise self.cause
        raise UnwrapError(self)

    def to_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
            "user_message": self.user_message,
            "details": dict(self.details),
        }

    @classmethod
    def from_exception(cls, exc: PlanningAIError) -> Err:
        return cls(
            kind=exc.kind,
            message=exc.message,
            details=exc.details,
            retryable=exc.retryable,
            cause=exc,
        )


Result: TypeAlias = Ok[T] | Err


def capture(fn: Callable[..., T], /, *args: Any, **kwargs: Any) -> Result[T]:
    """Invoke ``fn`` and convert ``PlanningAIError`` into ``Err``; other errors propagate."""

    try:
        return Ok(fn(*args, **kwargs))
    except PlanningAIError as exc:
        return Err.from_exception(exc)


__all__ = [
    "BudgetExceededError",
    "DraftFinalizedError",
    "Err",
    "ErrorKind",
    "FieldError",
    "InvariantViolationError",
    "ModelNotSupportedError",
    "NetworkError",
    "NoRouteFoundError",
    "NotFoundError",
    "Ok",
    "PermissionDeniedError",
    "PlanningAIError",
    "ProviderAPIError",
    "ProviderNotConfiguredError",
    "ProviderTimeoutError",
    "RateLimitError",
    "Result",
    "SurfaceScopeViolationError",
    "USER_MESSAGES",
    "UnwrapError",
    "ValidationError",
    "capture",
    "is_retryable_status",
    "user_message_for",
]
