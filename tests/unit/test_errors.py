"""
planning-ai-core — unit tests for the error taxonomy and result variants

File: tests/unit/test_errors.py
Last updated: 2026-10-19

Purpose
- Pin retryability, user messages and the ``Ok`` / ``Err`` result contract.

What this test file should cover
- 429 and 5xx statuses are retryable; other statuses are not.
- Each error kind carries a short user message free of identifiers.
- ``Err.from_exception`` preserves kind, details and the retryable flag.
- ``capture`` converts only ``PlanningAIError``.
"""

from __future__ import annotations

import pytest

from planning_ai.errors import (
    USER_MESSAGES,
    BudgetExceededError,
    Err,
    ErrorKind,
    FieldError,
    InvariantViolationError,
    NetworkError,
    Ok,
    PermissionDeniedError,
    ProviderAPIError,
    ProviderNotConfiguredError,
    ProviderTimeoutError,
    RateLimitError,
    UnwrapError,
    ValidationError,
    capture,
    is_retryable_status,
    user_message_for,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("status", "expected"),
    [(None, False), (400, False), (404, False), (429, True), (500, True), (503, True)],
)
def test_retryable_status_classification(status: int | None, expected: bool) -> None:
    assert is_retryable_status(status) is expected


@pytest.mark.unit
def test_every_kind_has_a_user_message() -> None:
    assert set(USER_MESSAGES) == set(ErrorKind)
    assert user_message_for("provider_not_configured") == "This AI provider is currently disabled"


@pytest.mark.unit
def test_default_retryability_per_error_class() -> None:
    assert NetworkError("openai", "down").retryable
    assert ProviderTimeoutError("openai", "slow", timeout_seconds=5.0).retryable
    assert RateLimitError("openai", "busy").retryable
    assert not PermissionDeniedError().retryable
    assert not ProviderNotConfiguredError("openai").retryable
    assert ProviderAPIError("openai", "boom", status_code=502).retryable
    assert not ProviderAPIError("openai", "bad", status_code=400).retryable


@pytest.mark.unit
def test_error_string_is_machine_readable() -> None:
    exc = BudgetExceededError(["Tracks (6) exceeds budget (5)"])

    assert str(exc) == (
        "kind=budget_exceeded retryable=false "
        "detail=context budget exceeded: Tracks (6) exceeds budget (5)"
    )
    assert exc.to_dict()["details"] == {"violations": ["Tracks (6) exceeds budget (5)"]}


@pytest.mark.unit
def test_invariant_error_records_name_and_context() -> None:
    exc = InvariantViolationError("NO_GLOBAL_CHAT", {"conversation_id": "c1"})

    assert exc.invariant_name == "NO_GLOBAL_CHAT"
    assert exc.details["invariant"] == "NO_GLOBAL_CHAT"
    assert exc.message == "Invariant violated: NO_GLOBAL_CHAT"


@pytest.mark.unit
def test_validation_error_carries_field_errors() -> None:
    exc = ValidationError("bad", [FieldError("title", "must not be empty")])

    assert exc.details == {"field_errors": [{"field": "title", "message": "must not be empty"}]}


@pytest.mark.unit
def test_err_from_exception_preserves_fields() -> None:
    exc = RateLimitError("anthropic", "slow down", retry_after_seconds=2.0)
    err = Err.from_exception(exc)

    assert not err.is_ok
    assert err.kind is ErrorKind.RATE_LIMITED
    assert err.retryable
    assert err.details["retry_after_seconds"] == 2.0
    payload = err.to_dict()
    assert payload["user_message"] == "Too many AI requests. Please wait a moment."
    with pytest.raises(RateLimitError):
        err.unwrap()


@pytest.mark.unit
def test_err_without_cause_raises_unwrap_error() -> None:
    err = Err(kind="not_found", message="missing")

    with pytest.raises(UnwrapError, match="not_found"):
        err.unwrap()


@pytest.mark.unit
def test_capture_wraps_planning_errors_only() -> None:
    assert capture(lambda: 3) == Ok(3)
    assert Ok(3).is_ok and Ok(3).unwrap() == 3

    def denied() -> None:
        raise PermissionDeniedError()

    result = capture(denied)
    assert isinstance(result, Err)
    assert result.kind is ErrorKind.PERMISSION_DENIED

    def broken() -> None:
        raise KeyError("x")

    with pytest.raises(KeyError):
        capture(broken)
