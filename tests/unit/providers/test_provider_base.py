"""
planning-ai-core — unit tests for provider base models

File: tests/unit/providers/test_provider_base.py
Last updated: 2026-10-19

Purpose
- Validate request sampling, usage accounting, finish-reason normalization and the
  mapping of transport failures into the error taxonomy.
"""

from __future__ import annotations

import asyncio

import pytest

from planning_ai.errors import (
    ErrorKind,
    ModelNotSupportedError,
    NetworkError,
    ProviderAPIError,
    ProviderNotConfiguredError,
    ProviderTimeoutError,
    RateLimitError,
)
from planning_ai.providers.base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    FinishReason,
    MessageRole,
    ProviderMessage,
    ProviderRequest,
    ProviderResponse,
    ProviderUsage,
    ReasoningLevel,
    classify_http_error,
    exception_detail,
    is_retryable_error,
    map_provider_exception,
    normalize_finish_reason,
    read_status_code,
    resolve_reasoning_settings,
)


class APITimeoutError(Exception):
    pass


class RateLimitExceeded(Exception):
    status_code = 429


class AuthenticationError(Exception):
    pass


class APIConnectionError(Exception):
    pass


class _Response:
    status_code = 502


class APIStatusError(Exception):
    response = _Response()


@pytest.mark.unit
def test_sampling_prefers_reasoning_preset() -> None:
    explicit = ProviderRequest(model_key="m", user_prompt="hi", max_tokens=100, temperature=0.1)
    preset = ProviderRequest(
        model_key="m", user_prompt="hi", max_tokens=100, reasoning_level="deep"
    )
    bare = ProviderRequest(model_key="m", user_prompt="hi")

    assert explicit.sampling() == (100, 0.1)
    assert preset.sampling() == (3000, 0.7)
    assert preset.reasoning_level is ReasoningLevel.DEEP
    assert bare.sampling() == (DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE)
    assert resolve_reasoning_settings("fast").max_tokens == 800
    assert resolve_reasoning_settings(ReasoningLevel.LONG_FORM).temperature == 0.8


@pytest.mark.unit
def test_conversation_drops_system_messages_and_appends_prompt() -> None:
    request = ProviderRequest(
        model_key="m",
        user_prompt="What is next?",
        system_prompt="Be brief.",
        messages=[
            ProviderMessage(role="system", content="ignored"),
            ProviderMessage(role=MessageRole.USER, content="Plan my week"),
            ProviderMessage(role="assistant", content="Here is a plan"),
        ],
    )

    assert request.conversation() == [
        {"role": "user", "content": "Plan my week"},
        {"role": "assistant", "content": "Here is a plan"},
        {"role": "user", "content": "What is next?"},
    ]


@pytest.mark.unit
@pytest.mark.parametrize(
    "changes",
    [
        {"model_key": " "},
        {"max_tokens": 0},
        {"temperature": 2.5},
        {"reasoning_level": "extreme"},
    ],
)
def test_request_validation(changes: dict[str, object]) -> None:
    values: dict[str, object] = {"model_key": "m", "user_prompt": "hi"}
    values.update(changes)
    with pytest.raises(ValueError):
        ProviderRequest(**values)  # type: ignore[arg-type]


@pytest.mark.unit
def test_request_metadata_is_read_only() -> None:
    request = ProviderRequest(model_key="m", user_prompt="hi", metadata={"trace": "t-1"})

    with pytest.raises(TypeError):
        request.metadata["trace"] = "t-2"  # type: ignore[index]


@pytest.mark.unit
def test_usage_totals_and_validation() -> None:
    assert ProviderUsage(input_tokens=10, output_tokens=5).total_tokens == 15
    assert ProviderUsage(input_tokens=10, output_tokens=5, total_tokens=20).total_tokens == 20
    with pytest.raises(ValueError):
        ProviderUsage(input_tokens=-1)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("stop", FinishReason.STOP),
        ("end_turn", FinishReason.STOP),
        ("MAX_TOKENS", FinishReason.LENGTH),
        ("length", FinishReason.LENGTH),
        ("tool_use", FinishReason.TOOL_CALLS),
        ("refusal", FinishReason.CONTENT_FILTER),
        ("something_new", FinishReason.STOP),
        ("", None),
        (None, None),
    ],
)
def test_finish_reason_normalization(raw: str | None, expected: FinishReason | None) -> None:
    assert normalize_finish_reason(raw) == expected


@pytest.mark.unit
def test_response_serialization_omits_text() -> None:
    response = ProviderResponse(
        text="secret plan",
        provider="openai",
        model_key="gpt-4o",
        usage=ProviderUsage(input_tokens=3, output_tokens=4),
        latency_ms=12,
        finish_reason="stop",
    )

    payload = response.to_dict()
    assert "text" not in payload
    assert payload["finish_reason"] == "stop"
    assert payload["usage"] == {"input_tokens": 3, "output_tokens": 4, "total_tokens": 7}
    with pytest.raises(ValueError):
        ProviderResponse(text="", provider="p", model_key="m", latency_ms=-1)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("status", "detail", "expected_type", "retryable"),
    [
        (401, "bad key", ProviderNotConfiguredError, False),
        (403, "forbidden", ProviderNotConfiguredError, False),
        (404, "model gpt-9 does not exist", ModelNotSupportedError, False),
        (404, "route missing", ProviderAPIError, False),
        (429, "slow down", RateLimitError, True),
        (500, "boom", ProviderAPIError, True),
        (503, "unavailable", ProviderAPIError, True),
        (400, "bad request", ProviderAPIError, False),
    ],
)
def test_classify_http_error(
    status: int, detail: str, expected_type: type, retryable: bool
) -> None:
    error = classify_http_error("openai", status, detail, model_key="gpt-9")

    assert type(error) is expected_type
    assert error.retryable is retryable
    assert is_retryable_error(error) is retryable


@pytest.mark.unit
def test_map_provider_exception_by_shape() -> None:
    assert isinstance(
        map_provider_exception("openai", asyncio.TimeoutError()), ProviderTimeoutError
    )
    assert isinstance(map_provider_exception("openai", APITimeoutError("t")), ProviderTimeoutError)
    assert isinstance(map_provider_exception("openai", RateLimitExceeded("r")), RateLimitError)
    assert isinstance(
        map_provider_exception("openai", AuthenticationError("no")), ProviderNotConfiguredError
    )
    assert isinstance(map_provider_exception("openai", APIConnectionError("x")), NetworkError)
    assert isinstance(map_provider_exception("openai", ConnectionResetError()), NetworkError)

    nested = map_provider_exception("anthropic", APIStatusError("overloaded"))
    assert isinstance(nested, ProviderAPIError)
    assert nested.status_code == 502
    assert nested.retryable is True

    generic = map_provider_exception("anthropic", ValueError("weird"))
    assert generic.kind is ErrorKind.PROVIDER_API_ERROR
    assert generic.retryable is False

    already = RateLimitError("openai", "limit")
    assert map_provider_exception("openai", already) is already


@pytest.mark.unit
def test_exception_helpers() -> None:
    assert exception_detail(Exception("  bad\n   gateway ")) == "bad gateway"
    assert exception_detail(KeyError()) == "KeyError"
    assert read_status_code(RateLimitExceeded()) == 429
    assert read_status_code(APIStatusError()) == 502
    assert read_status_code(ValueError()) is None
    assert is_retryable_error(ValueError()) is False
