"""
planning-ai-core — Anthropic provider adapter

File: src/planning_ai/providers/anthropic_adapter.py
Last updated: 2026-10-19

Purpose
- Anthropic messages adapter (Claude-class) over the optional ``anthropic`` SDK.

What should be included in this file
- Messages API call with system prompt and prior turns.
- Streaming over message events with token callbacks.
- Token accounting and stop-reason normalization.

Non-functional requirements
- Credentials come from an env var; keys are never logged.
"""

from __future__ import annotations

import importlib
import os
import time
from collections.abc import AsyncIterator
from typing import Any, Final, Protocol, cast

import structlog

from planning_ai.errors import PlanningAIError, ProviderAPIError, ProviderNotConfiguredError
from planning_ai.providers.base import (
    FinishReason,
    ProviderRequest,
    ProviderResponse,
    ProviderUsage,
    StreamCallbacks,
    map_provider_exception,
    normalize_finish_reason,
    read_int,
    read_sequence,
    read_str,
    read_value,
)

DEFAULT_API_KEY_ENV: Final[str] = "ANTHROPIC_API_KEY"


class _AnthropicMessagesAPI(Protocol):
    async def create(self, **kwargs: object) -> Any: ...


class _AnthropicClient(Protocol):
    messages: _AnthropicMessagesAPI


class AnthropicAdapter:
    """Anthropic messages adapter with optional SDK dependency and injected client support."""

    provider_name = "anthropic"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        api_key_env: str = DEFAULT_API_KEY_ENV,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        client: _AnthropicClient | None = None,
        logger: Any | None = None,
    ) -> None:
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self._api_key = api_key
        self._api_key_env = api_key_env
        self._base_url = base_url
        self._timeout_seconds = timeout_seconds
        self._client = client
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    async def generate(self, request: ProviderRequest) -> ProviderResponse:
        client = self._ensure_client()
        started = time.perf_counter()
        try:
            raw = await client.messages.create(**_build_payload(request))
            text = _extract_text(raw)
            if not text and read_str(raw, "stop_reason") is None:
                raise ProviderAPIError(
                    self.provider_name, "response did not contain text", status_code=200
                )
        except Exception as exc:
            raise self._fail(exc, request) from exc
        return ProviderResponse(
            text=text,
            provider=self.provider_name,
            model_key=read_str(raw, "model") or request.model_key,
            usage=_normalize_usage(read_value(raw, "usage")),
            latency_ms=int((time.perf_counter() - started) * 1000),
            finish_reason=normalize_finish_reason(read_str(raw, "stop_reason")),
        )

    async def stream(
        self, request: ProviderRequest, callbacks: StreamCallbacks
    ) -> ProviderResponse:
        client = self._ensure_client()
        started = time.perf_counter()
        chunks: list[str] = []
        finish: FinishReason | None = None
        input_tokens = 0
        output_tokens = 0
        try:
            payload = _build_payload(request)
            payload["stream"] = True
            events = cast("AsyncIterator[object]", await client.messages.create(**payload))
            async for event in events:
                event_type = read_str(event, "type")
                if event_type == "message_start":
                    usage = read_value(read_value(event, "message"), "usage")
                    input_tokens = read_int(usage, "input_tokens") or input_tokens
                elif event_type == "content_block_delta":
                    token = read_str(read_value(event, "delta"), "text")
                    if token:
                        chunks.append(token)
                        callbacks.on_token(token)
                elif event_type == "message_delta":
                    stop = read_str(read_value(event, "delta"), "stop_reason")
                    finish = normalize_finish_reason(stop) or finish
                    output_tokens = (
                        read_int(read_value(event, "usage"), "output_tokens") or output_tokens
                    )
                elif event_type == "error":
                    detail = read_str(read_value(event, "error"), "message") or "stream error"
                    raise ProviderAPIError(self.provider_name, detail)
        except Exception as exc:
            error = self._fail(exc, request)
            if callbacks.on_error is not None:
                callbacks.on_error(error)
            raise error from exc

        response = ProviderResponse(
            text="".join(chunks),
            provider=self.provider_name,
            model_key=request.model_key,
            usage=ProviderUsage(input_tokens=input_tokens, output_tokens=output_tokens),
            latency_ms=int((time.perf_counter() - started) * 1000),
            finish_reason=finish or FinishReason.STOP,
        )
        if callbacks.on_complete is not None:
            callbacks.on_complete(response)
        return response

    def _fail(self, exc: BaseException, request: ProviderRequest) -> PlanningAIError:
        error = map_provider_exception(self.provider_name, exc, model_key=request.model_key)
        self._logger.warning(
            "provider_call_failed",
            provider=self.provider_name,
            model_key=request.model_key,
            kind=error.kind.value,
            retryable=error.retryable,
        )
        return error

    def _ensure_client(self) -> _AnthropicClient:
        if self._client is None:
            self._client = self._create_default_client()
        return self._client

    def _create_default_client(self) -> _AnthropicClient:
        api_key = self._resolve_api_key()
        try:
            anthropic_module = importlib.import_module("anthropic")
        except ImportError as exc:
            raise ProviderNotConfiguredError(
                self.provider_name, "anthropic SDK is not installed"
            ) from exc

        async_anthropic = getattr(anthropic_module, "AsyncAnthropic", None)
        if async_anthropic is None:
            raise ProviderNotConfiguredError(
                self.provider_name, "anthropic SDK does not expose AsyncAnthropic"
            )
        init_kwargs: dict[str, object] = {"api_key": api_key}
        if self._base_url is not None:
            init_kwargs["base_url"] = self._base_url
        if self._timeout_seconds is not None:
            init_kwargs["timeout"] = self._timeout_seconds
        return cast("_AnthropicClient", async_anthropic(**init_kwargs))

    def _resolve_api_key(self) -> str:
        if self._api_key is not None and self._api_key.strip():
            return self._api_key
        configured = os.getenv(self._api_key_env)
        if configured is None or not configured.strip():
            raise ProviderNotConfiguredError(
                self.provider_name,
                f"missing Anthropic API key; set {self._api_key_env}",
            )
        return configured


def _build_payload(request: ProviderRequest) -> dict[str, object]:
    sampling = request.sampling()
    payload: dict[str, object] = {
        "model": request.model_key,
        "messages": request.conversation(),
        "max_tokens": sampling.max_tokens,
        "temperature": min(sampling.temperature, 1.0),
    }
    if request.system_prompt:
        payload["system"] = request.system_prompt
    return payload


def _extract_text(raw: object) -> str:
    chunks = [
        read_str(block, "text") or ""
        for block in read_sequence(raw, "content")
        if read_str(block, "type") == "text"
    ]
    return "".join(chunks)


def _normalize_usage(usage: object | None) -> ProviderUsage:
    if usage is None:
        return ProviderUsage()
    return ProviderUsage(
        input_tokens=read_int(usage, "input_tokens") or 0,
        output_tokens=read_int(usage, "output_tokens") or 0,
    )


__all__ = ["AnthropicAdapter", "DEFAULT_API_KEY_ENV"]
