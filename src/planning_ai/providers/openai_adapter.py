"""
planning-ai-core — OpenAI provider adapter

File: src/planning_ai/providers/openai_adapter.py
Last updated: 2026-10-19

Purpose
- OpenAI adapter over the optional ``openai`` SDK, with injected client support.

What should be included in this file
- Chat Completions calls for GPT-4-class models.
- Responses API calls with reasoning effort for GPT-5-class models.
- Streaming with token callbacks and a final assembled response.

Non-functional requirements
- Credentials come from an env var; keys are never logged.
"""

from __future__ import annotations

import importlib
import os
import time
from collections.abc import AsyncIterator, Mapping
from types import MappingProxyType
from typing import Any, Final, NamedTuple, Protocol, cast

import structlog

from planning_ai.errors import PlanningAIError, ProviderAPIError, ProviderNotConfiguredError
from planning_ai.providers.base import (
    FinishReason,
    ProviderRequest,
    ProviderResponse,
    ProviderUsage,
    ReasoningLevel,
    StreamCallbacks,
    map_provider_exception,
    normalize_finish_reason,
    read_int,
    read_sequence,
    read_str,
    read_value,
)

DEFAULT_API_KEY_ENV: Final[str] = "OPENAI_API_KEY"
REASONING_MODEL_PREFIX: Final[str] = "gpt-5"


class _ReasoningModelSettings(NamedTuple):
    max_output_tokens: int
    effort: str


_REASONING_MODEL_PRESETS: Final[Mapping[ReasoningLevel, _ReasoningModelSettings]] = (
    MappingProxyType(
        {
            ReasoningLevel.FAST: _ReasoningModelSettings(1200, "low"),
            ReasoningLevel.BALANCED: _ReasoningModelSettings(2000, "medium"),
            ReasoningLevel.DEEP: _ReasoningModelSettings(6000, "high"),
            ReasoningLevel.LONG_FORM: _ReasoningModelSettings(12000, "medium"),
        }
    )
)


class _CreateAPI(Protocol):
    async def create(self, **kwargs: object) -> Any: ...


class _ChatAPI(Protocol):
    completions: _CreateAPI


class _OpenAIClient(Protocol):
    chat: _ChatAPI
    responses: _CreateAPI


def is_reasoning_model(model_key: str) -> bool:
    return model_key.strip().lower().startswith(REASONING_MODEL_PREFIX)


class OpenAIAdapter:
    """OpenAI adapter; the SDK is imported on first use."""

    provider_name = "openai"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        api_key_env: str = DEFAULT_API_KEY_ENV,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        client: _OpenAIClient | None = None,
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
            if is_reasoning_model(request.model_key):
                raw = await client.responses.create(**_responses_payload(request))
                text, finish = _extract_responses_output(raw)
                usage = _normalize_usage(raw)
                if not text and usage.output_tokens == 0:
                    raise ProviderAPIError(
                        self.provider_name,
                        "response did not contain output text",
                        status_code=200,
                    )
            else:
                raw = await client.chat.completions.create(**_chat_payload(request))
                text, finish = _extract_chat_output(raw, self.provider_name)
                usage = _normalize_usage(raw)
        except Exception as exc:
            raise self._fail(exc, request) from exc
        return ProviderResponse(
            text=text,
            provider=self.provider_name,
            model_key=read_str(raw, "model") or request.model_key,
            usage=usage,
            latency_ms=int((time.perf_counter() - started) * 1000),
            finish_reason=finish,
        )

    async def stream(
        self, request: ProviderRequest, callbacks: StreamCallbacks
    ) -> ProviderResponse:
        if is_reasoning_model(request.model_key):
            try:
                response = await self.generate(request)
            except PlanningAIError as exc:
                if callbacks.on_error is not None:
                    callbacks.on_error(exc)
                raise
            if response.text:
                callbacks.on_token(response.text)
            if callbacks.on_complete is not None:
                callbacks.on_complete(response)
            return response

        client = self._ensure_client()
        started = time.perf_counter()
        chunks: list[str] = []
        finish: FinishReason | None = None
        usage = ProviderUsage()
        try:
            payload = _chat_payload(request)
            payload["stream"] = True
            payload["stream_options"] = {"include_usage": True}
            events = cast("AsyncIterator[object]", await client.chat.completions.create(**payload))
            async for chunk in events:
                for choice in read_sequence(chunk, "choices"):
                    delta = read_value(choice, "delta")
                    token = read_str(delta, "content") if delta is not None else None
                    if token:
                        chunks.append(token)
                        callbacks.on_token(token)
                    finish = normalize_finish_reason(read_str(choice, "finish_reason")) or finish
                if read_value(chunk, "usage") is not None:
                    usage = _normalize_usage(chunk)
        except Exception as exc:
            error = self._fail(exc, request)
            if callbacks.on_error is not None:
                callbacks.on_error(error)
            raise error from exc

        response = ProviderResponse(
            text="".join(chunks),
            provider=self.provider_name,
            model_key=request.model_key,
            usage=usage,
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

    def _ensure_client(self) -> _OpenAIClient:
        if self._client is None:
            self._client = self._create_default_client()
        return self._client

    def _create_default_client(self) -> _OpenAIClient:
        api_key = self._resolve_api_key()
        try:
            openai_module = importlib.import_module("openai")
        except ImportError as exc:
            raise ProviderNotConfiguredError(
                self.provider_name, "openai SDK is not installed"
            ) from exc

        async_openai = getattr(openai_module, "AsyncOpenAI", None)
        if async_openai is None:
            raise ProviderNotConfiguredError(
                self.provider_name, "openai SDK does not expose AsyncOpenAI"
            )
        init_kwargs: dict[str, object] = {"api_key": api_key}
        if self._base_url is not None:
            init_kwargs["base_url"] = self._base_url
        if self._timeout_seconds is not None:
            init_kwargs["timeout"] = self._timeout_seconds
        return cast("_OpenAIClient", async_openai(**init_kwargs))

    def _resolve_api_key(self) -> str:
        if self._api_key is not None and self._api_key.strip():
            return self._api_key
        configured = os.getenv(self._api_key_env)
        if configured is None or not configured.strip():
            raise ProviderNotConfiguredError(
                self.provider_name,
                f"missing OpenAI API key; set {self._api_key_env}",
            )
        return configured


def _chat_payload(request: ProviderRequest) -> dict[str, object]:
    sampling = request.sampling()
    messages: list[dict[str, str]] = []
    if request.system_prompt:
        messages.append({"role": "system", "content": request.system_prompt})
    messages.extend(request.conversation())
    return {
        "model": request.model_key,
        "messages": messages,
        "max_tokens": sampling.max_tokens,
        "temperature": sampling.temperature,
    }


def _responses_payload(request: ProviderRequest) -> dict[str, object]:
    level = request.reasoning_level or ReasoningLevel.BALANCED
    preset = _REASONING_MODEL_PRESETS[level]
    payload: dict[str, object] = {
        "model": request.model_key,
        "input": request.conversation(),
        "max_output_tokens": preset.max_output_tokens,
        "reasoning": {"effort": preset.effort},
    }
    if request.system_prompt:
        payload["instructions"] = request.system_prompt
    return payload


def _extract_chat_output(raw: object, provider: str) -> tuple[str, FinishReason | None]:
    choices = read_sequence(raw, "choices")
    if not choices:
        raise ProviderAPIError(provider, "response contained no choices", status_code=200)
    first = choices[0]
    message = read_value(first, "message")
    if message is None:
        raise ProviderAPIError(provider, "response contained no message", status_code=200)
    finish = normalize_finish_reason(read_str(first, "finish_reason"))
    content = read_value(message, "content")
    if isinstance(content, str):
        return content, finish
    if content is None:
        return "", finish
    blocks = read_sequence(message, "content")
    text = "".join(
        read_str(block, "text") or "" for block in blocks if read_str(block, "type") == "text"
    )
    return text, finish


def _extract_responses_output(raw: object) -> tuple[str, FinishReason | None]:
    direct = read_value(raw, "output_text")
    finish = normalize_finish_reason(read_str(raw, "finish_reason"))
    if isinstance(direct, str) and direct.strip():
        return direct, finish
    chunks: list[str] = []
    for item in read_sequence(raw, "output"):
        for block in read_sequence(item, "content"):
            if read_str(block, "type") in {"output_text", "text"}:
                chunks.append(read_str(block, "text") or "")
    return "".join(chunks), finish


def _normalize_usage(raw: object) -> ProviderUsage:
    usage = read_value(raw, "usage")
    if usage is None:
        return ProviderUsage()
    input_tokens = read_int(usage, "prompt_tokens") or read_int(usage, "input_tokens") or 0
    output_tokens = (
        read_int(usage, "completion_tokens") or read_int(usage, "output_tokens") or 0
    )
    return ProviderUsage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=read_int(usage, "total_tokens") or 0,
    )


__all__ = ["DEFAULT_API_KEY_ENV", "OpenAIAdapter", "is_reasoning_model"]
