"""
planning-ai-core — structured logging

File: src/planning_ai/observability/logging.py
Last updated: 2026-10-19

Purpose
- Render structlog events as one redacted JSON object per line, tagged with the
  request correlation fields that are active when the event is emitted.

Functional requirements
- Keyword arguments of an event land under ``fields``; correlation fields sit at the top level.
- Secret-looking keys and values are masked; prompt and completion text is never written.
- Reconfiguring closes the handlers of the previous setup.
"""

from __future__ import annotations

import contextvars
import json
import logging
import math
import re
import sys
import threading
from collections.abc import Callable, Iterator, Mapping, MutableMapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from functools import singledispatch
from pathlib import Path, PurePath
from types import MappingProxyType
from typing import IO, Any, Final

import structlog

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
LogRedactor = Callable[[JSONValue], JSONValue]

LOG_FILENAME: Final[str] = "planning_ai.jsonl"
MASK: Final[str] = "***REDACTED***"

CORRELATION_KEYS: Final[tuple[str, ...]] = (
    "request_id",
    "user_id",
    "conversation_id",
    "project_id",
)

# Substrings that mark a key as holding a credential.
_SECRET_KEY_MARKERS: Final[tuple[str, ...]] = (
    "secret",
    "token",
    "password",
    "passphrase",
    "api_key",
    "apikey",
    "authorization",
    "credential",
    "cookie",
    "private_key",
)

# Keys whose values are conversation text; dropped outright.
_CONVERSATION_KEYS: Final[frozenset[str]] = frozenset(
    {
        "prompt",
        "user_prompt",
        "system_prompt",
        "messages",
        "response_text",
        "completion",
        "transcript",
        "context_text",
        "content",
    }
)

_Substitution = tuple[re.Pattern[str], Callable[[re.Match[str]], str]]

_INLINE_SECRET_PATTERNS: Final[tuple[_Substitution, ...]] = (
    (
        re.compile(
            r"(?i)\b(api[_-]?key|token|password|secret|authorization)\b\s*([:=])\s*([^\s,;]+)"
        ),
        lambda found: f"{found.group(1)}{found.group(2)}{MASK}",
    ),
    (re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*"), lambda _found: f"Bearer {MASK}"),
    (re.compile(r"\bsk-ant-[A-Za-z0-9_-]{12,}"), lambda _found: MASK),
    (re.compile(r"\bsk-[A-Za-z0-9_-]{12,}"), lambda _found: MASK),
)

# Attributes every LogRecord carries, plus the two a Formatter adds.
_LOG_RECORD_ATTRS: Final[frozenset[str]] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime"}
# ``exc_info`` and ``stack_info`` are forwarded to the logging call, not renamed.
_SHADOWED_ATTRS: Final[frozenset[str]] = _LOG_RECORD_ATTRS - {"exc_info", "stack_info"}

_correlation: contextvars.ContextVar[Mapping[str, str]] = contextvars.ContextVar(
    "planning_ai_correlation", default=MappingProxyType({})
)

_active_lock = threading.Lock()
_active: LoggingHandle | None = None


@dataclass(eq=False)
class LoggingHandle:
    """Handlers installed by one ``configure_logging`` call."""

    logger: logging.Logger
    handlers: tuple[logging.Handler, ...]
    log_path: Path | None = None
    _closed: bool = field(default=False, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def is_shutdown(self) -> bool:
        return self._closed

    def flush(self) -> None:
        for handler in self.handlers:
            handler.flush()

    def shutdown(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            for handler in self.handlers:
                self.logger.removeHandler(handler)
                handler.flush()
                handler.close()


class _JsonEnvelopeFormatter(logging.Formatter):
    def __init__(self, redactor: LogRedactor) -> None:
        super().__init__()
        self._redact = redactor

    def format(self, record: logging.LogRecord) -> str:
        envelope: dict[str, JSONValue] = {
            "timestamp": _epoch_to_utc_text(record.created),
            "level": record.levelname,
            "logger": record.name,
            "event": _as_text(self._redact(record.getMessage())),
            **get_correlation_context(),
        }
        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _LOG_RECORD_ATTRS and not key.startswith("_")
        }
        if extra:
            envelope["fields"] = self._redact(_jsonable(extra))
        if record.exc_info:
            envelope["exception"] = _as_text(self._redact(self.formatException(record.exc_info)))
        return json.dumps(envelope, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def configure_logging(
    observability_config: Mapping[str, object] | None = None,
    *,
    stream: IO[str] | None = None,
    log_dir: Path | str | None = None,
    logger_name: str = "planning_ai",
) -> LoggingHandle:
    """Send structlog events through the stdlib logger ``logger_name``.

    ``observability_config`` is the ``[observability]`` config section. Lines go to
    ``stream`` (stdout when omitted) and, with a log directory, to ``planning_ai.jsonl``
    inside it. Any previously configured handle is shut down first.
    """

    global _active
    settings = dict(observability_config or {})
    level = _level_number(settings.get("log_level", "INFO"))

    if settings.get("log_format", "json") == "text":
        formatter: logging.Formatter = logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s"
        )
    else:
        redactor = default_log_redactor if settings.get("redact_secrets", True) else _passthrough
        formatter = _JsonEnvelopeFormatter(redactor)

    directory = log_dir if log_dir is not None else settings.get("log_dir")
    log_path = _prepare_log_file(directory)

    shutdown_logging()

    handlers: list[logging.Handler] = [
        logging.StreamHandler(sys.stdout if stream is None else stream)
    ]
    if log_path is not None:
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    logger.propagate = False
    for stale in list(logger.handlers):
        logger.removeHandler(stale)
        stale.close()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            _rename_record_attrs,
            structlog.stdlib.render_to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handle = LoggingHandle(logger=logger, handlers=tuple(handlers), log_path=log_path)
    with _active_lock:
        _active = handle
    return handle


def shutdown_logging(handle: LoggingHandle | None = None) -> None:
    """Close ``handle``, or the active handle when none is given. Safe to repeat."""

    global _active
    target = handle if handle is not None else get_active_logging_handle()
    if target is None:
        return
    target.shutdown()
    with _active_lock:
        if _active is target:
            _active = None


def get_active_logging_handle() -> LoggingHandle | None:
    with _active_lock:
        return _active


def get_correlation_context() -> dict[str, str]:
    return dict(_correlation.get())


def set_correlation_fields(**fields: str | None) -> contextvars.Token[Mapping[str, str]]:
    """Bind correlation fields in the current context; ``None`` unbinds a field.

    Only ``request_id``, ``user_id``, ``conversation_id`` and ``project_id`` are accepted.
    """

    bound = get_correlation_context()
    for key, value in fields.items():
        if key not in CORRELATION_KEYS:
            raise ValueError(f"unsupported correlation key {key!r}")
        if value is None:
            bound.pop(key, None)
        elif isinstance(value, str) and value.strip():
            bound[key] = value.strip()
        else:
            raise ValueError(f"correlation value for {key} must be a non-empty string")
    return _correlation.set(MappingProxyType(dict(sorted(bound.items()))))


def reset_correlation_fields(token: contextvars.Token[Mapping[str, str]]) -> None:
    _correlation.reset(token)


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    token = set_correlation_fields(**fields)
    try:
        yield
    finally:
        reset_correlation_fields(token)


def default_log_redactor(value: JSONValue) -> JSONValue:
    """Mask secret-like keys and inline secrets; drop conversation text keys."""

    if isinstance(value, str):
        for pattern, replacement in _INLINE_SECRET_PATTERNS:
            value = pattern.sub(replacement, value)
        return value
    if isinstance(value, list):
        return [default_log_redactor(item) for item in value]
    if isinstance(value, dict):
        scrubbed: dict[str, JSONValue] = {}
        for key, item in value.items():
            if key.lower() in _CONVERSATION_KEYS:
                continue
            scrubbed[key] = MASK if _is_secret_key(key) else default_log_redactor(item)
        return scrubbed
    return value


def _is_secret_key(key: str) -> bool:
    lowered = key.lower()
    # Token counters are accounting, not credentials.
    if lowered.endswith("_tokens"):
        return False
    return any(marker in lowered for marker in _SECRET_KEY_MARKERS)


def _passthrough(value: JSONValue) -> JSONValue:
    return value


def _rename_record_attrs(
    _logger: object, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    # LogRecord refuses ``extra`` keys that shadow its own attributes.
    for key in [key for key in event_dict if key in _SHADOWED_ATTRS]:
        event_dict[f"field_{key}"] = event_dict.pop(key)
    return event_dict


def _prepare_log_file(directory: object) -> Path | None:
    if not isinstance(directory, str | Path) or not str(directory).strip():
        return None
    base = Path(directory)
    base.mkdir(parents=True, exist_ok=True)
    return base / LOG_FILENAME


def _level_number(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int | str):
        raise ValueError(f"level must be int or str, got {type(value).__name__}")
    if isinstance(value, int):
        return value
    try:
        return logging.getLevelNamesMapping()[value.strip().upper()]
    except KeyError:
        raise ValueError(f"unsupported logging level {value!r}") from None


def _epoch_to_utc_text(seconds: float) -> str:
    moment = datetime.fromtimestamp(seconds, tz=UTC)
    return f"{moment:%Y-%m-%dT%H:%M:%S}.{moment.microsecond // 1000:03d}Z"


def _as_text(value: JSONValue) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


@singledispatch
def _jsonable(value: object) -> JSONValue:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return _jsonable(to_dict())
    return repr(value)


@_jsonable.register(type(None))
@_jsonable.register(str)
@_jsonable.register(int)
def _(value: JSONScalar) -> JSONValue:
    return value


@_jsonable.register(float)
def _(value: float) -> JSONValue:
    return value if math.isfinite(value) else MASK


@_jsonable.register(Enum)
def _(value: Enum) -> JSONValue:
    return _jsonable(value.value)


@_jsonable.register(datetime)
def _(value: datetime) -> JSONValue:
    moment = value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)
    return moment.isoformat(timespec="microseconds").replace("+00:00", "Z")


@_jsonable.register(PurePath)
def _(value: PurePath) -> JSONValue:
    return str(value)


@_jsonable.register(bytes)
def _(value: bytes) -> JSONValue:
    return value.decode("utf-8", errors="replace")


@_jsonable.register(Mapping)
def _(value: Mapping[object, object]) -> JSONValue:
    return {str(key): _jsonable(item) for key, item in value.items()}


@_jsonable.register(list)
@_jsonable.register(tuple)
def _(value: list[object] | tuple[object, ...]) -> JSONValue:
    return [_jsonable(item) for item in value]


@_jsonable.register(set)
@_jsonable.register(frozenset)
def _(value: set[object] | frozenset[object]) -> JSONValue:
    items = [_jsonable(item) for item in value]
    return sorted(items, key=lambda item: json.dumps(item, sort_keys=True, ensure_ascii=False))


__all__ = [
    "CORRELATION_KEYS",
    "JSONScalar",
    "JSONValue",
    "LOG_FILENAME",
    "LogRedactor",
    "LoggingHandle",
    "MASK",
    "configure_logging",
    "correlation_scope",
    "default_log_redactor",
    "get_active_logging_handle",
    "get_correlation_context",
    "reset_correlation_fields",
    "set_correlation_fields",
    "shutdown_logging",
]
