"""
planning-ai-core — request audit trail

File: src/planning_ai/execution/audit.py
Last updated: 2026-10-19

Purpose
- Record one audit entry per AI request: who asked, which route served it, token
  accounting, latency, outcome and the context hash that ties it to its provenance.

Functional requirements
- Audit writes never fail the request that produced them.
- Prompt and response text are never part of an audit record.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

import structlog

from planning_ai.utils.validation import (
    as_utc,
    iso8601z,
    utc_now,
    validate_non_empty_str,
    validate_non_negative_int,
)


@dataclass(frozen=True, slots=True)
class AuditRecord:
    user_id: str
    intent: str | None
    feature_key: str
    success: bool
    project_id: str | None = None
    conversation_id: str | None = None
    provider: str | None = None
    model_key: str | None = None
    route_id: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0
    context_hash: str | None = None
    error_kind: str | None = None
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "user_id", validate_non_empty_str(self.user_id, "AuditRecord.user_id")
        )
        validate_non_negative_int(self.input_tokens, "AuditRecord.input_tokens")
        validate_non_negative_int(self.output_tokens, "AuditRecord.output_tokens")
        validate_non_negative_int(self.latency_ms, "AuditRecord.latency_ms")
        object.__setattr__(self, "created_at", as_utc(self.created_at, "AuditRecord.created_at"))
        if self.success and self.error_kind is not None:
            raise ValueError("successful audit records cannot carry an error_kind")

    def to_dict(self) -> dict[str, object]:
        return {
            "user_id": self.user_id,
            "project_id": self.project_id,
            "conversation_id": self.conversation_id,
            "intent": self.intent,
            "feature_key": self.feature_key,
            "provider": self.provider,
            "model_key": self.model_key,
            "route_id": self.route_id,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "latency_ms": self.latency_ms,
            "context_hash": self.context_hash,
            "success": self.success,
            "error_kind": self.error_kind,
            "created_at": iso8601z(self.created_at),
        }


class AuditSink(Protocol):
    def record(self, record: AuditRecord) -> None: ...


class InMemoryAuditSink:
    """Append-only list of audit records."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: list[AuditRecord] = []

    def record(self, record: AuditRecord) -> None:
        with self._lock:
            self._records.append(record)

    @property
    def records(self) -> tuple[AuditRecord, ...]:
        with self._lock:
            return tuple(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class StructlogAuditSink:
    """Emit each audit record as an ``ai_request_audit`` log event."""

    def __init__(self, *, logger: Any | None = None) -> None:
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def record(self, record: AuditRecord) -> None:
        self._logger.info("ai_request_audit", **record.to_dict())


def record_audit_safely(
    sink: AuditSink, record: AuditRecord, *, logger: Any | None = None
) -> bool:
    """Write ``record``; a failing sink is logged as ``audit_write_failed`` and swallowed."""

    try:
        sink.record(record)
    except Exception as exc:  # noqa: BLE001
        log = logger if logger is not None else structlog.get_logger(__name__)
        log.warning(
            "audit_write_failed",
            error_type=type(exc).__name__,
            feature_key=record.feature_key,
            success=record.success,
        )
        return False
    return True


__all__ = [
    "AuditRecord",
    "AuditSink",
    "InMemoryAuditSink",
    "StructlogAuditSink",
    "record_audit_safely",
]
