"""Unit tests for audit records and sinks."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from planning_ai.execution.audit import (
    AuditRecord,
    InMemoryAuditSink,
    StructlogAuditSink,
    record_audit_safely,
)


class _BrokenSink:
    def record(self, record: AuditRecord) -> None:
        raise OSError("audit table unavailable")


def _record(**changes: object) -> AuditRecord:
    values: dict[str, object] = {
        "user_id": "user-1",
        "intent": "summarize",
        "feature_key": "project_summary",
        "success": True,
        "project_id": "proj-1",
        "provider": "anthropic",
        "model_key": "claude-3-5-sonnet-20241022",
        "route_id": "route-project-summary",
        "input_tokens": 120,
        "output_tokens": 40,
        "latency_ms": 850,
        "context_hash": "abc123",
        "created_at": datetime(2026, 3, 2, 11, 30, tzinfo=timezone(timedelta(hours=2))),
    }
    values.update(changes)
    return AuditRecord(**values)  # type: ignore[arg-type]


@pytest.mark.unit
def test_record_serializes_without_text() -> None:
    payload = _record().to_dict()

    assert payload["created_at"] == "2026-03-02T09:30:00.000000Z"
    assert payload["success"] is True
    assert payload["error_kind"] is None
    assert set(payload) == {
        "user_id",
        "project_id",
        "conversation_id",
        "intent",
        "feature_key",
        "provider",
        "model_key",
        "route_id",
        "input_tokens",
        "output_tokens",
        "latency_ms",
        "context_hash",
        "success",
        "error_kind",
        "created_at",
    }


@pytest.mark.unit
@pytest.mark.parametrize(
    "changes",
    [
        {"user_id": ""},
        {"input_tokens": -1},
        {"latency_ms": -5},
        {"created_at": datetime(2026, 3, 2)},
        {"success": True, "error_kind": "timeout"},
    ],
)
def test_record_validation(changes: dict[str, object]) -> None:
    with pytest.raises(ValueError):
        _record(**changes)


@pytest.mark.unit
def test_in_memory_sink_appends_in_order() -> None:
    sink = InMemoryAuditSink()
    first = _record()
    second = _record(success=False, error_kind="rate_limited", created_at=datetime.now(UTC))

    sink.record(first)
    sink.record(second)

    assert sink.records == (first, second)
    assert len(sink) == 2


@pytest.mark.unit
def test_structlog_sink_emits_audit_event(recording_logger) -> None:
    StructlogAuditSink(logger=recording_logger).record(_record())

    fields = recording_logger.first("ai_request_audit")
    assert fields["route_id"] == "route-project-summary"
    assert fields["input_tokens"] == 120


@pytest.mark.unit
def test_failing_sink_is_swallowed_and_logged(recording_logger) -> None:
    assert record_audit_safely(_BrokenSink(), _record(), logger=recording_logger) is False
    assert recording_logger.first("audit_write_failed") == {
        "error_type": "OSError",
        "feature_key": "project_summary",
        "success": True,
    }

    sink = InMemoryAuditSink()
    assert record_audit_safely(sink, _record(), logger=recording_logger) is True
    assert len(sink) == 1
