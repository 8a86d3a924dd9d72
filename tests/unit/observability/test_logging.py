"""
planning-ai-core — unit tests for observability logging

File: tests/unit/observability/test_logging.py
Last updated: 2026-10-19

Purpose
- Validate structlog events rendered as redacted JSON lines with correlation metadata.

What this test file should cover
- JSON line validity and redaction guarantees.
- Transcript fields never reach the log.
- Correlation field propagation and reset.
- Level filtering, file output and handle shutdown.

Non-functional requirements
- Deterministic and non-flaky.
"""

from __future__ import annotations

import io
import json
from collections.abc import Iterator
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from uuid import uuid4

import pytest
import structlog

from planning_ai.observability.logging import (
    configure_logging,
    correlation_scope,
    default_log_redactor,
    get_active_logging_handle,
    get_correlation_context,
    reset_correlation_fields,
    set_correlation_fields,
    shutdown_logging,
)


class _Surface(Enum):
    PROJECT = "project"


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()
    structlog.reset_defaults()


def _logger_name() -> str:
    return f"planning_ai_tests_{uuid4().hex}"


def _lines(stream: io.StringIO) -> list[dict[str, object]]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


@pytest.mark.unit
def test_json_lines_carry_fields_and_correlation() -> None:
    stream = io.StringIO()
    name = _logger_name()
    handle = configure_logging({"log_level": "INFO"}, stream=stream, logger_name=name)
    log = structlog.get_logger(f"{name}.pipeline")

    with correlation_scope(request_id="req-1", user_id="user-1"):
        log.info(
            "ai_request_completed",
            input_tokens=120,
            surface=_Surface.PROJECT,
            generated_at=datetime(2026, 3, 2, 9, 30, tzinfo=UTC),
        )
    handle.flush()

    (entry,) = _lines(stream)
    assert entry["event"] == "ai_request_completed"
    assert entry["level"] == "INFO"
    assert entry["logger"] == f"{name}.pipeline"
    assert entry["request_id"] == "req-1"
    assert entry["user_id"] == "user-1"
    assert entry["fields"] == {
        "input_tokens": 120,
        "surface": "project",
        "generated_at": "2026-03-02T09:30:00.000000Z",
    }
    assert str(entry["timestamp"]).endswith("Z")


@pytest.mark.unit
def test_secrets_are_redacted_and_transcripts_dropped() -> None:
    stream = io.StringIO()
    name = _logger_name()
    handle = configure_logging({}, stream=stream, logger_name=name)
    log = structlog.get_logger(name)

    log.warning(
        "provider key sk-abcdefghijklmnopqrstu rejected",
        api_key="sk-live-123",
        nested={"password": "hunter2", "safe": "ok"},
        prompt="Plan my secret launch",
        messages=[{"role": "user", "content": "hi"}],
        output_tokens=12,
    )
    handle.flush()

    raw = stream.getvalue()
    (entry,) = _lines(stream)
    assert entry["event"] == "provider key ***REDACTED*** rejected"
    assert entry["fields"] == {
        "api_key": "***REDACTED***",
        "nested": {"password": "***REDACTED***", "safe": "ok"},
        "output_tokens": 12,
    }
    assert "hunter2" not in raw
    assert "Plan my secret launch" not in raw


@pytest.mark.unit
def test_redaction_can_be_disabled() -> None:
    stream = io.StringIO()
    name = _logger_name()
    handle = configure_logging({"redact_secrets": False}, stream=stream, logger_name=name)

    structlog.get_logger(name).info("plain", password="visible")
    handle.flush()

    (entry,) = _lines(stream)
    assert entry["fields"] == {"password": "visible"}


@pytest.mark.unit
def test_reserved_record_keys_are_renamed() -> None:
    stream = io.StringIO()
    name = _logger_name()
    handle = configure_logging({}, stream=stream, logger_name=name)

    structlog.get_logger(name).info("person_resolved", name="Ana", module="tags")
    handle.flush()

    (entry,) = _lines(stream)
    assert entry["fields"] == {"field_name": "Ana", "field_module": "tags"}


@pytest.mark.unit
def test_level_filtering() -> None:
    stream = io.StringIO()
    name = _logger_name()
    handle = configure_logging({"log_level": "WARNING"}, stream=stream, logger_name=name)
    log = structlog.get_logger(name)

    log.info("hidden")
    log.error("shown")
    handle.flush()

    assert [entry["event"] for entry in _lines(stream)] == ["shown"]


@pytest.mark.unit
def test_invalid_level_is_rejected() -> None:
    with pytest.raises(ValueError, match="unsupported logging level"):
        configure_logging({"log_level": "CHATTY"}, stream=io.StringIO())


@pytest.mark.unit
def test_log_directory_receives_jsonl_file(tmp_path: Path) -> None:
    name = _logger_name()
    handle = configure_logging(
        {"log_dir": str(tmp_path / "logs")}, stream=io.StringIO(), logger_name=name
    )

    structlog.get_logger(name).info("draft_created", draft_id="d-1")
    shutdown_logging(handle)

    assert handle.log_path == tmp_path / "logs" / "planning_ai.jsonl"
    lines = handle.log_path.read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[0])["fields"] == {"draft_id": "d-1"}


@pytest.mark.unit
def test_text_format_is_human_readable() -> None:
    stream = io.StringIO()
    name = _logger_name()
    handle = configure_logging({"log_format": "text"}, stream=stream, logger_name=name)

    structlog.get_logger(name).info("route_resolved")
    handle.flush()

    line = stream.getvalue().strip()
    assert line.endswith(f"INFO {name} route_resolved")


@pytest.mark.unit
def test_reconfigure_shuts_down_previous_handle() -> None:
    first = configure_logging({}, stream=io.StringIO(), logger_name=_logger_name())
    second = configure_logging({}, stream=io.StringIO(), logger_name=_logger_name())

    assert first.is_shutdown
    assert get_active_logging_handle() is second

    shutdown_logging()
    shutdown_logging()
    assert second.is_shutdown
    assert get_active_logging_handle() is None


@pytest.mark.unit
def test_correlation_fields_nest_and_reset() -> None:
    assert get_correlation_context() == {}

    with correlation_scope(request_id="req-1", project_id="proj-1"):
        with correlation_scope(project_id=None, conversation_id=" conv-9 "):
            assert get_correlation_context() == {
                "request_id": "req-1",
                "conversation_id": "conv-9",
            }
        assert get_correlation_context() == {"request_id": "req-1", "project_id": "proj-1"}

    token = set_correlation_fields(user_id="user-1")
    reset_correlation_fields(token)
    assert get_correlation_context() == {}


@pytest.mark.unit
@pytest.mark.parametrize(
    "fields",
    [{"run_id": "r-1"}, {"user_id": ""}, {"user_id": 7}],
)
def test_correlation_fields_are_validated(fields: dict[str, object]) -> None:
    with pytest.raises(ValueError):
        set_correlation_fields(**fields)  # type: ignore[arg-type]


@pytest.mark.unit
def test_default_redactor_handles_nested_structures() -> None:
    redacted = default_log_redactor(
        {
            "headers": [{"authorization": "Bearer abc.def"}],
            "note": "sent Bearer abc.def and token=xyz",
            "content": "dropped",
            "usage": {"total_tokens": 9},
        }
    )

    assert redacted == {
        "headers": [{"authorization": "***REDACTED***"}],
        "note": "sent Bearer ***REDACTED*** and token=***REDACTED***",
        "usage": {"total_tokens": 9},
    }
