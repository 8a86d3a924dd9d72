"""
planning-ai-core — end-to-end tests for the AI request pipeline

File: tests/integration/test_pipeline_end_to_end.py
Last updated: 2026-10-19

Purpose
- Run real collaborators together: bundled routes, the Anthropic adapter over a
  scripted SDK client, the seeded planning store, draft service and JSON logging.

What this test file should cover
- A tagged draft request produces a reviewable draft that the user can edit,
  partially apply and finally accept.
- Another user cannot see or act on that draft.
- Logs carry correlation ids and audit events but never prompt or response text.
"""

from __future__ import annotations

import asyncio
import io
import itertools
import json
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from uuid import uuid4

import pytest
import structlog

from planning_ai.config.loader import load_config
from planning_ai.context_plane.budgets import Intent
from planning_ai.domain.drafts import DraftStatus, DraftType
from planning_ai.domain.scope import ChatSurface, ContextScope
from planning_ai.drafts.store import InMemoryDraftStore
from planning_ai.errors import Err, ErrorKind, Ok
from planning_ai.execution.audit import InMemoryAuditSink, StructlogAuditSink
from planning_ai.execution.pipeline import AIRequest, AIRequestPipeline
from planning_ai.observability.logging import configure_logging, shutdown_logging
from planning_ai.providers.anthropic_adapter import AnthropicAdapter
from planning_ai.providers.registry import ProviderAdapterCache
from planning_ai.routing.store import load_route_config

_MODEL_OUTPUT = "Suggested tasks:\n1. Draft homepage copy\n2. Review nav layout\n3. Sign off"


@dataclass(slots=True)
class _ScriptedMessages:
    outcomes: deque[object]
    calls: list[dict[str, object]] = field(default_factory=list)

    async def create(self, **kwargs: object) -> object:
        self.calls.append(dict(kwargs))
        return self.outcomes.popleft()


@dataclass(slots=True)
class _FakeAnthropicClient:
    messages: _ScriptedMessages


def _message(text: str) -> dict[str, object]:
    return {
        "model": "claude-3-5-sonnet-20241022",
        "content": [{"type": "text", "text": text}],
        "stop_reason": "end_turn",
        "usage": {"input_tokens": 640, "output_tokens": 48},
    }


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()
    structlog.reset_defaults()


@pytest.mark.integration
def test_draft_request_through_review_and_application(planning_store, fixed_clock, tmp_path):
    config_file = tmp_path / "planning_ai.toml"
    config_file.write_text(
        "[context]\ncollaboration_window_days = 14\n\n[observability]\nlog_dir = \"logs\"\n",
        encoding="utf-8",
    )
    config = load_config(config_file, environ={})
    stream = io.StringIO()
    name = f"planning_ai_it_{uuid4().hex}"
    handle = configure_logging(config["observability"], stream=stream, logger_name=name)
    logger = structlog.get_logger(f"{name}.pipeline")

    client = _FakeAnthropicClient(messages=_ScriptedMessages(deque([_message(_MODEL_OUTPUT)])))
    adapters = ProviderAdapterCache(
        {"anthropic": lambda: AnthropicAdapter(client=client, logger=logger)}, logger=logger
    )
    audit = InMemoryAuditSink()
    counter = itertools.count(1)
    pipeline = AIRequestPipeline(
        planning_store,
        load_route_config(),
        adapters,
        audit,
        InMemoryDraftStore(),
        config=config,
        clock=fixed_clock,
        id_factory=lambda: f"draft-{next(counter)}",
        logger=logger,
    )

    result = asyncio.run(
        pipeline.execute(
            AIRequest(
                user_id="user-1",
                prompt="Break @wireframes into tasks for @design",
                surface=ChatSurface.project("proj-1"),
                scope=ContextScope(project_id="proj-1"),
                intent=Intent.DRAFT_TASK_LIST,
                draft_type=DraftType.TASK_LIST,
                conversation_id="conv-7",
                request_id="req-int-1",
            )
        )
    )
    handle.flush()

    assert isinstance(result, Ok)
    envelope = result.value
    assert envelope.route_id == "route-draft-generation"
    assert envelope.response.usage.total_tokens == 688
    assert envelope.tag_summary == "Resolved: 1 roadmap_item(s), 1 track(s)"

    (call,) = client.messages.calls
    assert call["model"] == "claude-3-5-sonnet-20241022"
    assert call["max_tokens"] == 4096
    assert "Wireframes" in str(call["system"])

    draft = envelope.draft
    assert draft is not None
    assert draft.id == "draft-1"
    assert draft.element_count() == 3

    edited = pipeline.drafts.edit(
        draft.id,
        "user-1",
        {"text": draft.content["text"], "items": [{"title": "Draft homepage copy"}]},
        title="Homepage tasks",
    )
    assert isinstance(edited, Ok)
    assert edited.value.status is DraftStatus.EDITED

    partial = pipeline.drafts.apply_partial(
        draft.id, "user-1", element_indices=[0], created_entity_ids=["task-9"]
    )
    assert isinstance(partial, Ok)
    assert partial.value.status is DraftStatus.PARTIALLY_APPLIED
    assert partial.value.applied_elements == (0,)

    accepted = pipeline.drafts.apply(draft.id, "user-1", created_entity_ids=["task-9"])
    assert isinstance(accepted, Ok)
    assert accepted.value.status is DraftStatus.ACCEPTED
    assert accepted.value.applied_entity_ids == ("task-9",)

    again = pipeline.drafts.discard(draft.id, "user-1")
    assert isinstance(again, Err)
    assert again.kind is ErrorKind.DRAFT_FINALIZED

    stranger = pipeline.drafts.get(draft.id, "user-2")
    assert isinstance(stranger, Err)
    assert stranger.kind is ErrorKind.NOT_FOUND

    (record,) = audit.records
    assert record.success is True
    assert record.input_tokens == 640
    assert record.context_hash == envelope.context_hash

    assert handle.log_path == tmp_path / "logs" / "planning_ai.jsonl"
    assert handle.log_path.read_text(encoding="utf-8") == stream.getvalue()

    raw = stream.getvalue()
    assert "Break @wireframes" not in raw
    assert "Draft homepage copy" not in raw
    entries = [json.loads(line) for line in raw.splitlines() if line.strip()]
    resolved = [entry for entry in entries if entry["event"] == "route_resolved"]
    assert resolved and resolved[0]["request_id"] == "req-int-1"
    assert resolved[0]["conversation_id"] == "conv-7"


@pytest.mark.integration
def test_audit_events_reach_json_log(planning_store, fixed_clock):
    stream = io.StringIO()
    name = f"planning_ai_it_{uuid4().hex}"
    handle = configure_logging({"log_level": "INFO"}, stream=stream, logger_name=name)
    logger = structlog.get_logger(f"{name}.pipeline")

    client = _FakeAnthropicClient(messages=_ScriptedMessages(deque([_message("All on track.")])))
    pipeline = AIRequestPipeline(
        planning_store,
        load_route_config(),
        ProviderAdapterCache({"anthropic": lambda: AnthropicAdapter(client=client)}),
        StructlogAuditSink(logger=logger),
        InMemoryDraftStore(),
        clock=fixed_clock,
        logger=logger,
    )

    ok = asyncio.run(
        pipeline.execute(
            AIRequest(
                user_id="user-1",
                prompt="How is the project going?",
                surface=ChatSurface.project("proj-1"),
                scope=ContextScope(project_id="proj-1"),
                intent=Intent.SUMMARIZE,
                request_id="req-ok",
            )
        )
    )
    denied = asyncio.run(
        pipeline.execute(
            AIRequest(
                user_id="user-1",
                prompt="And the hiring plan?",
                surface=ChatSurface.project("proj-2"),
                scope=ContextScope(project_id="proj-2"),
                request_id="req-denied",
            )
        )
    )
    handle.flush()

    assert isinstance(ok, Ok)
    assert isinstance(denied, Err)
    assert denied.kind is ErrorKind.PERMISSION_DENIED
    assert len(client.messages.calls) == 1

    entries = [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]
    audits = {
        entry["request_id"]: entry["fields"]
        for entry in entries
        if entry["event"] == "ai_request_audit"
    }
    assert audits["req-ok"]["success"] is True
    assert audits["req-ok"]["route_id"] == "route-project-summary"
    assert audits["req-ok"]["output_tokens"] == 48
    assert audits["req-denied"]["success"] is False
    assert audits["req-denied"]["error_kind"] == "permission_denied"
    assert audits["req-denied"]["provider"] is None
    assert "How is the project going?" not in stream.getvalue()
