"""
planning-ai-core — unit tests for the AI request pipeline

File: tests/unit/execution/test_pipeline.py
Last updated: 2026-10-19

Purpose
- Drive ``AIRequestPipeline.execute`` against the seeded store and a scripted adapter.

What this test file should cover
- Success path: routing, rendered system prompt, envelope and audit entry.
- Guard failures abort before the provider is called and are still audited.
- Provider failures are returned as ``Err`` without retries.
- Budget violations are reported, or fatal under the strict setting.
- Drafts are created from model output when requested, on every surface type.
- A project surface pins the scope when the caller leaves it empty.
- Bound conversations refuse a surface switch.
- Prompt and response text never reach the logs.
"""

from __future__ import annotations

import asyncio
import itertools
from collections import deque
from dataclasses import dataclass, field

import pytest

from planning_ai.config.schema import default_config, merge_config
from planning_ai.context_plane.budgets import Intent
from planning_ai.domain.drafts import DraftStatus, DraftType
from planning_ai.domain.scope import ChatSurface, ContextScope
from planning_ai.drafts.store import InMemoryDraftStore
from planning_ai.errors import Err, ErrorKind, Ok, RateLimitError, ValidationError
from planning_ai.execution.audit import InMemoryAuditSink
from planning_ai.execution.pipeline import (
    SYSTEM_PREAMBLE,
    AIRequest,
    AIRequestPipeline,
    draft_content,
)
from planning_ai.policy.conversations import ConversationBinding
from planning_ai.providers.base import (
    ProviderMessage,
    ProviderRequest,
    ProviderResponse,
    ProviderUsage,
)
from planning_ai.providers.registry import ProviderAdapterCache
from planning_ai.routing.models import (
    AIFeatureRoute,
    AIProvider,
    ProviderModel,
    RouteConstraints,
)
from planning_ai.routing.store import InMemoryRouteStore, load_route_config


@dataclass(slots=True)
class _ScriptedAdapter:
    outcomes: deque[object]
    provider_name: str = "anthropic"
    requests: list[ProviderRequest] = field(default_factory=list)

    async def generate(self, request: ProviderRequest) -> ProviderResponse:
        self.requests.append(request)
        outcome = self.outcomes.popleft()
        if isinstance(outcome, Exception):
            raise outcome
        return ProviderResponse(
            text=str(outcome),
            provider=self.provider_name,
            model_key=request.model_key,
            usage=ProviderUsage(input_tokens=50, output_tokens=20),
            latency_ms=15,
            finish_reason="stop",
        )


class _BrokenSink:
    def record(self, record: object) -> None:
        raise OSError("audit table unavailable")


@dataclass(slots=True)
class _Harness:
    pipeline: AIRequestPipeline
    adapter: _ScriptedAdapter
    audit: InMemoryAuditSink


def _harness(
    planning_store,
    recording_logger,
    fixed_clock,
    *outcomes: object,
    route_store: InMemoryRouteStore | None = None,
    config: dict[str, object] | None = None,
    audit_sink: object | None = None,
    conversations: object | None = None,
) -> _Harness:
    adapter = _ScriptedAdapter(deque(outcomes))
    audit = InMemoryAuditSink()
    counter = itertools.count()
    pipeline = AIRequestPipeline(
        planning_store,
        route_store if route_store is not None else load_route_config(),
        ProviderAdapterCache({"anthropic": lambda: adapter}, logger=recording_logger),
        audit_sink if audit_sink is not None else audit,  # type: ignore[arg-type]
        InMemoryDraftStore(),
        config=config,
        conversations=conversations,  # type: ignore[arg-type]
        clock=fixed_clock,
        id_factory=lambda: f"id-{next(counter)}",
        logger=recording_logger,
    )
    return _Harness(pipeline=pipeline, adapter=adapter, audit=audit)


def _tiny_route_store() -> InMemoryRouteStore:
    return InMemoryRouteStore(
        providers=[AIProvider(id="anthropic", name="anthropic")],
        models=[
            ProviderModel(
                id="tiny", provider_id="anthropic", model_key="claude-tiny", display_name="Tiny"
            )
        ],
        routes=[
            AIFeatureRoute(
                id="route-tiny",
                feature_key="ai_chat",
                provider_model_id="tiny",
                constraints=RouteConstraints(max_context_tokens=10),
            )
        ],
    )


def _project_request(prompt: str, **changes: object) -> AIRequest:
    values: dict[str, object] = {
        "user_id": "user-1",
        "prompt": prompt,
        "surface": ChatSurface.project("proj-1"),
        "scope": ContextScope(project_id="proj-1"),
        "intent": Intent.SUMMARIZE,
        "conversation_id": "conv-1",
    }
    values.update(changes)
    return AIRequest(**values)  # type: ignore[arg-type]


@pytest.mark.unit
def test_successful_request_builds_envelope_and_audit(
    planning_store, recording_logger, fixed_clock, now
) -> None:
    harness = _harness(
        planning_store, recording_logger, fixed_clock, "Three things moved this week."
    )
    request = _project_request(
        "Summarize progress on @design",
        history=(ProviderMessage(role="user", content="Earlier question"),),
    )

    result = asyncio.run(harness.pipeline.execute(request))

    assert isinstance(result, Ok)
    envelope = result.value
    assert envelope.request_id == "id-0"
    assert envelope.text == "Three things moved this week."
    assert envelope.route_id == "route-project-summary"
    assert envelope.feature_key == "project_summary"
    assert envelope.provider == "anthropic"
    assert envelope.budget_violations == ()
    assert envelope.tag_summary.startswith("Resolved: 1 track(s)")
    assert envelope.draft is None

    (provider_request,) = harness.adapter.requests
    assert provider_request.model_key == "claude-3-5-sonnet-20241022"
    assert provider_request.max_tokens == 2048
    assert provider_request.user_prompt == "Summarize progress on @design"
    assert provider_request.messages == request.history
    assert provider_request.system_prompt is not None
    assert provider_request.system_prompt.startswith(SYSTEM_PREAMBLE)
    assert "Website Relaunch" in provider_request.system_prompt
    assert "Design" in provider_request.system_prompt
    assert "Referenced Entities:" in provider_request.system_prompt

    (record,) = harness.audit.records
    assert record.success is True
    assert record.route_id == "route-project-summary"
    assert record.input_tokens == 50
    assert record.output_tokens == 20
    assert record.latency_ms == 15
    assert record.context_hash == envelope.context_hash
    assert record.conversation_id == "conv-1"
    assert record.created_at == now

    logged = repr(recording_logger.entries)
    assert "Summarize progress on @design" not in logged
    assert "Three things moved this week." not in logged


@pytest.mark.unit
def test_missing_surface_is_rejected_before_any_provider_call(
    planning_store, recording_logger, fixed_clock
) -> None:
    harness = _harness(planning_store, recording_logger, fixed_clock, "unused")

    result = asyncio.run(harness.pipeline.execute(_project_request("Hello", surface=None)))

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.INVARIANT_VIOLATION
    assert harness.adapter.requests == []
    (record,) = harness.audit.records
    assert record.success is False
    assert record.error_kind == "invariant_violation"
    assert record.provider is None


@pytest.mark.unit
def test_personal_surface_cannot_reach_project_data(
    planning_store, recording_logger, fixed_clock
) -> None:
    harness = _harness(planning_store, recording_logger, fixed_clock, "unused")

    result = asyncio.run(
        harness.pipeline.execute(_project_request("Hello", surface=ChatSurface.personal()))
    )

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.SURFACE_SCOPE_VIOLATION
    assert result.retryable is False
    assert harness.adapter.requests == []


@pytest.mark.unit
def test_non_member_is_denied(planning_store, recording_logger, fixed_clock) -> None:
    harness = _harness(planning_store, recording_logger, fixed_clock, "unused")

    result = asyncio.run(harness.pipeline.execute(_project_request("Hello", user_id="user-2")))

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.PERMISSION_DENIED
    assert harness.adapter.requests == []
    assert harness.audit.records[0].user_id == "user-2"


@pytest.mark.unit
def test_provider_errors_are_returned_without_retry(
    planning_store, recording_logger, fixed_clock
) -> None:
    harness = _harness(
        planning_store,
        recording_logger,
        fixed_clock,
        RateLimitError("anthropic", "slow down"),
        "never reached",
    )

    result = asyncio.run(
        harness.pipeline.execute(_project_request("Hello", intent=Intent.GENERAL_CHAT))
    )

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.RATE_LIMITED
    assert result.retryable is True
    assert len(harness.adapter.requests) == 1
    (record,) = harness.audit.records
    assert record.route_id == "route-ai-chat"
    assert record.error_kind == "rate_limited"
    assert record.input_tokens == 0
    assert recording_logger.first("ai_request_failed")["kind"] == "rate_limited"


@pytest.mark.unit
def test_provider_disabled_by_config(planning_store, recording_logger, fixed_clock) -> None:
    config = merge_config(default_config(), {"providers": {"anthropic": {"enabled": False}}})
    harness = _harness(planning_store, recording_logger, fixed_clock, "unused", config=config)

    result = asyncio.run(harness.pipeline.execute(_project_request("Hello")))

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.PROVIDER_NOT_CONFIGURED
    assert result.user_message == "This AI provider is currently disabled"
    assert harness.adapter.requests == []


@pytest.mark.unit
def test_provider_disabled_in_registry_blocks_default_route(
    planning_store, recording_logger, fixed_clock
) -> None:
    route_store = InMemoryRouteStore(
        providers=[AIProvider(id="anthropic", name="anthropic", is_enabled=False)]
    )
    harness = _harness(
        planning_store, recording_logger, fixed_clock, "unused", route_store=route_store
    )

    result = asyncio.run(harness.pipeline.execute(_project_request("Hello")))

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.PROVIDER_NOT_CONFIGURED
    assert harness.audit.records[0].route_id is None


@pytest.mark.unit
def test_unrouted_feature_uses_default_route(
    planning_store, recording_logger, fixed_clock
) -> None:
    harness = _harness(planning_store, recording_logger, fixed_clock, "Two deadlines this week.")

    result = asyncio.run(
        harness.pipeline.execute(_project_request("Deadlines?", intent=Intent.ANALYZE_DEADLINES))
    )

    assert isinstance(result, Ok)
    assert result.value.route_id is None
    assert result.value.feature_key == "deadline_analysis"
    assert harness.adapter.requests[0].max_tokens == 8192


@pytest.mark.unit
def test_context_window_violation_is_reported(
    planning_store, recording_logger, fixed_clock
) -> None:
    harness = _harness(
        planning_store,
        recording_logger,
        fixed_clock,
        "ok",
        route_store=_tiny_route_store(),
    )

    result = asyncio.run(
        harness.pipeline.execute(_project_request("Hello", intent=Intent.GENERAL_CHAT))
    )

    assert isinstance(result, Ok)
    (violation,) = result.value.budget_violations
    assert violation.endswith("exceeds route limit of 10")
    route_checks = [
        fields
        for _, event, fields in recording_logger.entries
        if event == "context_budget_violation" and "limit_tokens" in fields
    ]
    assert route_checks[0]["route_id"] == "route-tiny"
    assert route_checks[0]["limit_tokens"] == 10


@pytest.mark.unit
def test_context_window_violation_is_fatal_when_strict(
    planning_store, recording_logger, fixed_clock
) -> None:
    config = merge_config(default_config(), {"context": {"fail_on_budget_violation": True}})
    harness = _harness(
        planning_store,
        recording_logger,
        fixed_clock,
        "unused",
        route_store=_tiny_route_store(),
        config=config,
    )

    result = asyncio.run(
        harness.pipeline.execute(_project_request("Hello", intent=Intent.GENERAL_CHAT))
    )

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.BUDGET_EXCEEDED
    assert harness.adapter.requests == []
    assert harness.audit.records[0].route_id == "route-tiny"


@pytest.mark.unit
def test_draft_is_created_from_model_output(
    planning_store, recording_logger, fixed_clock
) -> None:
    harness = _harness(
        planning_store,
        recording_logger,
        fixed_clock,
        "Here is a plan:\n- Write copy\n2. Review layout",
    )

    result = asyncio.run(
        harness.pipeline.execute(
            _project_request(
                "Turn @wireframes into tasks",
                intent=Intent.DRAFT_TASK_LIST,
                draft_type=DraftType.TASK_LIST,
            )
        )
    )

    assert isinstance(result, Ok)
    draft = result.value.draft
    assert draft is not None
    assert draft.id == "id-1"
    assert draft.title == "Task list"
    assert draft.status is DraftStatus.GENERATED
    assert draft.project_id == "proj-1"
    assert draft.content["items"] == [{"title": "Write copy"}, {"title": "Review layout"}]
    assert draft.provenance is not None
    assert draft.provenance.context_hash == result.value.context_hash
    assert draft.provenance.context_snapshot["route_id"] == "route-draft-generation"
    assert ("roadmap_item", "item-wireframes") in zip(
        draft.provenance.source_entity_types, draft.provenance.source_entity_ids
    )
    assert harness.pipeline.drafts.get("id-1", "user-1") == Ok(draft)


@pytest.mark.unit
def test_personal_surface_draft_can_be_applied(
    planning_store, recording_logger, fixed_clock
) -> None:
    harness = _harness(
        planning_store, recording_logger, fixed_clock, "- Block focus time\n- Review inbox"
    )

    result = asyncio.run(
        harness.pipeline.execute(
            AIRequest(
                user_id="user-1",
                prompt="plan my week",
                surface=ChatSurface.personal(),
                intent=Intent.DRAFT_TASK_LIST,
                draft_type=DraftType.TASK_LIST,
                conversation_id="conv-p",
            )
        )
    )

    assert isinstance(result, Ok)
    draft = result.value.draft
    assert draft is not None
    assert draft.project_id is None
    assert draft.provenance is not None
    assert draft.provenance.source_entity_types == ("conversation", "ai_request")
    assert draft.provenance.source_entity_ids == ("conv-p", "id-0")
    assert draft.provenance.context_snapshot["surface_type"] == "personal"

    applied = harness.pipeline.drafts.apply_partial("id-1", "user-1", element_indices=[0])

    assert isinstance(applied, Ok)
    assert applied.value.status is DraftStatus.PARTIALLY_APPLIED
    assert applied.value.applied_elements == (0,)


@pytest.mark.unit
def test_project_surface_fills_an_empty_scope(
    planning_store, recording_logger, fixed_clock
) -> None:
    harness = _harness(planning_store, recording_logger, fixed_clock, "Design is on track.")

    result = asyncio.run(
        harness.pipeline.execute(
            AIRequest(
                user_id="user-1",
                prompt="update @design",
                surface=ChatSurface.project("proj-1"),
            )
        )
    )

    assert isinstance(result, Ok)
    assert result.value.unresolved_tags == ()
    assert result.value.tag_summary.startswith("Resolved: 1 track(s)")
    (provider_request,) = harness.adapter.requests
    assert provider_request.system_prompt is not None
    assert "Website Relaunch" in provider_request.system_prompt
    (record,) = harness.audit.records
    assert record.project_id == "proj-1"


@pytest.mark.unit
def test_conversation_surface_switch_is_refused(
    planning_store, recording_logger, fixed_clock
) -> None:
    planning_store.add_conversation(
        ConversationBinding("conv-1", "user-1", ChatSurface.personal())
    )
    harness = _harness(
        planning_store, recording_logger, fixed_clock, "unused", conversations=planning_store
    )

    result = asyncio.run(harness.pipeline.execute(_project_request("Hello")))

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.INVARIANT_VIOLATION
    assert harness.adapter.requests == []
    assert harness.audit.records[0].success is False


@pytest.mark.unit
def test_conversation_on_the_same_surface_is_accepted(
    planning_store, recording_logger, fixed_clock
) -> None:
    planning_store.add_conversation(
        ConversationBinding("conv-1", "user-1", ChatSurface.project("proj-1"))
    )
    harness = _harness(
        planning_store, recording_logger, fixed_clock, "All good.", conversations=planning_store
    )

    result = asyncio.run(harness.pipeline.execute(_project_request("Hello")))

    assert isinstance(result, Ok)
    assert len(harness.adapter.requests) == 1


@pytest.mark.unit
@pytest.mark.parametrize("owner", ["user-2", None])
def test_unknown_or_foreign_conversation_is_not_found(
    planning_store, recording_logger, fixed_clock, owner
) -> None:
    if owner is not None:
        planning_store.add_conversation(
            ConversationBinding("conv-1", owner, ChatSurface.project("proj-1"))
        )
    harness = _harness(
        planning_store, recording_logger, fixed_clock, "unused", conversations=planning_store
    )

    result = asyncio.run(harness.pipeline.execute(_project_request("Hello")))

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.NOT_FOUND
    assert harness.adapter.requests == []


@pytest.mark.unit
def test_audit_failure_does_not_change_outcome(
    planning_store, recording_logger, fixed_clock
) -> None:
    harness = _harness(
        planning_store, recording_logger, fixed_clock, "fine", audit_sink=_BrokenSink()
    )

    result = asyncio.run(harness.pipeline.execute(_project_request("Hello")))

    assert isinstance(result, Ok)
    assert recording_logger.first("audit_write_failed")["error_type"] == "OSError"


@pytest.mark.unit
def test_request_validation() -> None:
    with pytest.raises(ValidationError):
        AIRequest(user_id="user-1", prompt="   ", surface=ChatSurface.personal())

    request = AIRequest(
        user_id="user-1", prompt="hi", surface=ChatSurface.personal(), intent="summarize"
    )
    assert request.intent is Intent.SUMMARIZE
    assert request.effective_feature_key == "project_summary"
    assert (
        AIRequest(
            user_id="user-1",
            prompt="hi",
            surface=ChatSurface.personal(),
            feature_key="spaces_notes_assist",
        ).effective_feature_key
        == "spaces_notes_assist"
    )


@pytest.mark.unit
def test_draft_content_extracts_list_items() -> None:
    content = draft_content("Intro\n* First\n  - Second\n3) Third\n-not a bullet\n")

    assert content["text"].startswith("Intro")
    assert content["items"] == [{"title": "First"}, {"title": "Second"}, {"title": "Third"}]
    assert draft_content("No list here")["items"] == []
