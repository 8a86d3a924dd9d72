"""
planning-ai-core — AI request pipeline

File: src/planning_ai/execution/pipeline.py
Last updated: 2026-10-19

Purpose
- Drive one AI request end to end: tags, scope, surface isolation, bounded context,
  routing, rendering, the provider call, the audit entry and an optional draft.

What should be included in this file
- ``AIRequest`` and ``AIResponseEnvelope`` value types.
- ``AIRequestPipeline.execute`` returning ``Ok(envelope)`` or ``Err``.

Functional requirements
- Permission and surface violations abort before any provider call.
- A project surface pins an unset scope project; a bound conversation must stay on its
  surface.
- Budget violations are reported on the envelope; they abort only when configured to.
- Every request that reaches routing is audited, success or failure; audit failures
  never change the outcome.
- Model output is only ever stored as a ``generated`` draft, never applied.
- Drafts without project entities cite the conversation and request as their sources.

Non-functional requirements
- Prompt and response text never reach the logs or the audit trail.
- The pipeline never retries; retryability is reported on the returned ``Err``.
"""

from __future__ import annotations

import re
import time
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Final, Protocol

import structlog

from planning_ai.config.schema import default_config
from planning_ai.context_plane.assembler import (
    AssembledContext,
    ContextAssembler,
    ContextDataLookup,
)
from planning_ai.context_plane.budgets import Intent, get_budget_for_intent
from planning_ai.context_plane.rendering import ContextRenderer
from planning_ai.domain.drafts import AIDraft, DraftProvenance, DraftType
from planning_ai.domain.scope import ChatSurface, ContextScope, SurfaceType
from planning_ai.drafts.store import DraftService, DraftStore
from planning_ai.errors import (
    BudgetExceededError,
    Err,
    FieldError,
    NotFoundError,
    Ok,
    PlanningAIError,
    ProviderNotConfiguredError,
    Result,
    ValidationError,
)
from planning_ai.execution.audit import AuditRecord, AuditSink, record_audit_safely
from planning_ai.observability.logging import correlation_scope
from planning_ai.policy.conversations import ConversationLookup, validate_conversation_surface
from planning_ai.policy.invariants import (
    DEFAULT_POLICY,
    InvariantPolicy,
    assert_chat_surface_required,
    assert_no_global_chat,
)
from planning_ai.providers.base import (
    ProviderMessage,
    ProviderRequest,
    ProviderResponse,
    ReasoningLevel,
)
from planning_ai.providers.registry import ProviderAdapterCache
from planning_ai.routing.intents import feature_for_intent
from planning_ai.routing.models import FeatureKey, ResolvedRoute
from planning_ai.routing.resolver import RouteRequest, RouteResolver
from planning_ai.routing.store import RouteConfigStore
from planning_ai.tagging.enrichment import (
    EnrichedContext,
    TagContextLookup,
    augment_scope_with_tags,
    enrich_context_with_tags,
    format_tag_context,
)
from planning_ai.utils.validation import (
    utc_now,
    validate_non_empty_str,
    validate_optional_str,
)

SYSTEM_PREAMBLE: Final[str] = (
    "You are a planning assistant. Use only the context below. "
    "Your output is advisory: anything you propose is saved as a draft for the user "
    "to review, and nothing is changed until they apply it."
)
# Rough chars-per-token ratio used to check rendered context against route limits.
CHARS_PER_TOKEN: Final[int] = 4

_LIST_ITEM = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+(?P<text>\S.*)$")

Clock = Callable[[], datetime]


class PlanningLookup(ContextDataLookup, TagContextLookup, Protocol):
    """Everything the pipeline reads; ``InMemoryPlanningStore`` implements it."""


@dataclass(frozen=True, slots=True)
class AIRequest:
    user_id: str
    prompt: str
    surface: ChatSurface | None
    scope: ContextScope = field(default_factory=ContextScope)
    intent: Intent | None = None
    feature_key: FeatureKey | str | None = None
    conversation_id: str | None = None
    history: tuple[ProviderMessage, ...] = ()
    reasoning_level: ReasoningLevel | None = None
    draft_type: DraftType | None = None
    draft_title: str | None = None
    request_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "user_id", validate_non_empty_str(self.user_id, "AIRequest.user_id")
        )
        if not isinstance(self.prompt, str) or not self.prompt.strip():
            raise ValidationError(
                "Prompt must not be empty", [FieldError("prompt", "must not be empty")]
            )
        if self.intent is not None:
            object.__setattr__(self, "intent", Intent(self.intent))
        if self.draft_type is not None:
            object.__setattr__(self, "draft_type", DraftType(self.draft_type))
        if self.reasoning_level is not None:
            object.__setattr__(self, "reasoning_level", ReasoningLevel(self.reasoning_level))
        object.__setattr__(self, "history", tuple(self.history))
        object.__setattr__(
            self,
            "conversation_id",
            validate_optional_str(self.conversation_id, "AIRequest.conversation_id"),
        )

    @property
    def effective_feature_key(self) -> str:
        if self.feature_key is not None:
            return str(self.feature_key)
        return feature_for_intent(self.intent).value


@dataclass(frozen=True, slots=True)
class AIResponseEnvelope:
    request_id: str
    text: str
    provider: str
    model_key: str
    route_id: str | None
    feature_key: str
    response: ProviderResponse
    context_hash: str
    budget_violations: tuple[str, ...] = ()
    tag_summary: str = ""
    unresolved_tags: tuple[str, ...] = ()
    ambiguous_tags: tuple[str, ...] = ()
    draft: AIDraft | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "request_id": self.request_id,
            "text": self.text,
            "provider": self.provider,
            "model_key": self.model_key,
            "route_id": self.route_id,
            "feature_key": self.feature_key,
            "response": self.response.to_dict(),
            "context_hash": self.context_hash,
            "budget_violations": list(self.budget_violations),
            "tag_summary": self.tag_summary,
            "unresolved_tags": list(self.unresolved_tags),
            "ambiguous_tags": list(self.ambiguous_tags),
            "draft": None if self.draft is None else self.draft.to_dict(),
        }


@dataclass(slots=True)
class _Trace:
    """Facts gathered while a request runs; feeds the audit record."""

    request_id: str
    feature_key: str
    scope: ContextScope
    route: ResolvedRoute | None = None
    context: AssembledContext | None = None
    enriched: EnrichedContext | None = None
    response: ProviderResponse | None = None
    latency_ms: int = 0
    budget_violations: list[str] = field(default_factory=list)


class AIRequestPipeline:
    """Orchestrates one request across tagging, context, routing and providers."""

    def __init__(
        self,
        lookup: PlanningLookup,
        route_store: RouteConfigStore,
        adapters: ProviderAdapterCache,
        audit_sink: AuditSink,
        drafts: DraftStore,
        *,
        config: Mapping[str, Any] | None = None,
        policy: InvariantPolicy = DEFAULT_POLICY,
        clock: Clock = utc_now,
        renderer: ContextRenderer | None = None,
        id_factory: Callable[[], str] | None = None,
        conversations: ConversationLookup | None = None,
        logger: Any | None = None,
    ) -> None:
        self._config: Mapping[str, Any] = config if config is not None else default_config()
        self._lookup = lookup
        self._route_store = route_store
        self._adapters = adapters
        self._audit_sink = audit_sink
        self._policy = policy
        self._clock = clock
        self._renderer = renderer if renderer is not None else ContextRenderer()
        self._id_factory = id_factory if id_factory is not None else _uuid4_hex
        self._conversations = conversations
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

        context_cfg = self._config["context"]
        self._fail_on_budget_violation = bool(context_cfg["fail_on_budget_violation"])
        self._assembler = ContextAssembler(
            lookup,
            policy=policy,
            clock=clock,
            fail_on_budget_violation=self._fail_on_budget_violation,
            collaboration_window_days=int(context_cfg["collaboration_window_days"]),
            logger=self._logger,
        )
        self._router = RouteResolver(route_store, logger=self._logger)
        self._drafts = DraftService(drafts, policy=policy, clock=clock, logger=self._logger)

    @property
    def drafts(self) -> DraftService:
        return self._drafts

    async def execute(self, request: AIRequest) -> Result[AIResponseEnvelope]:
        trace = _Trace(
            request_id=request.request_id or self._id_factory(),
            feature_key=request.effective_feature_key,
            scope=_surface_bound_scope(request),
        )
        with correlation_scope(
            request_id=trace.request_id,
            user_id=request.user_id,
            conversation_id=request.conversation_id,
            project_id=trace.scope.project_id,
        ):
            try:
                await self._generate(request, trace)
            except PlanningAIError as exc:
                self._log_failure(exc, trace)
                self._audit(request, trace, error=exc)
                return Err.from_exception(exc)

            self._audit(request, trace, error=None)
            draft: AIDraft | None = None
            if request.draft_type is not None:
                created = self._create_draft(request, trace)
                if isinstance(created, Err):
                    self._logger.warning(
                        "ai_request_failed",
                        stage="draft",
                        kind=created.kind.value,
                        feature_key=trace.feature_key,
                    )
                    return created
                draft = created.value
            return Ok(self._envelope(trace, draft))

    async def _generate(self, request: AIRequest, trace: _Trace) -> None:
        surface = request.surface
        assert_no_global_chat(surface, policy=self._policy, logger=self._logger)
        assert_chat_surface_required(
            request.conversation_id or trace.request_id,
            surface,
            policy=self._policy,
            logger=self._logger,
        )
        assert surface is not None
        self._check_conversation(request, surface)

        # 1-2: tags widen the scope before surface checks see it.
        tags_cfg = self._config["tags"]
        enriched = enrich_context_with_tags(
            request.prompt,
            trace.scope,
            request.user_id,
            self._lookup,
            get_budget_for_intent(request.intent),
            allow_system_entities=bool(tags_cfg["allow_system_entities"]),
            allow_shared_tracks=bool(tags_cfg["allow_shared_tracks"]),
            logger=self._logger,
        )
        trace.enriched = enriched
        scope = augment_scope_with_tags(trace.scope, enriched)

        # 3-4: surface isolation, then bounded assembly.
        context = self._assembler.assemble_for_surface(
            scope, request.user_id, surface, request.intent
        )
        trace.context = context
        trace.budget_violations.extend(context.budget_violations)

        # 5-6: routing and provider availability.
        route = self._router.resolve(
            RouteRequest(
                feature_key=trace.feature_key,
                intent=None if request.intent is None else request.intent.value,
                surface_type=surface.surface_type,
                project_id=surface.project_id,
            )
        )
        trace.route = route
        self._check_provider_enabled(route)

        # 7: render.
        tag_block = format_tag_context(enriched) if enriched.has_tags else None
        rendered = self._renderer.render(context, tag_block)
        system_prompt = f"{SYSTEM_PREAMBLE}\n\n{rendered.text}"
        self._check_context_window(route, system_prompt, trace)

        # 8: provider call.
        adapter = self._adapters.get(route.provider)
        started = time.perf_counter()
        response = await adapter.generate(
            ProviderRequest(
                model_key=route.model_key,
                user_prompt=request.prompt,
                system_prompt=system_prompt,
                messages=request.history,
                max_tokens=route.effective_max_output_tokens,
                reasoning_level=request.reasoning_level,
                metadata={"feature_key": trace.feature_key, "route_id": route.route_id},
            )
        )
        trace.response = response
        trace.latency_ms = response.latency_ms or int((time.perf_counter() - started) * 1000)

    def _check_conversation(self, request: AIRequest, surface: ChatSurface) -> None:
        if request.conversation_id is None or self._conversations is None:
            return
        binding = self._conversations.get_conversation(request.conversation_id)
        # Another user's conversation is reported exactly like a missing one.
        if binding is None or binding.user_id != request.user_id:
            raise NotFoundError("conversation", request.conversation_id)
        validate_conversation_surface(binding, surface, policy=self._policy, logger=self._logger)

    def _check_provider_enabled(self, route: ResolvedRoute) -> None:
        provider_cfg = self._config["providers"].get(route.provider)
        if provider_cfg is not None and not provider_cfg.get("enabled", True):
            raise ProviderNotConfiguredError(
                route.provider, f"provider {route.provider} is disabled by configuration"
            )
        for provider in self._route_store.list_providers():
            if provider.name == route.provider and not provider.is_enabled:
                raise ProviderNotConfiguredError(
                    route.provider, f"provider {route.provider} is disabled"
                )

    def _check_context_window(
        self, route: ResolvedRoute, system_prompt: str, trace: _Trace
    ) -> None:
        limit = route.constraints.max_context_tokens
        if limit is None:
            limit = route.context_window_tokens
        estimated = len(system_prompt) // CHARS_PER_TOKEN
        if estimated <= limit:
            return
        violation = f"Rendered context ~{estimated} tokens exceeds route limit of {limit}"
        self._logger.warning(
            "context_budget_violation",
            route_id=route.route_id,
            estimated_tokens=estimated,
            limit_tokens=limit,
        )
        if self._fail_on_budget_violation:
            raise BudgetExceededError([*trace.budget_violations, violation])
        trace.budget_violations.append(violation)

    def _create_draft(self, request: AIRequest, trace: _Trace) -> Result[AIDraft]:
        assert request.draft_type is not None
        assert trace.context is not None and trace.response is not None
        context = trace.context
        surface = request.surface
        sources = context.source_entities()
        if not sources:
            # Personal and shared surfaces have no project entities to point at.
            fallback = [("ai_request", trace.request_id)]
            if request.conversation_id is not None:
                fallback.insert(0, ("conversation", request.conversation_id))
            sources = tuple(fallback)
        now = self._clock()
        provenance = DraftProvenance(
            source_entity_ids=tuple(entity_id for _, entity_id in sources),
            source_entity_types=tuple(entity_type for entity_type, _ in sources),
            context_snapshot={
                "feature_key": trace.feature_key,
                "intent": None if request.intent is None else request.intent.value,
                "route_id": None if trace.route is None else trace.route.route_id,
                "model_key": trace.response.model_key,
                "budget_violations": list(trace.budget_violations),
                "surface_type": None if surface is None else surface.surface_type.value,
            },
            generated_at=now,
            context_hash=context.context_hash,
        )
        return self._drafts.create(
            draft_id=self._id_factory(),
            user_id=request.user_id,
            draft_type=request.draft_type,
            title=request.draft_title or _default_draft_title(request.draft_type),
            content=draft_content(trace.response.text),
            context_scope=context.scope,
            provenance=provenance,
            project_id=context.scope.project_id,
        )

    def _envelope(self, trace: _Trace, draft: AIDraft | None) -> AIResponseEnvelope:
        assert trace.route is not None and trace.response is not None
        assert trace.context is not None and trace.enriched is not None
        enriched = trace.enriched
        return AIResponseEnvelope(
            request_id=trace.request_id,
            text=trace.response.text,
            provider=trace.response.provider,
            model_key=trace.response.model_key,
            route_id=trace.route.route_id,
            feature_key=trace.feature_key,
            response=trace.response,
            context_hash=trace.context.context_hash,
            budget_violations=tuple(trace.budget_violations),
            tag_summary=enriched.context_summary,
            unresolved_tags=enriched.unresolved_tags,
            ambiguous_tags=tuple(item.tag for item in enriched.ambiguous_tags),
            draft=draft,
        )

    def _audit(self, request: AIRequest, trace: _Trace, *, error: PlanningAIError | None) -> None:
        route = trace.route
        response = trace.response
        record = AuditRecord(
            user_id=request.user_id,
            project_id=trace.scope.project_id,
            conversation_id=request.conversation_id,
            intent=None if request.intent is None else request.intent.value,
            feature_key=trace.feature_key,
            provider=None if route is None else route.provider,
            model_key=None if route is None else route.model_key,
            route_id=None if route is None else route.route_id,
            input_tokens=0 if response is None else response.usage.input_tokens,
            output_tokens=0 if response is None else response.usage.output_tokens,
            latency_ms=trace.latency_ms,
            context_hash=None if trace.context is None else trace.context.context_hash,
            success=error is None,
            error_kind=None if error is None else error.kind.value,
            created_at=self._clock(),
        )
        record_audit_safely(self._audit_sink, record, logger=self._logger)

    def _log_failure(self, exc: PlanningAIError, trace: _Trace) -> None:
        self._logger.warning(
            "ai_request_failed",
            kind=exc.kind.value,
            retryable=exc.retryable,
            feature_key=trace.feature_key,
            route_id=None if trace.route is None else trace.route.route_id,
            details=dict(exc.details),
        )


def draft_content(text: str) -> dict[str, object]:
    """Wrap model output; bulleted or numbered lines become addressable ``items``."""

    items = [
        {"title": match.group("text").strip()}
        for match in (_LIST_ITEM.match(line) for line in text.splitlines())
        if match is not None
    ]
    return {"text": text, "items": items}


def _surface_bound_scope(request: AIRequest) -> ContextScope:
    """The request scope, pinned to the project a project surface is bound to."""

    surface = request.surface
    scope = request.scope
    if surface is None or surface.surface_type is not SurfaceType.PROJECT:
        return scope
    if scope.project_id is None:
        return scope.with_updates(project_id=surface.project_id)
    return scope


def _default_draft_title(draft_type: DraftType) -> str:
    return draft_type.value.replace("_", " ").capitalize()


def _uuid4_hex() -> str:
    return uuid.uuid4().hex


__all__ = [
    "AIRequest",
    "AIRequestPipeline",
    "AIResponseEnvelope",
    "PlanningLookup",
    "SYSTEM_PREAMBLE",
    "draft_content",
]
