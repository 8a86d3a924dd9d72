"""Owner-scoped draft persistence and the service that runs lifecycle operations over it."""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

import structlog

from planning_ai.domain.drafts import AIDraft, DraftStatus, DraftType
from planning_ai.drafts import lifecycle
from planning_ai.errors import (
    Err,
    NotFoundError,
    Ok,
    PlanningAIError,
    Result,
    ValidationError,
    capture,
)
from planning_ai.policy.invariants import DEFAULT_POLICY, InvariantPolicy
from planning_ai.utils.validation import utc_now

if TYPE_CHECKING:
    from planning_ai.domain.drafts import DraftProvenance
    from planning_ai.domain.scope import ContextScope


class DraftStore(Protocol):
    """Draft persistence; every read is scoped to the owning user."""

    def create(self, draft: AIDraft) -> AIDraft: ...

    def get(self, draft_id: str, user_id: str) -> AIDraft | None: ...

    def update(self, draft: AIDraft) -> AIDraft: ...

    def list_for_user(
        self,
        user_id: str,
        *,
        project_id: str | None = None,
        status: DraftStatus | None = None,
    ) -> tuple[AIDraft, ...]: ...


class InMemoryDraftStore:
    """Thread-safe dict-backed ``DraftStore``."""

    def __init__(self) -> None:
        self._drafts: dict[str, AIDraft] = {}
        self._lock = threading.Lock()

    def create(self, draft: AIDraft) -> AIDraft:
        with self._lock:
            if draft.id in self._drafts:
                raise ValidationError(f"draft {draft.id!r} already exists")
            self._drafts[draft.id] = draft
        return draft

    def get(self, draft_id: str, user_id: str) -> AIDraft | None:
        with self._lock:
            draft = self._drafts.get(draft_id)
        if draft is None or draft.user_id != user_id:
            return None
        return draft

    def update(self, draft: AIDraft) -> AIDraft:
        with self._lock:
            existing = self._drafts.get(draft.id)
            if existing is None or existing.user_id != draft.user_id:
                raise NotFoundError("draft", draft.id)
            self._drafts[draft.id] = draft
        return draft

    def list_for_user(
        self,
        user_id: str,
        *,
        project_id: str | None = None,
        status: DraftStatus | None = None,
    ) -> tuple[AIDraft, ...]:
        with self._lock:
            drafts = tuple(self._drafts.values())
        selected = [
            draft
            for draft in drafts
            if draft.user_id == user_id
            and (project_id is None or draft.project_id == project_id)
            and (status is None or draft.status is status)
        ]
        selected.sort(key=lambda draft: (draft.created_at, draft.id), reverse=True)
        return tuple(selected)

    def __len__(self) -> int:
        with self._lock:
            return len(self._drafts)


class DraftService:
    """Load, transition and persist drafts; every public call returns a ``Result``."""

    def __init__(
        self,
        store: DraftStore,
        *,
        policy: InvariantPolicy = DEFAULT_POLICY,
        clock: Callable[[], datetime] = utc_now,
        logger: Any | None = None,
    ) -> None:
        self._store = store
        self._policy = policy
        self._clock = clock
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def store(self) -> DraftStore:
        return self._store

    def create(
        self,
        *,
        draft_id: str,
        user_id: str,
        draft_type: DraftType | str,
        title: str,
        content: Mapping[str, Any],
        context_scope: ContextScope | None,
        provenance: DraftProvenance | None,
        project_id: str | None = None,
    ) -> Result[AIDraft]:
        def run() -> AIDraft:
            draft = lifecycle.create_draft(
                draft_id=draft_id,
                user_id=user_id,
                draft_type=draft_type,
                title=title,
                content=content,
                context_scope=context_scope,
                provenance=provenance,
                project_id=project_id,
                policy=self._policy,
                now=self._clock(),
                logger=self._logger,
            )
            self._logger.info(
                "draft_created",
                draft_id=draft.id,
                draft_type=draft.draft_type.value,
                project_id=draft.project_id,
            )
            return self._store.create(draft)

        return capture(run)

    def get(self, draft_id: str, user_id: str) -> Result[AIDraft]:
        return capture(self._load, draft_id, user_id)

    def list_for_user(
        self,
        user_id: str,
        *,
        project_id: str | None = None,
        status: DraftStatus | None = None,
    ) -> tuple[AIDraft, ...]:
        return self._store.list_for_user(user_id, project_id=project_id, status=status)

    def edit(
        self,
        draft_id: str,
        user_id: str,
        content: Mapping[str, Any],
        *,
        title: str | None = None,
    ) -> Result[AIDraft]:
        def run() -> AIDraft:
            draft = self._load(draft_id, user_id)
            updated = lifecycle.edit_draft(
                draft,
                content,
                user_id=user_id,
                title=title,
                policy=self._policy,
                now=self._clock(),
                logger=self._logger,
            )
            return self._store.update(updated)

        return capture(run)

    def discard(self, draft_id: str, user_id: str) -> Result[AIDraft]:
        def run() -> AIDraft:
            draft = self._load(draft_id, user_id)
            updated = lifecycle.discard_draft(
                draft,
                user_id=user_id,
                policy=self._policy,
                now=self._clock(),
                logger=self._logger,
            )
            return self._store.update(updated)

        return capture(run)

    def apply(
        self,
        draft_id: str,
        user_id: str,
        *,
        created_entity_ids: Sequence[str] = (),
    ) -> Result[AIDraft]:
        loaded = self.get(draft_id, user_id)
        if isinstance(loaded, Err):
            return loaded
        return self._persist(
            lifecycle.apply_draft(
                loaded.value,
                user_id=user_id,
                created_entity_ids=created_entity_ids,
                policy=self._policy,
                now=self._clock(),
                logger=self._logger,
            )
        )

    def apply_partial(
        self,
        draft_id: str,
        user_id: str,
        *,
        element_indices: Sequence[int],
        created_entity_ids: Sequence[str] = (),
    ) -> Result[AIDraft]:
        loaded = self.get(draft_id, user_id)
        if isinstance(loaded, Err):
            return loaded
        return self._persist(
            lifecycle.apply_partial(
                loaded.value,
                user_id=user_id,
                element_indices=element_indices,
                created_entity_ids=created_entity_ids,
                policy=self._policy,
                now=self._clock(),
                logger=self._logger,
            )
        )

    def _load(self, draft_id: str, user_id: str) -> AIDraft:
        draft = self._store.get(draft_id, user_id)
        if draft is None:
            raise NotFoundError("draft", draft_id)
        return draft

    def _persist(self, result: Result[AIDraft]) -> Result[AIDraft]:
        if isinstance(result, Err):
            return result
        try:
            return Ok(self._store.update(result.value))
        except PlanningAIError as exc:
            return Err.from_exception(exc)


__all__ = ["DraftService", "DraftStore", "InMemoryDraftStore"]
