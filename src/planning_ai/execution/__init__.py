"""Request execution: the end-to-end AI request pipeline and its audit trail."""

from planning_ai.execution.audit import (
    AuditRecord,
    AuditSink,
    InMemoryAuditSink,
    StructlogAuditSink,
    record_audit_safely,
)
from planning_ai.execution.pipeline import (
    SYSTEM_PREAMBLE,
    AIRequest,
    AIRequestPipeline,
    AIResponseEnvelope,
    PlanningLookup,
    draft_content,
)

__all__ = [
    "AIRequest",
    "AIRequestPipeline",
    "AIResponseEnvelope",
    "AuditRecord",
    "AuditSink",
    "InMemoryAuditSink",
    "PlanningLookup",
    "SYSTEM_PREAMBLE",
    "StructlogAuditSink",
    "draft_content",
    "record_audit_safely",
]
