"""
planning-ai-core — tagging plane

File: src/planning_ai/tagging/__init__.py
Last updated: 2026-10-19

Purpose
- ``@tag`` parsing, permission-scoped resolution, context enrichment and autocomplete.
"""

from planning_ai.tagging.enrichment import (
    EnrichedContext,
    TagContextLookup,
    TagContextSnapshot,
    TagSnapshotLookup,
    augment_scope_with_tags,
    enrich_context_with_tags,
    format_tag_context,
)
from planning_ai.tagging.parser import (
    ParsedTag,
    TagParseResult,
    extract_unique_normalized_tags,
    has_tags,
    normalize_entity_name,
    parse_tags,
)
from planning_ai.tagging.resolver import (
    EntityType,
    ResolutionStatus,
    ResolvedTag,
    TagCandidate,
    TagLookup,
    TagResolutionContext,
    TagResolver,
    get_ambiguous_tags,
    get_resolved_tags,
    get_unresolved_tags,
    group_resolved_tags_by_type,
)
from planning_ai.tagging.suggestions import (
    TagSuggestion,
    TagSuggestionContext,
    get_recently_used_tags,
    get_tag_suggestions,
)

__all__ = [
    "EnrichedContext",
    "EntityType",
    "ParsedTag",
    "ResolutionStatus",
    "ResolvedTag",
    "TagCandidate",
    "TagContextLookup",
    "TagContextSnapshot",
    "TagLookup",
    "TagParseResult",
    "TagResolutionContext",
    "TagResolver",
    "TagSnapshotLookup",
    "TagSuggestion",
    "TagSuggestionContext",
    "augment_scope_with_tags",
    "enrich_context_with_tags",
    "extract_unique_normalized_tags",
    "format_tag_context",
    "get_ambiguous_tags",
    "get_recently_used_tags",
    "get_resolved_tags",
    "get_tag_suggestions",
    "get_unresolved_tags",
    "group_resolved_tags_by_type",
    "has_tags",
    "normalize_entity_name",
    "parse_tags",
]
