"""
planning-ai-core — tag parser

File: src/planning_ai/tagging/parser.py
Last updated: 2026-10-19

Purpose
- Extract ``@reference`` tokens from free text for entity resolution.

What should be included in this file
- Token grammar: ``@`` followed by one or more ASCII letters or digits.
- Normalization used by both tags and candidate display names.
- Hard cap on tokens per input with a logged truncation.

Functional requirements
- Tokens are returned in order of appearance with start/end offsets.
- A ``text_without_tags`` projection is produced; the input is never modified.

Non-functional requirements
- Deterministic: identical input always yields identical output.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Final

import structlog

from planning_ai.constants import MAX_TAGS_PER_INPUT

TAG_PATTERN: Final[re.Pattern[str]] = re.compile(r"@([A-Za-z0-9]+)")
_NON_ALNUM: Final[re.Pattern[str]] = re.compile(r"[^a-z0-9]")
_WHITESPACE_RUN: Final[re.Pattern[str]] = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class ParsedTag:
    """One ``@reference`` token found in the input."""

    raw: str
    normalized: str
    start: int
    end: int

    def to_dict(self) -> dict[str, object]:
        return {
            "raw": self.raw,
            "normalized": self.normalized,
            "start": self.start,
            "end": self.end,
        }


@dataclass(frozen=True, slots=True)
class TagParseResult:
    """Parsed tags plus the input projected without them."""

    original_text: str
    tags: tuple[ParsedTag, ...]
    text_without_tags: str
    truncated: bool = False
    dropped_count: int = 0

    def unique_normalized(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(tag.normalized for tag in self.tags))

    def to_dict(self) -> dict[str, object]:
        return {
            "tags": [tag.to_dict() for tag in self.tags],
            "text_without_tags": self.text_without_tags,
            "truncated": self.truncated,
            "dropped_count": self.dropped_count,
        }


def normalize_entity_name(name: str) -> str:
    """Lower-case and strip every non-alphanumeric character."""

    return _NON_ALNUM.sub("", name.lower())


def parse_tags(
    text: str,
    *,
    max_tags: int = MAX_TAGS_PER_INPUT,
    logger: Any | None = None,
) -> TagParseResult:
    """Extract at most ``max_tags`` tags from ``text`` in order of appearance."""

    if not isinstance(text, str):
        raise TypeError("text must be a string")
    if max_tags <= 0:
        raise ValueError("max_tags must be > 0")

    matches = list(TAG_PATTERN.finditer(text))
    kept = matches[:max_tags]
    dropped = len(matches) - len(kept)
    if dropped > 0:
        log = logger if logger is not None else structlog.get_logger(__name__)
        log.info(
            "tag_parse_truncated",
            found=len(matches),
            kept=len(kept),
            dropped=dropped,
            max_tags=max_tags,
        )

    tags = tuple(
        ParsedTag(
            raw=match.group(0),
            normalized=normalize_entity_name(match.group(1)),
            start=match.start(),
            end=match.end(),
        )
        for match in kept
    )
    return TagParseResult(
        original_text=text,
        tags=tags,
        text_without_tags=_remove_spans(text, tags),
        truncated=dropped > 0,
        dropped_count=dropped,
    )


def extract_unique_normalized_tags(text: str, *, logger: Any | None = None) -> tuple[str, ...]:
    """Normalized tags in first-seen order without duplicates."""

    return parse_tags(text, logger=logger).unique_normalized()


def has_tags(text: str) -> bool:
    return TAG_PATTERN.search(text) is not None


def _remove_spans(text: str, tags: tuple[ParsedTag, ...]) -> str:
    pieces: list[str] = []
    cursor = 0
    for tag in tags:
        pieces.append(text[cursor : tag.start])
        cursor = tag.end
    pieces.append(text[cursor:])
    return _WHITESPACE_RUN.sub(" ", "".join(pieces)).strip()


__all__ = [
    "TAG_PATTERN",
    "ParsedTag",
    "TagParseResult",
    "extract_unique_normalized_tags",
    "has_tags",
    "normalize_entity_name",
    "parse_tags",
]
