"""
planning-ai-core — hashing utilities

File: src/planning_ai/utils/hashing.py
Last updated: 2026-10-19

Purpose
- Provide deterministic SHA-256 helpers for bytes, text, and JSON payloads.

Functional requirements
- JSON hashing uses canonical serialization (sorted keys, compact separators).

Non-functional requirements
- Standard library only; behavior is cross-platform deterministic.
"""

from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

__all__ = [
    "canonical_json",
    "sha256_bytes",
    "sha256_json",
    "sha256_text",
    "short_digest",
]


def canonical_json(value: object) -> str:
    """Serialize ``value`` with sorted keys and compact separators."""

    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def sha256_bytes(data: bytes) -> str:
    """Return SHA-256 hex digest for raw bytes."""

    return hashlib.sha256(data).hexdigest()


def sha256_text(text: str, *, encoding: str = "utf-8") -> str:
    """Return SHA-256 hex digest for text encoded with ``encoding``."""

    return sha256_bytes(text.encode(encoding))


def sha256_json(payload: Mapping[str, object]) -> str:
    """Return SHA-256 hex digest of the canonical JSON form of ``payload``."""

    return sha256_text(canonical_json(payload))


def short_digest(payload: Mapping[str, object], *, length: int) -> str:
    """Return the first ``length`` hex characters of ``sha256_json(payload)``."""

    if length <= 0 or length > 64:
        raise ValueError("length must be in 1..64")
    return sha256_json(payload)[:length]
