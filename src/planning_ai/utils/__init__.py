"""Utility exports for hashing and value-object validation helpers."""

from planning_ai.utils.hashing import (
    canonical_json,
    sha256_bytes,
    sha256_json,
    sha256_text,
    short_digest,
)
from planning_ai.utils.validation import iso8601z, utc_now

__all__ = [
    "canonical_json",
    "iso8601z",
    "sha256_bytes",
    "sha256_json",
    "sha256_text",
    "short_digest",
    "utc_now",
]
