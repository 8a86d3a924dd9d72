"""
planning-ai-core — package root

File: src/planning_ai/__init__.py
Last updated: 2026-10-19

Purpose
- Package root for the AI orchestration core of the planning application.
- Exposes version metadata and a deliberately small public surface.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).

Non-functional requirements
- Subpackages are imported lazily by callers; keep this module light.
"""

from __future__ import annotations

from typing import Final

__version__: Final[str] = "0.1.0"

__all__ = ["__version__"]
