"""
planning-ai-core — configuration schema and validation.

File: src/planning_ai/config/schema.py
Last updated: 2026-10-19

Purpose
- Define authoritative configuration defaults and strict validation rules.

What should be included in this file
- Schema versioning and migration guidance.
- Field rules per section: type, bounds, enums and optional values.
- Profile overlay validation and deterministic deep-merge helpers.
- Redaction rules for sensitive fields.

Functional requirements
- Validate config payloads and return structured issues (field path + message).
- Reject embedded secrets; credentials are referenced through ``*_env`` keys only.
- Support the ``strict`` and ``permissive`` profile overlays.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Final, Literal, TypedDict

from planning_ai.constants import (
    COLLABORATION_WINDOW_DAYS,
    CONFIG_SCHEMA_VERSION,
    MAX_COMPOSITION_DEPTH,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
BUILTIN_PROFILE_NAMES: Final[tuple[str, ...]] = ("strict", "permissive")
PROVIDER_NAMES: Final[tuple[str, ...]] = ("openai", "anthropic")

_ENV_NAME_PATTERN = re.compile(r"^[A-Z_][A-Z0-9_]*$")
_PROFILE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*$")
_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

_SENSITIVE_KEY_TOKENS: Final[frozenset[str]] = frozenset(
    {
        "secret",
        "token",
        "password",
        "passwd",
        "api",
        "key",
        "apikey",
        "private",
        "credential",
        "credentials",
        "auth",
        "bearer",
    }
)
_SENSITIVE_KEY_PHRASES: Final[tuple[str, ...]] = (
    "api_key",
    "access_token",
    "refresh_token",
    "client_secret",
    "private_key",
    "password",
    "secret",
)

# Config paths normalized relative to the config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("routing", "routes_file"),
    ("observability", "log_dir"),
)

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "text"]


class MetaConfig(TypedDict):
    schema_version: int


class ProviderSettings(TypedDict):
    api_key_env: str
    enabled: bool
    base_url: str | None
    timeout_seconds: float


class ProvidersConfig(TypedDict):
    openai: ProviderSettings
    anthropic: ProviderSettings


class RoutingConfig(TypedDict):
    routes_file: str | None


class ContextConfig(TypedDict):
    fail_on_budget_violation: bool
    collaboration_window_days: int


class TagsConfig(TypedDict):
    allow_system_entities: bool
    allow_shared_tracks: bool


class PolicyConfig(TypedDict):
    max_composition_depth: int


class ObservabilityConfig(TypedDict):
    log_level: LogLevel
    log_format: LogFormat
    log_dir: str | None
    redact_secrets: bool


class ProfileOverlay(TypedDict, total=False):
    providers: dict[str, object]
    routing: dict[str, object]
    context: dict[str, object]
    tags: dict[str, object]
    policy: dict[str, object]
    observability: dict[str, object]


class PlanningAIConfig(TypedDict):
    meta: MetaConfig
    providers: ProvidersConfig
    routing: RoutingConfig
    context: ContextConfig
    tags: TagsConfig
    policy: PolicyConfig
    observability: ObservabilityConfig
    profiles: dict[str, ProfileOverlay]


DEFAULT_CONFIG: Final[PlanningAIConfig] = {
    "meta": {"schema_version": ConfigSchemaVersion},
    "providers": {
        "openai": {
            "api_key_env": "OPENAI_API_KEY",
            "enabled": True,
            "base_url": None,
            "timeout_seconds": 60.0,
        },
        "anthropic": {
            "api_key_env": "ANTHROPIC_API_KEY",
            "enabled": True,
            "base_url": None,
            "timeout_seconds": 60.0,
        },
    },
    "routing": {"routes_file": None},
    "context": {
        "fail_on_budget_violation": False,
        "collaboration_window_days": COLLABORATION_WINDOW_DAYS,
    },
    "tags": {"allow_system_entities": True, "allow_shared_tracks": True},
    "policy": {"max_composition_depth": MAX_COMPOSITION_DEPTH},
    "observability": {
        "log_level": "INFO",
        "log_format": "json",
        "log_dir": None,
        "redact_secrets": True,
    },
    "profiles": {
        "strict": {
            "context": {"fail_on_budget_violation": True},
            "tags": {"allow_shared_tracks": False},
        },
        "permissive": {},
    },
}


@dataclass(frozen=True, slots=True)
class _Field:
    kind: Literal["bool", "int", "float", "str", "env", "path", "enum"]
    optional: bool = False
    minimum: float | None = None
    choices: tuple[str, ...] = ()


_PROVIDER_FIELDS: Final[Mapping[str, _Field]] = MappingProxyType(
    {
        "api_key_env": _Field("env"),
        "enabled": _Field("bool"),
        "base_url": _Field("str", optional=True),
        "timeout_seconds": _Field("float", minimum=0.001),
    }
)

_SECTION_FIELDS: Final[Mapping[str, Mapping[str, _Field]]] = MappingProxyType(
    {
        "meta": MappingProxyType({"schema_version": _Field("int", minimum=1)}),
        "routing": MappingProxyType({"routes_file": _Field("path", optional=True)}),
        "context": MappingProxyType(
            {
                "fail_on_budget_violation": _Field("bool"),
                "collaboration_window_days": _Field("int", minimum=1),
            }
        ),
        "tags": MappingProxyType(
            {
                "allow_system_entities": _Field("bool"),
                "allow_shared_tracks": _Field("bool"),
            }
        ),
        "policy": MappingProxyType({"max_composition_depth": _Field("int", minimum=1)}),
        "observability": MappingProxyType(
            {
                "log_level": _Field("enum", choices=("DEBUG", "INFO", "WARNING", "ERROR")),
                "log_format": _Field("enum", choices=("json", "text")),
                "log_dir": _Field("path", optional=True),
                "redact_secrets": _Field("bool"),
            }
        ),
    }
)

_OVERLAY_SECTIONS: Final[frozenset[str]] = frozenset(
    {"providers", "routing", "context", "tags", "policy", "observability"}
)
# Declared field names are never secrets, whatever tokens they contain.
_SCHEMA_KEYS: Final[frozenset[str]] = frozenset(
    {key for fields in _SECTION_FIELDS.values() for key in fields} | set(_PROVIDER_FIELDS)
)


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        lines = [f"- {issue.path}: {issue.message}" for issue in self.issues]
        super().__init__("invalid config:\n" + ("\n".join(lines) or "unknown validation failure"))


class _IssueCollector(list[ConfigValidationIssue]):
    """Ordered issues gathered during one validation pass."""

    def add(self, path: str, message: str) -> None:
        self.append(ConfigValidationIssue(path, message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self)

    @property
    def has_issues(self) -> bool:
        return len(self) > 0


def default_config() -> PlanningAIConfig:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade planning_ai.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade planning-ai-core"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto a copy of ``base``; nested tables merge key by key."""

    merged = _plain_copy(base)
    for key in sorted(name for name in overlay if isinstance(name, str)):
        incoming = overlay[key]
        current = merged.get(key)
        if isinstance(incoming, Mapping):
            merged[key] = merge_config(current if isinstance(current, Mapping) else {}, incoming)
        else:
            merged[key] = copy.deepcopy(incoming)
    return merged


def apply_profile_overlay(config: Mapping[str, object], profile: str | None) -> dict[str, Any]:
    """Apply a named profile overlay and re-validate the result."""

    materialized = _plain_copy(config)
    selected = (profile or "").strip()
    if not selected:
        return materialized

    profiles = materialized.get("profiles")
    overlay = profiles.get(selected) if isinstance(profiles, Mapping) else None
    if overlay is None:
        raise ConfigValidationError(
            (ConfigValidationIssue("profiles", f"profile {selected!r} is not defined"),)
        )
    if not isinstance(overlay, Mapping):
        raise ConfigValidationError(
            (ConfigValidationIssue(f"profiles.{selected}", "profile overlay must be an object"),)
        )
    return assert_valid_config(merge_config(materialized, overlay), active_profile=selected)


def validate_config(
    config: Mapping[str, object] | object,
    *,
    active_profile: str | None = None,
) -> ConfigValidationResult:
    """Validate a full config and return structured issues with dotted paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, issues)

    selected = active_profile.strip() if isinstance(active_profile, str) else ""
    if selected:
        profiles = normalized.get("profiles", {})
        if selected not in profiles:
            issues.add("profiles", f"profile {selected!r} is not defined")

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(
    config: Mapping[str, object] | object,
    *,
    active_profile: str | None = None,
) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config, active_profile=active_profile)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def redact_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Return a redacted copy suitable for logs."""

    masked = _mask_tree(config) if isinstance(config, Mapping) else {}
    return masked if isinstance(masked, dict) else {}


def dump_redacted(config: Mapping[str, object] | object) -> dict[str, Any]:
    return redact_config(config)


def _validate_root(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    required = {*_SECTION_FIELDS, "providers"}
    _reject_unknown_keys(payload, {*required, "profiles"}, "", issues)
    _require_keys(payload, required, "", issues)

    out: dict[str, Any] = {}
    for section, fields in _SECTION_FIELDS.items():
        section_obj = _section_object(payload, section, section, issues)
        if section_obj is not None:
            out[section] = _validate_fields(section_obj, fields, section, issues, partial=False)

    providers = _section_object(payload, "providers", "providers", issues)
    if providers is not None:
        out["providers"] = _validate_providers(providers, "providers", issues, partial=False)

    meta = out.get("meta", {})
    version = meta.get("schema_version")
    if version is not None and version != ConfigSchemaVersion:
        issues.add("meta.schema_version", migration_guidance(version))

    profiles = _section_object(payload, "profiles", "profiles", issues)
    if profiles is not None:
        out["profiles"] = _validate_profiles(profiles, "profiles", issues)
    return out


def _validate_providers(
    payload: Mapping[str, object], path: str, issues: _IssueCollector, *, partial: bool
) -> dict[str, Any]:
    _reject_unknown_keys(payload, set(PROVIDER_NAMES), path, issues)
    if not partial:
        _require_keys(payload, set(PROVIDER_NAMES), path, issues)
    out: dict[str, Any] = {}
    for name in PROVIDER_NAMES:
        section_path = _join(path, name)
        section = _section_object(payload, name, section_path, issues)
        if section is not None:
            out[name] = _validate_fields(
                section, _PROVIDER_FIELDS, section_path, issues, partial=partial
            )
    return out


def _validate_profiles(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name in sorted(payload):
        profile_path = _join(path, name)
        if not _PROFILE_NAME_PATTERN.fullmatch(name):
            issues.add(profile_path, "profile name must match ^[a-z][a-z0-9_-]*$")
            continue
        overlay = _as_object(payload[name], profile_path, issues)
        if overlay is None:
            continue
        _reject_unknown_keys(overlay, set(_OVERLAY_SECTIONS), profile_path, issues)
        validated: dict[str, Any] = {}
        for section in sorted(_OVERLAY_SECTIONS):
            section_path = _join(profile_path, section)
            section_obj = _section_object(overlay, section, section_path, issues)
            if section_obj is None:
                continue
            if section == "providers":
                validated[section] = _validate_providers(
                    section_obj, section_path, issues, partial=True
                )
            else:
                validated[section] = _validate_fields(
                    section_obj, _SECTION_FIELDS[section], section_path, issues, partial=True
                )
        out[name] = validated
    return out


def _validate_fields(
    payload: Mapping[str, object],
    fields: Mapping[str, _Field],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    _reject_unknown_keys(payload, set(fields), path, issues)
    if not partial:
        _require_keys(
            payload, {key for key, spec in fields.items() if not spec.optional}, path, issues
        )
    out: dict[str, Any] = {}
    for key, spec in fields.items():
        if key not in payload:
            if spec.optional and not partial:
                out[key] = None
            continue
        value = payload[key]
        field_path = _join(path, key)
        if value is None:
            if spec.optional:
                out[key] = None
            else:
                issues.add(field_path, "must not be null")
            continue
        parsed = _coerce_field(value, spec, field_path, issues)
        if parsed is not None:
            out[key] = parsed
    return out


class _Rejected(ValueError):
    """A scalar did not parse; the message becomes the issue text."""


def _coerce_field(value: object, spec: _Field, path: str, issues: _IssueCollector) -> Any:
    parse = _SCALAR_PARSERS[spec.kind]
    try:
        return parse(value, spec)
    except _Rejected as exc:
        issues.add(path, str(exc))
        return None


def _section_object(
    payload: Mapping[str, object], key: str, path: str, issues: _IssueCollector
) -> dict[str, object] | None:
    raw = payload.get(key)
    if raw is None:
        return None
    return _as_object(raw, path, issues)


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {_kind_of(value)}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {_kind_of(key)}")
            continue
        out[key] = item
    return out


def _kind_of(value: object) -> str:
    return type(value).__name__


def _parse_text(value: object, spec: _Field) -> str:
    if not isinstance(value, str):
        raise _Rejected(f"expected string, got {_kind_of(value)}")
    text = value.strip()
    if not text:
        raise _Rejected("must not be empty")
    if spec.kind == "path" and "\x00" in text:
        raise _Rejected("must not contain NUL bytes")
    if spec.kind == "env" and _ENV_NAME_PATTERN.fullmatch(text) is None:
        raise _Rejected("must be an env var name (example: OPENAI_API_KEY)")
    if spec.kind == "enum" and text not in spec.choices:
        allowed = ", ".join(sorted(spec.choices))
        raise _Rejected(f"invalid value {text!r}; expected one of: {allowed}")
    return text


def _parse_flag(value: object, spec: _Field) -> bool:
    if isinstance(value, bool):
        return value
    raise _Rejected(f"expected boolean, got {_kind_of(value)}")


def _parse_number(value: object, spec: _Field) -> int | float:
    # bool is an int subclass and never counts as a number here.
    if spec.kind == "int":
        if isinstance(value, bool) or not isinstance(value, int):
            raise _Rejected(f"expected integer, got {_kind_of(value)}")
        number: int | float = value
        floor = None if spec.minimum is None else int(spec.minimum)
    else:
        if isinstance(value, bool) or not isinstance(value, int | float):
            raise _Rejected(f"expected number, got {_kind_of(value)}")
        number = float(value)
        if math.isinf(number) or math.isnan(number):
            raise _Rejected("must be finite")
        floor = spec.minimum
    if floor is not None and number < floor:
        raise _Rejected(f"must be >= {floor}")
    return number


_SCALAR_PARSERS: Final[Mapping[str, Callable[[object, _Field], Any]]] = MappingProxyType(
    {
        "bool": _parse_flag,
        "int": _parse_number,
        "float": _parse_number,
        "str": _parse_text,
        "env": _parse_text,
        "path": _parse_text,
        "enum": _parse_text,
    }
)


def _reject_unknown_keys(
    payload: Mapping[str, object], allowed: set[str], path: str, issues: _IssueCollector
) -> None:
    for key in sorted(payload):
        if key in allowed:
            continue
        key_path = _join(path, key)
        if _looks_sensitive_key(key):
            issues.add(
                key_path,
                "embedded secret values are forbidden; use an *_env key with an env var name",
            )
        else:
            issues.add(key_path, "unknown field")


def _require_keys(
    payload: Mapping[str, object], required: set[str], path: str, issues: _IssueCollector
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _looks_sensitive_key(key: str) -> bool:
    snake = _snake_case(key)
    if snake.endswith("_env"):
        return False
    if any(phrase in snake for phrase in _SENSITIVE_KEY_PHRASES):
        return True
    return not _SENSITIVE_KEY_TOKENS.isdisjoint(snake.split("_"))


def _snake_case(key: str) -> str:
    split_camel = _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key.strip()).lower()
    return _NON_ALNUM.sub("_", split_camel).strip("_")


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _plain_copy(tree: Mapping[str, object]) -> dict[str, Any]:
    copied: dict[str, Any] = {}
    for key in sorted(name for name in tree if isinstance(name, str)):
        item = tree[key]
        copied[key] = _plain_copy(item) if isinstance(item, Mapping) else copy.deepcopy(item)
    return copied


def _mask_tree(node: object) -> object:
    if isinstance(node, Mapping):
        return {
            key: "<redacted>" if _redact_key(key) else _mask_tree(item)
            for key, item in sorted(node.items())
        }
    if isinstance(node, list | tuple):
        return [_mask_tree(item) for item in node]
    return node


def _redact_key(key: str) -> bool:
    snake = _snake_case(key)
    # Env var names are redacted too; declared field names never are.
    if snake.endswith("_env"):
        return True
    return snake not in _SCHEMA_KEYS and _looks_sensitive_key(snake)


__all__ = [
    "BUILTIN_PROFILE_NAMES",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "PATH_FIELDS",
    "PROVIDER_NAMES",
    "PlanningAIConfig",
    "ProfileOverlay",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "dump_redacted",
    "merge_config",
    "migration_guidance",
    "redact_config",
    "validate_config",
]
