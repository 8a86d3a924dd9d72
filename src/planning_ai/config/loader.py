"""
planning-ai-core — runtime config loader.

File: src/planning_ai/config/loader.py
Last updated: 2026-10-19

Purpose
- Build the effective planning-ai config from defaults, a TOML file, ``PLANNING_AI_*``
  environment variables and dotted CLI-style overrides.

What should be included in this file
- Layering in the order defaults < file < profile < env < CLI.
- Env variable names derived from the default config tree, with typed coercion.
- Path fields resolved against the directory holding the config file.
- A redacted JSON dump of the effective config for startup logs.

Functional requirements
- Every layer is validated by the schema; secrets embedded in the file are rejected.
- A profile may be chosen by argument, by the ``profile`` CLI key or by ``PLANNING_AI_PROFILE``.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Callable, Iterator, Mapping
from pathlib import Path
from typing import Any, Final

from planning_ai.config.schema import (
    PATH_FIELDS,
    PROVIDER_NAMES,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    dump_redacted,
    merge_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "planning_ai.toml"
ENV_PREFIX: Final[str] = "PLANNING_AI_"

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})

# Optional fields default to None, so their type cannot be read off the defaults.
_OPTIONAL_STRING_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("routing", "routes_file"),
    ("observability", "log_dir"),
    *(("providers", name, "base_url") for name in PROVIDER_NAMES),
)

_Coercer = Callable[[str], object]
ConfigPath = tuple[str, ...]


class ConfigLoadError(ValueError):
    """The config file could not be read, or an override could not be coerced."""


def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return the validated effective config.

    Without ``config_path`` the loader looks for ``planning_ai.toml`` in the working
    directory and silently uses defaults when it is absent. An explicit path must exist.
    """

    source = _config_file_path(config_path)
    env = dict(os.environ) if environ is None else dict(environ)
    cli = dict(cli_overrides or {})
    active_profile = _select_profile(profile, cli, env)

    layered = assert_valid_config(
        merge_config(default_config(), _read_toml(source, must_exist=config_path is not None))
    )
    if active_profile is not None:
        layered = apply_profile_overlay(layered, active_profile)
    for overrides in (_env_layer(env), _cli_layer(cli)):
        layered = merge_config(layered, overrides)
    layered = assert_valid_config(layered, active_profile=active_profile)

    return assert_valid_config(
        normalize_paths(layered, base_dir=source.parent), active_profile=active_profile
    )


def normalize_paths(config: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    """Copy of ``config`` with every path field made absolute against ``base_dir``."""

    result = merge_config({}, config)
    for field_path in PATH_FIELDS:
        raw = _lookup(result, field_path)
        if isinstance(raw, str):
            _assign(result, field_path, _absolute_posix(raw, base_dir))
    return result


def effective_config(config: Mapping[str, object]) -> dict[str, Any]:
    """Redacted effective config suitable for logging."""

    return dump_redacted(config)


def dump_effective_config(config: Mapping[str, object]) -> str:
    redacted = effective_config(config)
    return json.dumps(redacted, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def env_name_for_path(path: ConfigPath) -> str:
    """``("context", "fail_on_budget_violation")`` -> ``PLANNING_AI_CONTEXT_FAIL_ON_...``."""

    return ENV_PREFIX + "_".join(part.upper() for part in path)


def _config_file_path(config_path: str | Path | None) -> Path:
    if config_path is not None:
        return Path(config_path).expanduser().resolve()
    return (Path.cwd() / DEFAULT_CONFIG_FILE).resolve()


def _read_toml(path: Path, *, must_exist: bool) -> dict[str, Any]:
    if not path.exists():
        if must_exist:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _select_profile(
    explicit: str | None, cli: Mapping[str, object], env: Mapping[str, str]
) -> str | None:
    if explicit is not None:
        chosen: object = explicit
    elif "profile" in cli and cli["profile"] is not None:
        chosen = cli["profile"]
        if not isinstance(chosen, str):
            raise ConfigLoadError("cli override 'profile' must be a string")
    else:
        chosen = env.get(f"{ENV_PREFIX}PROFILE")
    if chosen is None:
        return None
    return str(chosen).strip() or None


def _env_layer(env: Mapping[str, str]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for name, (path, coerce) in sorted(_env_bindings().items()):
        raw = env.get(name)
        if raw is None:
            continue
        try:
            value = coerce(raw.strip())
        except ValueError as exc:
            raise ConfigLoadError(f"{name} -> {'.'.join(path)} {exc}") from exc
        _assign(layer, path, value)
    return layer


def _env_bindings() -> dict[str, tuple[ConfigPath, _Coercer]]:
    bindings: dict[str, tuple[ConfigPath, _Coercer]] = {}
    for path, default in _leaves(default_config()):
        if path[0] == "profiles":
            continue
        coerce = _coercer_for(default)
        if coerce is not None:
            bindings[env_name_for_path(path)] = (path, coerce)
    for path in _OPTIONAL_STRING_FIELDS:
        bindings.setdefault(env_name_for_path(path), (path, str))
    return bindings


def _leaves(
    tree: Mapping[str, object], prefix: ConfigPath = ()
) -> Iterator[tuple[ConfigPath, object]]:
    for key in sorted(tree):
        node = tree[key]
        if isinstance(node, Mapping):
            yield from _leaves(node, (*prefix, key))
        else:
            yield (*prefix, key), node


def _coercer_for(default: object) -> _Coercer | None:
    # bool before int: bool is an int subclass.
    if isinstance(default, bool):
        return _to_bool
    if isinstance(default, int):
        return _to_int
    if isinstance(default, float):
        return _to_float
    if isinstance(default, str):
        return str
    return None


def _to_bool(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ValueError("must be a boolean (true/false/1/0/yes/no/on/off)")


def _to_int(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError("must be an integer") from None


def _to_float(raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ValueError("must be a number") from None


def _cli_layer(cli: Mapping[str, object]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for key in sorted(cli):
        if key == "profile":
            continue
        path = tuple(segment for segment in key.split(".") if segment)
        if not path:
            raise ConfigLoadError(f"invalid CLI override key {key!r}")
        value = cli[key]
        _assign(layer, path, merge_config({}, value) if isinstance(value, Mapping) else value)
    return layer


def _assign(tree: dict[str, Any], path: ConfigPath, value: object) -> None:
    *parents, leaf = path
    node = tree
    for segment in parents:
        child = node.get(segment)
        if not isinstance(child, dict):
            child = node[segment] = {}
        node = child
    node[leaf] = value


def _lookup(tree: Mapping[str, object], path: ConfigPath) -> object | None:
    node: object = tree
    for segment in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(segment)
    return node


def _absolute_posix(raw: str, base_dir: Path) -> str:
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(candidate)).as_posix()


__all__ = [
    "ConfigLoadError",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "dump_effective_config",
    "effective_config",
    "env_name_for_path",
    "load_config",
    "normalize_paths",
]
