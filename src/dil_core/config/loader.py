"""
dil-core config loader

File: src/dil_core/config/loader.py

Purpose
- Build the effective config for one CLI invocation.

Functional requirements
- Layers, lowest first: built-in defaults, TOML file, ``DIL_*`` env vars, CLI flags.
- ``dil.toml`` in the working directory is optional; an explicit ``--config`` path must exist.
- Env variable names are derived from the default config's scalar leaves, e.g.
  ``verification.max_concurrency`` -> ``DIL_VERIFICATION_MAX_CONCURRENCY``.
- Relative ``paths.*`` entries resolve against the config file's directory.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any, Final

from dil_core.config.schema import (
    PATH_FIELDS,
    assert_valid_config,
    default_config,
    merge_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "dil.toml"
ENV_PREFIX: Final[str] = "DIL_"

# Sections that cannot be overridden from the environment.
_ENV_EXCLUDED_SECTIONS: Final[frozenset[str]] = frozenset({"meta"})

KeyPath = tuple[str, ...]


class ConfigLoadError(ValueError):
    """Config file missing or unparsable, or an override value of the wrong type."""


def load_config(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
    cwd: Path | None = None,
) -> dict[str, Any]:
    """Return the validated effective config.

    ``cli_overrides`` maps dotted keys (``"verification.max_concurrency"``) to
    values; ``None`` values are ignored so unset argparse flags can be passed
    straight through.
    """

    if config_path is None:
        source = ((cwd or Path.cwd()) / DEFAULT_CONFIG_FILE).resolve()
    else:
        source = Path(config_path).expanduser().resolve()

    layered = assert_valid_config(
        merge_config(default_config(), _read_toml(source, required=config_path is not None))
    )
    env_layer = _env_layer(layered, os.environ if environ is None else environ)
    layered = merge_config(layered, env_layer)
    layered = merge_config(layered, _cli_layer(cli_overrides or {}))
    return normalize_paths(assert_valid_config(layered), base_dir=source.parent)


def normalize_paths(config: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    """Return a copy of ``config`` with every ``paths.*`` entry made absolute."""

    resolved = merge_config({}, config)
    for key_path in PATH_FIELDS:
        raw = _lookup(resolved, key_path)
        if not isinstance(raw, str):
            continue
        candidate = Path(os.path.expandvars(raw)).expanduser()
        if not candidate.is_absolute():
            candidate = base_dir / candidate
        _assign(resolved, key_path, Path(os.path.normpath(candidate)).as_posix())
    return resolved


def config_path(config: Mapping[str, Any], key: str) -> Path:
    """Return ``paths.<key>`` as a ``Path``."""

    value = _lookup(config, ("paths", key))
    if not isinstance(value, str):
        raise ConfigLoadError(f"paths.{key} is not configured")
    return Path(value)


def dump_effective_config(config: Mapping[str, object]) -> str:
    return json.dumps(config, sort_keys=True, indent=2, ensure_ascii=False)


def _read_toml(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _env_layer(config: Mapping[str, object], environ: Mapping[str, str]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for key_path, current in _leaves(config):
        if key_path[0] in _ENV_EXCLUDED_SECTIONS:
            continue
        env_name = ENV_PREFIX + "_".join(part.upper() for part in key_path)
        raw = environ.get(env_name)
        if raw is None:
            continue
        value: object = raw.strip()
        if isinstance(current, int):
            try:
                value = int(raw)
            except ValueError as exc:
                raise ConfigLoadError(
                    f"{env_name} -> {'.'.join(key_path)} must be an integer"
                ) from exc
        _assign(layer, key_path, value)
    return layer


def _cli_layer(cli_overrides: Mapping[str, object]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for dotted, value in sorted(cli_overrides.items()):
        if value is None:
            continue
        key_path = tuple(part for part in dotted.split(".") if part)
        if not key_path:
            raise ConfigLoadError(f"invalid CLI override key {dotted!r}")
        _assign(layer, key_path, value)
    return layer


def _leaves(
    payload: Mapping[str, object], prefix: KeyPath = ()
) -> Iterator[tuple[KeyPath, object]]:
    for key in sorted(payload):
        value = payload[key]
        if isinstance(value, Mapping):
            yield from _leaves(value, (*prefix, key))
        elif isinstance(value, (int, str)) and not isinstance(value, bool):
            yield (*prefix, key), value


def _assign(target: dict[str, Any], key_path: KeyPath, value: object) -> None:
    *parents, leaf = key_path
    node = target
    for part in parents:
        node = node.setdefault(part, {})
    node[leaf] = value


def _lookup(payload: Mapping[str, object], key_path: KeyPath) -> object | None:
    node: object = payload
    for part in key_path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(part)
    return node


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ConfigLoadError",
    "config_path",
    "dump_effective_config",
    "load_config",
    "normalize_paths",
]
