"""
dil-core unit tests for config loader

File: tests/unit/config/test_loader.py

Purpose
- Validate deterministic config loading from defaults, TOML, env overrides, and CLI overrides.

What this test file should cover
- Precedence: CLI > env > file > defaults.
- Env var path mapping and integer coercion.
- Path normalization relative to the config file.
- Missing explicit config files and malformed TOML raise ``ConfigLoadError``.

Non-functional requirements
- Deterministic output across repeated loads.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from dil_core.config import (
    ConfigLoadError,
    ConfigValidationError,
    config_path,
    dump_effective_config,
    load_config,
)


def _write_config(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


@pytest.mark.unit
def test_defaults_apply_without_config_file(tmp_path: Path) -> None:
    config = load_config(environ={}, cwd=tmp_path)

    assert config["verification"] == {
        "command_timeout_ms": 30_000,
        "http_timeout_ms": 5_000,
        "max_concurrency": 4,
        "max_output_chars": 4096,
    }
    assert config["observability"] == {"log_format": "console", "log_level": "WARNING"}
    assert config["paths"]["receipts_dir"] == (tmp_path.resolve() / ".dil/receipts").as_posix()


@pytest.mark.unit
def test_loader_precedence_default_file_env_cli(tmp_path: Path) -> None:
    config_file = tmp_path / "dil.toml"
    _write_config(
        config_file,
        """
[verification]
max_concurrency = 2
command_timeout_ms = 1000
http_timeout_ms = 2000
""".strip(),
    )

    config = load_config(
        config_file,
        environ={
            "DIL_VERIFICATION_COMMAND_TIMEOUT_MS": " 1500 ",
            "DIL_VERIFICATION_HTTP_TIMEOUT_MS": "2500",
        },
        cli_overrides={"verification.http_timeout_ms": 3000, "observability.log_level": None},
    )

    assert config["verification"]["max_concurrency"] == 2
    assert config["verification"]["command_timeout_ms"] == 1500
    assert config["verification"]["http_timeout_ms"] == 3000
    assert config["verification"]["max_output_chars"] == 4096
    assert config["observability"]["log_level"] == "WARNING"


@pytest.mark.unit
def test_default_config_file_is_discovered_in_cwd(tmp_path: Path) -> None:
    _write_config(tmp_path / "dil.toml", '[observability]\nlog_level = "debug"\n')

    config = load_config(environ={}, cwd=tmp_path)

    assert config["observability"]["log_level"] == "DEBUG"


@pytest.mark.unit
def test_relative_paths_resolve_against_config_directory(tmp_path: Path) -> None:
    config_file = tmp_path / "nested" / "dil.toml"
    _write_config(config_file, '[paths]\nruns_dir = "../runs"\nreceipts_dir = "/abs/receipts"\n')

    config = load_config(config_file, environ={})

    assert config["paths"]["runs_dir"] == (tmp_path.resolve() / "runs").as_posix()
    assert config["paths"]["receipts_dir"] == "/abs/receipts"
    assert config_path(config, "runs_dir") == tmp_path.resolve() / "runs"


@pytest.mark.unit
def test_explicit_missing_config_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="config file not found"):
        load_config(tmp_path / "absent.toml", environ={})


@pytest.mark.unit
def test_invalid_toml_is_an_error(tmp_path: Path) -> None:
    config_file = tmp_path / "dil.toml"
    _write_config(config_file, "[verification\n")

    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(config_file, environ={})


@pytest.mark.unit
def test_env_integer_coercion_failure_names_the_variable(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="DIL_VERIFICATION_MAX_CONCURRENCY"):
        load_config(environ={"DIL_VERIFICATION_MAX_CONCURRENCY": "many"}, cwd=tmp_path)


@pytest.mark.unit
def test_unknown_file_keys_fail_validation(tmp_path: Path) -> None:
    config_file = tmp_path / "dil.toml"
    _write_config(config_file, "[verification]\nretries = 3\n")

    with pytest.raises(ConfigValidationError) as exc_info:
        load_config(config_file, environ={})

    assert [(issue.path, issue.message) for issue in exc_info.value.issues] == [
        ("verification.retries", "unknown field")
    ]


@pytest.mark.unit
def test_cli_override_out_of_range_fails_validation(tmp_path: Path) -> None:
    with pytest.raises(ConfigValidationError, match="verification.max_concurrency"):
        load_config(cli_overrides={"verification.max_concurrency": 0}, environ={}, cwd=tmp_path)


@pytest.mark.unit
def test_config_path_rejects_unknown_keys(tmp_path: Path) -> None:
    config = load_config(environ={}, cwd=tmp_path)

    with pytest.raises(ConfigLoadError, match="paths.cache_dir"):
        config_path(config, "cache_dir")


@pytest.mark.unit
def test_dump_effective_config_is_stable(tmp_path: Path) -> None:
    first = dump_effective_config(load_config(environ={}, cwd=tmp_path))
    second = dump_effective_config(load_config(environ={}, cwd=tmp_path))

    assert first == second
    assert list(json.loads(first)) == ["meta", "observability", "paths", "verification"]
