"""
dil-core unit tests for verification predicates

File: tests/unit/verification_plane/test_predicates.py

Purpose
- Validate predicate extraction, runnable-check selection, id/prefix filtering, and
  parameter rejection reasons.

What this test file should cover
- Only validations with a verification capability and a matching predicate are selected.
- Parameter validation order: required keys, unknown keys, then values.
- Integer parameters must round-trip exactly.
"""

from __future__ import annotations

import pytest

from dil_core.spec_ingestion import parse_dil
from dil_core.verification_plane.predicates import (
    PlannedCheck,
    extract_predicates,
    filter_checks,
    parse_params_for,
    parse_predicate_params,
    select_checks,
    validate_params,
)

SPEC = """DIL:spec v0
system "DIL.Checks" {
  validations {
    validate V-FILE {
      requires_capability: "check_file_exists"
      predicate: "check_file_exists path=/etc/hostname type=file"
    }
    validate V-CMD {
      requires_capability: check_command_exit  # bare value
      predicate: "check_command_exit cmd=true args="
    }
    validate V-REPORT {
      requires_capability: "emit_structured_report"
      predicate: "emit_structured_report now"
    }
    validate V-MISMATCH {
      requires_capability: "check_http_endpoint"
      predicate: "check_file_exists path=/tmp"
    }
    validate V-NOPRED {
      requires_capability: "check_http_endpoint"
    }
  }
  intents {
    intent I1 {
      predicate: "not inside validations"
    }
  }
}
"""


def _check(validation_id: str, capability: str = "check_file_exists") -> PlannedCheck:
    return PlannedCheck(validation_id=validation_id, capability=capability, predicate=capability)


@pytest.mark.unit
def test_extract_predicates_reads_only_the_validations_block() -> None:
    predicates = extract_predicates(SPEC)

    assert predicates == {
        "V-FILE": "check_file_exists path=/etc/hostname type=file",
        "V-CMD": "check_command_exit cmd=true args=",
        "V-REPORT": "emit_structured_report now",
        "V-MISMATCH": "check_file_exists path=/tmp",
    }


@pytest.mark.unit
def test_select_checks_requires_capability_and_matching_first_token() -> None:
    checks = select_checks(parse_dil(SPEC), extract_predicates(SPEC))

    assert [(check.check_id, check.capability) for check in checks] == [
        ("validations.V-FILE", "check_file_exists"),
        ("validations.V-CMD", "check_command_exit"),
    ]


@pytest.mark.unit
def test_filter_checks_ids_override_prefixes() -> None:
    checks = [_check("V-SMOKE-1"), _check("V-SMOKE-2"), _check("V-DEEP")]

    assert filter_checks(checks) == checks
    assert [item.validation_id for item in filter_checks(checks, only_prefixes=["V-SMOKE"])] == [
        "V-SMOKE-1",
        "V-SMOKE-2",
    ]
    assert [
        item.validation_id
        for item in filter_checks(checks, only_ids=["V-DEEP"], only_prefixes=["V-SMOKE"])
    ] == ["V-DEEP"]
    assert filter_checks(checks, only_ids=["V-NONE"]) == []


@pytest.mark.unit
@pytest.mark.parametrize(
    ("predicate", "reason"),
    [
        ("check_command_exit cmd=true", "capability_mismatch:expected=check_file_exists,actual=check_command_exit"),
        ("", "capability_mismatch:expected=check_file_exists,actual="),
        ("check_file_exists path", "malformed_token:path"),
        ("check_file_exists =x", "empty_key:=x"),
    ],
)
def test_parse_predicate_params_rejections(predicate: str, reason: str) -> None:
    parsed = parse_predicate_params(predicate, "check_file_exists")

    assert parsed.ok is False
    assert parsed.reason == reason


@pytest.mark.unit
def test_parse_predicate_params_keeps_values_with_equals_and_last_duplicate() -> None:
    parsed = parse_predicate_params(
        "check_http_endpoint url=http://h/?a=b url=http://h/x", "check_http_endpoint"
    )

    assert parsed.ok
    assert parsed.params == {"url": "http://h/x"}


@pytest.mark.unit
@pytest.mark.parametrize(
    ("capability", "params", "reason"),
    [
        ("check_file_exists", {}, "missing_required_key:path"),
        ("check_file_exists", {"path": "/x", "mode": "r"}, "unknown_key:mode"),
        ("check_file_exists", {"path": "rel/x"}, "invalid_path:not_absolute"),
        ("check_file_exists", {"path": "/x", "type": "socket"}, "invalid_value:type"),
        ("check_file_exists", {"path": "/x", "min_size_bytes": "-1"}, "invalid_value:min_size_bytes"),
        ("check_file_exists", {"path": "/x", "min_size_bytes": "007"}, "invalid_value:min_size_bytes"),
        ("check_command_exit", {"cmd": "true"}, "missing_required_key:args"),
        ("check_command_exit", {"args": "", "x": "1"}, "missing_required_key:cmd"),
        ("check_command_exit", {"cmd": "t", "args": "", "expected_exit": "+1"}, "invalid_value:expected_exit"),
        ("check_command_exit", {"cmd": "t", "args": "", "timeout_ms": "0"}, "invalid_value:timeout_ms"),
        ("check_http_endpoint", {"url": "example.com"}, "invalid_url:parse_error"),
        ("check_http_endpoint", {"url": "ftp://example.com"}, "invalid_scheme:ftp"),
        ("check_http_endpoint", {"url": "http://x", "method": "post"}, "invalid_method:post"),
        ("check_http_endpoint", {"url": "http://x", "expected_status": "99"}, "invalid_value:expected_status"),
        ("check_http_endpoint", {"url": "http://x", "timeout_ms": "1.5"}, "invalid_value:timeout_ms"),
        ("check_archive", {}, "unsupported_capability:check_archive"),
    ],
)
def test_validate_params_reasons(capability: str, params: dict[str, str], reason: str) -> None:
    assert validate_params(capability, params) == reason


@pytest.mark.unit
@pytest.mark.parametrize(
    ("capability", "params"),
    [
        ("check_file_exists", {"path": "/x", "type": "", "min_size_bytes": "0"}),
        ("check_file_exists", {"path": "/x", "type": "directory"}),
        ("check_command_exit", {"cmd": "t", "args": "a,b", "expected_exit": "-1"}),
        ("check_http_endpoint", {"url": "https://x:8443/p", "method": "head", "expected_status": "204"}),
    ],
)
def test_validate_params_accepts_well_formed_parameters(
    capability: str, params: dict[str, str]
) -> None:
    assert validate_params(capability, params) is None


@pytest.mark.unit
def test_parse_params_for_chains_token_and_value_checks() -> None:
    good = parse_params_for(
        PlannedCheck("V1", "check_file_exists", "check_file_exists path=/etc type=directory")
    )
    bad = parse_params_for(PlannedCheck("V2", "check_file_exists", "check_file_exists path=etc"))

    assert good.ok and good.params == {"path": "/etc", "type": "directory"}
    assert bad.reason == "invalid_path:not_absolute"
