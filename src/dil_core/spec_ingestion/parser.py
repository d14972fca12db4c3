"""
dil-core tolerant parser

File: src/dil_core/spec_ingestion/parser.py

Purpose
- Converts raw DIL text into a ``ParsedSpec`` artifact table.

Functional requirements
- Never raises for malformed input; structural anomalies become ``ParseIssue`` entries
  and missing header fields default to ``"unknown"``.
- Only constructs the corpus actually uses are recognized: top-level sections directly
  inside ``system "<id>" { ... }``, ``intent``/``constraint``/``decision``/``validate``
  blocks, bracketed lists, and quoted or bare scalars.
- Missing data is never guessed.

Non-functional requirements
- Pure and deterministic: no I/O, no clock, no shared state.
- Line classification is an explicit state machine keyed by the active section.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Final

import structlog

from dil_core.constants import UNKNOWN
from dil_core.spec_ingestion.parsed_spec import (
    ParsedConstraint,
    ParsedDecision,
    ParsedIntent,
    ParsedSpec,
    ParsedValidation,
    ParseIssue,
)

logger = structlog.get_logger(__name__)

_LINE_SPLIT_RE: Final[re.Pattern[str]] = re.compile(r"\r?\n", re.ASCII)
_BOM: Final[str] = "\ufeff"
_SYSTEM_RE: Final[re.Pattern[str]] = re.compile(r'\bsystem\s+"([^"]+)"\s*\{', re.ASCII)
_SECTION_HEADER_RE: Final[re.Pattern[str]] = re.compile(
    r"^(about|capabilities|intents|constraints|decisions|validations|change|implementation_notes)"
    r"\s*\{\s*$",
    re.ASCII,
)
_CAPABILITY_RE: Final[re.Pattern[str]] = re.compile(r"^([A-Za-z][A-Za-z0-9_]*)\s*$", re.ASCII)
_INTENT_RE: Final[re.Pattern[str]] = re.compile(r"^intent\s+([A-Za-z][A-Za-z0-9_]*)\b", re.ASCII)
_CONSTRAINT_RE: Final[re.Pattern[str]] = re.compile(
    r"^constraint\s+([A-Za-z][A-Za-z0-9_]*)\b", re.ASCII
)
_SEVERITY_RE: Final[re.Pattern[str]] = re.compile(
    r"^severity\s*:\s*([A-Za-z][A-Za-z0-9_]*)\s*$", re.ASCII
)
_DECISION_RE: Final[re.Pattern[str]] = re.compile(
    r"^decision\s+([A-Za-z][A-Za-z0-9_]*)\b", re.ASCII
)
_SUPPORTS_RE: Final[re.Pattern[str]] = re.compile(r"^supports\s*:\s*(.+)$", re.ASCII)
_RESPECTS_RE: Final[re.Pattern[str]] = re.compile(r"^respects\s*:\s*(.+)$", re.ASCII)
_VALIDATE_RE: Final[re.Pattern[str]] = re.compile(
    r"^validate\s+([A-Za-z][A-Za-z0-9_\-]*)\b", re.ASCII
)
_REQUIRES_CAPABILITY_RE: Final[re.Pattern[str]] = re.compile(
    r"^requires_capability\s*:\s*(.+)$", re.ASCII
)
_BRACKET_RE: Final[re.Pattern[str]] = re.compile(r"\[(.*)\]", re.ASCII)
_DOUBLE_QUOTED_RE: Final[re.Pattern[str]] = re.compile(r'^"(.+)"$', re.ASCII)
_SINGLE_QUOTED_RE: Final[re.Pattern[str]] = re.compile(r"^'(.+)'$", re.ASCII)
_QUOTED_SCALAR_RE: Final[re.Pattern[str]] = re.compile(r'^"([^"]+)"$|^\'([^\']+)\'$', re.ASCII)


class _Section(StrEnum):
    NONE = "none"
    ABOUT = "about"
    CAPABILITIES = "capabilities"
    INTENTS = "intents"
    CONSTRAINTS = "constraints"
    DECISIONS = "decisions"
    VALIDATIONS = "validations"
    CHANGE = "change"
    IMPLEMENTATION_NOTES = "implementation_notes"


@dataclass(slots=True)
class _DecisionDraft:
    id: str
    supports: list[str] = field(default_factory=list)
    respects: list[str] = field(default_factory=list)


@dataclass(slots=True)
class _ValidationDraft:
    id: str
    requires_capability: str | None = None


@dataclass(slots=True)
class _ParseState:
    """Mutable accumulator; frozen into a ``ParsedSpec`` once the scan ends."""

    spec_version: str = UNKNOWN
    system_id: str = UNKNOWN
    sections_raw: dict[str, list[str]] = field(default_factory=dict)
    capabilities: list[str] = field(default_factory=list)
    intents: dict[str, ParsedIntent] = field(default_factory=dict)
    constraints: dict[str, ParsedConstraint] = field(default_factory=dict)
    decisions: dict[str, _DecisionDraft] = field(default_factory=dict)
    validations: dict[str, _ValidationDraft] = field(default_factory=dict)
    issues: list[ParseIssue] = field(default_factory=list)

    section: _Section = _Section.NONE
    section_depth: int = -1
    current_decision: str | None = None
    current_validation: str | None = None

    def enter_section(self, section: _Section, depth: int) -> None:
        self.section = section
        self.section_depth = depth
        self.sections_raw[section.value] = []
        self.current_decision = None
        self.current_validation = None

    def leave_section(self) -> None:
        self.section = _Section.NONE
        self.section_depth = -1
        self.current_decision = None
        self.current_validation = None


def strip_comment(line: str) -> str:
    """Drop everything from the first ``#``; there is no escape syntax."""

    index = line.find("#")
    return line if index < 0 else line[:index]


def parse_bracket_list(value: str) -> list[str]:
    """Parse ``[A, "B", 'C']`` into bare identifiers; no brackets yields ``[]``."""

    match = _BRACKET_RE.search(value)
    if match is None:
        return []
    inner = match.group(1).strip()
    if not inner:
        return []
    items: list[str] = []
    for part in inner.split(","):
        item = part.strip()
        if not item:
            continue
        item = _DOUBLE_QUOTED_RE.sub(r"\1", item)
        item = _SINGLE_QUOTED_RE.sub(r"\1", item)
        items.append(item)
    return items


def parse_quoted_or_bare(value: str) -> str | None:
    text = value.strip()
    if not text:
        return None
    match = _QUOTED_SCALAR_RE.match(text)
    if match is not None:
        text = match.group(1) if match.group(1) is not None else match.group(2)
    return text.strip() or None


def _brace_delta(line: str) -> int:
    return line.count("{") - line.count("}")


def parse_dil(raw_text: str) -> ParsedSpec:
    """Parse one DIL document into an immutable artifact table."""

    state = _ParseState()
    lines = _LINE_SPLIT_RE.split(raw_text)

    _scan_header(lines, state)
    _scan_system_id(lines, state)
    in_system = _scan_sections(lines, state)

    if not in_system:
        state.issues.append(
            ParseIssue(
                message="System block was not detected; validation may be unreliable.",
                line=1,
            )
        )

    parsed = _freeze(raw_text, state)
    logger.debug(
        "spec_parsed",
        system_id=parsed.system_id,
        spec_version=parsed.spec_version,
        issue_count=len(parsed.issues),
    )
    return parsed


def _scan_header(lines: list[str], state: _ParseState) -> None:
    for index, raw_line in enumerate(lines):
        text = strip_comment(raw_line).strip().lstrip(_BOM).strip()
        if not text:
            continue
        if text.startswith("DIL:spec"):
            state.spec_version = text
        else:
            state.issues.append(
                ParseIssue(
                    message=(
                        "Missing or invalid spec header. "
                        f"Expected 'DIL:spec v<MAJOR>' but got '{text}'."
                    ),
                    line=index + 1,
                    column=1,
                )
            )
        return


def _scan_system_id(lines: list[str], state: _ParseState) -> None:
    for raw_line in lines:
        match = _SYSTEM_RE.search(strip_comment(raw_line))
        if match is not None:
            state.system_id = match.group(1).strip() or UNKNOWN
            break
    if state.system_id == UNKNOWN:
        state.issues.append(
            ParseIssue(
                message='Missing system declaration. Expected: system "ID" { ... }',
                line=1,
            )
        )


def _scan_sections(lines: list[str], state: _ParseState) -> bool:
    in_system = False
    depth = 0

    for raw_line in lines:
        line = strip_comment(raw_line)

        if not in_system:
            if _SYSTEM_RE.search(line) is not None:
                in_system = True
                depth += _brace_delta(line)
            continue

        trimmed = line.strip()

        if depth == 1:
            header = _SECTION_HEADER_RE.match(trimmed)
            if header is not None:
                state.enter_section(_Section(header.group(1)), depth + 1)

        if state.section is not _Section.NONE:
            state.sections_raw[state.section.value].append(raw_line)
            _classify_line(state, trimmed)

        depth += _brace_delta(line)

        if state.section is not _Section.NONE and depth < state.section_depth:
            state.leave_section()

        if depth <= 0:
            break

    return in_system


def _classify_line(state: _ParseState, trimmed: str) -> None:
    section = state.section
    if section is _Section.CAPABILITIES:
        _on_capability_line(state, trimmed)
    elif section is _Section.INTENTS:
        _on_intent_line(state, trimmed)
    elif section is _Section.CONSTRAINTS:
        _on_constraint_line(state, trimmed)
    elif section is _Section.DECISIONS:
        _on_decision_line(state, trimmed)
    elif section is _Section.VALIDATIONS:
        _on_validation_line(state, trimmed)


def _on_capability_line(state: _ParseState, trimmed: str) -> None:
    match = _CAPABILITY_RE.match(trimmed)
    if match is not None and match.group(1) not in state.capabilities:
        state.capabilities.append(match.group(1))


def _on_intent_line(state: _ParseState, trimmed: str) -> None:
    match = _INTENT_RE.match(trimmed)
    if match is not None:
        state.intents.setdefault(match.group(1), ParsedIntent(id=match.group(1)))


def _on_constraint_line(state: _ParseState, trimmed: str) -> None:
    match = _CONSTRAINT_RE.match(trimmed)
    if match is not None:
        state.constraints.setdefault(match.group(1), ParsedConstraint(id=match.group(1)))

    severity = _SEVERITY_RE.match(trimmed)
    if severity is not None and state.constraints:
        # Severity binds to the most recently registered constraint, not a block cursor.
        last_id = next(reversed(state.constraints))
        state.constraints[last_id] = ParsedConstraint(id=last_id, severity=severity.group(1))


def _on_decision_line(state: _ParseState, trimmed: str) -> None:
    match = _DECISION_RE.match(trimmed)
    if match is not None:
        state.current_decision = match.group(1)
        state.decisions.setdefault(match.group(1), _DecisionDraft(id=match.group(1)))

    if state.current_decision is None:
        return
    draft = state.decisions[state.current_decision]

    supports = _SUPPORTS_RE.match(trimmed)
    if supports is not None:
        draft.supports = parse_bracket_list(supports.group(1))
    respects = _RESPECTS_RE.match(trimmed)
    if respects is not None:
        draft.respects = parse_bracket_list(respects.group(1))


def _on_validation_line(state: _ParseState, trimmed: str) -> None:
    match = _VALIDATE_RE.match(trimmed)
    if match is not None:
        state.current_validation = match.group(1)
        state.validations.setdefault(match.group(1), _ValidationDraft(id=match.group(1)))

    if state.current_validation is None:
        return
    requires = _REQUIRES_CAPABILITY_RE.match(trimmed)
    if requires is not None:
        draft = state.validations[state.current_validation]
        draft.requires_capability = parse_quoted_or_bare(requires.group(1))


def _freeze(raw_text: str, state: _ParseState) -> ParsedSpec:
    return ParsedSpec(
        raw_text=raw_text,
        spec_version=state.spec_version,
        system_id=state.system_id,
        sections_raw={
            name: "".join(f"{line}\n" for line in lines)
            for name, lines in state.sections_raw.items()
        },
        capabilities=tuple(state.capabilities),
        intents=dict(state.intents),
        constraints=dict(state.constraints),
        decisions={
            key: ParsedDecision(
                id=draft.id,
                supports=tuple(draft.supports),
                respects=tuple(draft.respects),
            )
            for key, draft in state.decisions.items()
        },
        validations={
            key: ParsedValidation(id=draft.id, requires_capability=draft.requires_capability)
            for key, draft in state.validations.items()
        },
        issues=tuple(state.issues),
    )


__all__ = ["parse_bracket_list", "parse_dil", "parse_quoted_or_bare", "strip_comment"]
