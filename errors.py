"""
errors.py - Exception taxonomy.

Four families, each raised at a different moment:

    construction  -> pydantic ValidationError (a ValueError) from the models
    decode        -> PredicateDecodeError / PredicateEncodeError
    evaluation    -> never raised per cell; collected and surfaced once as
                     AggregatedAssertionError when a session closes
    resource      -> DocumentError / DocumentReadError
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from models import Violation


class PredicateDecodeError(ValueError):
    """Malformed wire input for a number or text predicate."""


class PredicateEncodeError(ValueError):
    """Predicate instance that has no wire representation."""


class DocumentError(OSError):
    """Document could not be read or released."""


class DocumentReadError(DocumentError):
    """Document source is missing, unreadable, or not a workbook."""


class AggregatedAssertionError(AssertionError):
    """Every violation recorded during a session, reported together."""

    def __init__(self, violations: list[Violation]) -> None:
        self.violations = list(violations)
        super().__init__(format_violations(self.violations))


def format_violations(violations: list[Violation]) -> str:
    count = len(violations)
    noun = "failure" if count == 1 else "failures"
    lines = [f"{count} cell assertion {noun}"]
    for index, violation in enumerate(violations, start=1):
        lines.append(f"  {index}) {violation}")
    return "\n".join(lines)
