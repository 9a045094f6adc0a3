"""
engine.py - Evaluation of one CellContract against one cell snapshot.

Order of work for a contract:
1. Side checks (format, format category, comment) run whenever configured,
   whether or not the value check passes. A missing format or comment is
   fed to the predicate as None.
2. The value check is dispatched on the cell's runtime type:
   - native type supported by the check -> read the literal value
   - formula cell -> evaluate, then use the computed value if its type is
     supported, else record a failure naming the computed type
   - anything else (wrong type, absent cell) -> record a failure naming
     the type, or "<EMPTY>" for an absent cell
3. EmptyCheck accepts absent, blank, and whitespace-only text cells and
   applies the same rule to a formula's computed value. Formula results
   are evaluated each time since volatile formulas may change.

Failures go to the FailureCollector; nothing here raises for a failed
check, and one contract's failures never stop the next contract.

Design principles:
1. The formula thunk on a snapshot is only called on the formula path.
2. Format-category detection is a pure function of the format string.
"""

from __future__ import annotations

from typing import Optional

from openpyxl.styles.numbers import is_date_format

from collector import FailureCollector
from contracts import CellContract, EmptyCheck, ValueCheck
from logging_config import get_logger
from models import CellSnapshot, CellType, FormatCategory

logger = get_logger(__name__)

EMPTY_LABEL = "<EMPTY>"


def detect_format_category(format_string: Optional[str]) -> FormatCategory:
    """Classify a display-format string. First matching rule wins."""
    if format_string is None:
        return FormatCategory.OTHER
    fmt = format_string.lower()

    if fmt == "general":
        return FormatCategory.GENERAL
    if "%" in fmt:
        return FormatCategory.PERCENTAGE
    if is_date_format(fmt):
        return FormatCategory.DATE
    if "h" in fmt or "s" in fmt or "am/pm" in fmt:
        return FormatCategory.TIME
    if "#,##0" in fmt or "currency" in fmt:
        return FormatCategory.CURRENCY
    if "_($" in fmt or "accounting" in fmt:
        return FormatCategory.ACCOUNTING
    if "e+" in fmt:
        return FormatCategory.SCIENTIFIC
    if "?/" in fmt:
        return FormatCategory.FRACTION
    if "@" in fmt:
        return FormatCategory.TEXT
    return FormatCategory.OTHER


def evaluate_contract(
    contract: CellContract,
    cell: Optional[CellSnapshot],
    collector: FailureCollector,
) -> int:
    """Run every configured check of `contract` against `cell`.

    Returns the number of violations recorded for this contract.
    """
    before = len(collector)
    location = contract.full_address

    _check_side_properties(contract, cell, collector, location)

    check = contract.value_check
    if isinstance(check, EmptyCheck):
        _check_empty(check, cell, collector, location)
    elif check is not None:
        _check_value(check, cell, collector, location)

    recorded = len(collector) - before
    logger.debug(
        "contract_evaluated | location=%s | check=%s | violations=%s",
        location,
        type(check).__name__ if check is not None else "exists",
        recorded,
    )
    return recorded


def _check_side_properties(
    contract: CellContract,
    cell: Optional[CellSnapshot],
    collector: FailureCollector,
    location: str,
) -> None:
    number_format = cell.number_format if cell is not None else None
    comment = cell.comment if cell is not None else None

    if contract.expected_format is not None:
        failure = contract.expected_format.apply(number_format)
        if failure is not None:
            collector.record(location, f"[cell format at {location} to {contract.expected_format}] {failure}")

    if contract.format_category is not None:
        actual = detect_format_category(number_format)
        if actual is not contract.format_category:
            collector.record(
                location,
                f"[expected format category at {location}] "
                f"expected {contract.format_category.value} but was {actual.value}",
            )

    if contract.comment is not None:
        failure = contract.comment.apply(comment)
        if failure is not None:
            collector.record(location, f"[cell comment at {location} to {contract.comment}] {failure}")


def _check_value(
    check: ValueCheck,
    cell: Optional[CellSnapshot],
    collector: FailureCollector,
    location: str,
) -> None:
    check_name = type(check).__name__

    if cell is not None and cell.cell_type in check.supported_types:
        messages = check.check(check.from_cell(cell), location)
    elif cell is not None and cell.is_formula:
        computed = cell.computed()
        logger.debug(
            "formula_evaluated | location=%s | formula=%r | computed_type=%s",
            location,
            cell.formula,
            computed.cell_type.value,
        )
        if computed.cell_type in check.supported_types:
            messages = check.check(check.from_computed(computed), location)
        else:
            messages = [
                f"{check_name}: cannot add assertion for formula cell {location} "
                f"computed as {computed.cell_type.value}: '{cell.formula}'"
            ]
    else:
        actual_type = EMPTY_LABEL if cell is None else cell.cell_type.value
        shown = "" if cell is None else cell.display_value
        messages = [f"{check_name}: cannot add assertion for cell {location} of type {actual_type}: '{shown}'"]

    for message in messages:
        collector.record(location, message)


def _check_empty(
    check: EmptyCheck,
    cell: Optional[CellSnapshot],
    collector: FailureCollector,
    location: str,
) -> None:
    if cell is None:
        return
    if cell.is_formula:
        computed = cell.computed()
        logger.debug(
            "formula_evaluated | location=%s | formula=%r | computed_type=%s",
            location,
            cell.formula,
            computed.cell_type.value,
        )
        empty = computed.cell_type in check.supported_types and check.from_computed(computed) == ""
    else:
        empty = cell.cell_type in check.supported_types and check.from_cell(cell) == ""

    if not empty:
        for message in check.check(cell.display_value or cell.cell_type.value, location):
            collector.record(location, message)
