"""
builders.py - Fluent factory surface for writing assertions.

    with assert_that_workbook("report.xlsx") as wb:
        wb.select_sheet("Numbers").register_all(
            cell_at("A1").with_number(equal_to(2.0)).with_format("0.00"),
            cell_at("A2").with_number(close_to(1.4142, 0.0001)),
            cell_at("B1").with_text(containing("report").ignoring_case()),
            cell_at("C1").with_boolean(of_true()),
            cell_at("D1").empty(),
        )

`equal_to` follows the type of its argument: a bool gives a boolean
expectation, a str an EqualsText, anything numeric an EqualTo.
"""

from __future__ import annotations

from typing import Any, Union

from contracts import (
    BooleanCheck,
    CellContract,
    DateTimeCheck,
    EmptyCheck,
    ErrorTextCheck,
    FormulaTextCheck,
    NumberCheck,
    TextCheck,
    TextLike,
    as_text_predicate,
)
from document import Source, WorkbookDocument
from number_predicates import (
    CloseToOffset,
    CloseToPercent,
    EqualTo,
    GreaterOrEqual,
    GreaterThan,
    LessOrEqual,
    LessThan,
    NumberPredicate,
    OutsideRange,
    WithinRange,
)
from session import AssertionSession, open_session
from text_predicates import ContainsText, EqualsText, MatchesPattern


class CellAt:
    """Starting point for one cell's contract; pick exactly one value check."""

    def __init__(self, address: str) -> None:
        self.address = address

    def with_number(self, predicate: NumberPredicate) -> CellContract:
        return CellContract(address=self.address, value_check=NumberCheck(predicate=predicate))

    def with_text(self, expected: TextLike) -> CellContract:
        return CellContract(address=self.address, value_check=TextCheck(predicate=as_text_predicate(expected)))

    def with_boolean(self, expected: bool) -> CellContract:
        return CellContract(address=self.address, value_check=BooleanCheck(expected=expected))

    def with_formula_text(self, expected: TextLike) -> CellContract:
        return CellContract(
            address=self.address,
            value_check=FormulaTextCheck(predicate=as_text_predicate(expected)),
        )

    def with_error_text(self, expected: TextLike) -> CellContract:
        return CellContract(
            address=self.address,
            value_check=ErrorTextCheck(predicate=as_text_predicate(expected)),
        )

    def with_date_time(self, **expectations: Any) -> CellContract:
        """Date checks, e.g. with_date_time(after="2024-01-01", month=3)."""
        return CellContract(address=self.address, value_check=DateTimeCheck(**expectations))

    def empty(self) -> CellContract:
        return CellContract(address=self.address, value_check=EmptyCheck())

    def exists(self) -> CellContract:
        return CellContract(address=self.address)


def cell_at(address: str) -> CellAt:
    return CellAt(address)


def equal_to(expected: Union[bool, str, float]) -> Union[bool, EqualsText, EqualTo]:
    if isinstance(expected, bool):
        return expected
    if isinstance(expected, str):
        return EqualsText(expected=expected)
    return EqualTo(expected=expected)


def greater_than(threshold: float) -> GreaterThan:
    return GreaterThan(threshold=threshold)


def greater_than_or_equal_to(threshold: float) -> GreaterOrEqual:
    return GreaterOrEqual(threshold=threshold)


def less_than(threshold: float) -> LessThan:
    return LessThan(threshold=threshold)


def less_than_or_equal_to(threshold: float) -> LessOrEqual:
    return LessOrEqual(threshold=threshold)


def close_to(expected: float, tolerance: float) -> CloseToOffset:
    """|actual - expected| <= tolerance."""
    return CloseToOffset(expected=expected, tolerance=tolerance)


def close_to_percent(expected: float, percent: float) -> CloseToPercent:
    """|actual - expected| <= |expected| * percent / 100."""
    return CloseToPercent(expected=expected, percent=percent)


def within_range(
    lower: float,
    upper: float,
    exclusive_lower: bool = False,
    exclusive_upper: bool = False,
) -> WithinRange:
    return WithinRange(
        lower=lower,
        upper=upper,
        exclusive_lower=exclusive_lower,
        exclusive_upper=exclusive_upper,
    )


def outside_range(
    lower: float,
    upper: float,
    exclusive_lower: bool = False,
    exclusive_upper: bool = False,
) -> OutsideRange:
    return OutsideRange(
        lower=lower,
        upper=upper,
        exclusive_lower=exclusive_lower,
        exclusive_upper=exclusive_upper,
    )


def containing(substring: str) -> ContainsText:
    return ContainsText(substring=substring)


def matching(pattern: str) -> MatchesPattern:
    return MatchesPattern(pattern=pattern)


def of_true() -> bool:
    return True


def of_false() -> bool:
    return False


def assert_that_workbook(source: Union[Source, WorkbookDocument]) -> AssertionSession:
    """Open a session on `source`, positioned on the first sheet."""
    return open_session(source)
