"""
contracts.py - Per-cell assertions.

A CellContract bundles everything asserted about one cell address:

    value_check        at most one of NumberCheck, TextCheck, BooleanCheck,
                       FormulaTextCheck, ErrorTextCheck, DateTimeCheck,
                       EmptyCheck; None means "exists" (side checks only)
    expected_format    TextPredicate against the display-format string
    format_category    expected FormatCategory of the display format
    comment            TextPredicate against the cell comment

Contracts are immutable. `with_format()`, `with_comment()` and
`with_format_category()` return modified copies, and the session binds a
copy to the current sheet name when the contract is registered.

Each value check declares which cell types it can read directly and how to
extract its value from a literal cell or from a formula's computed value.
The dispatch between those paths lives in engine.py.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, ClassVar, Optional, Union

from dateutil import parser as dateparser
from dateutil import tz
from openpyxl.utils.cell import coordinate_from_string
from openpyxl.utils.exceptions import CellCoordinatesException
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from models import CellSnapshot, CellType, ComputedValue, FormatCategory, serial_to_datetime
from number_predicates import NumberPredicate
from text_predicates import EqualsText, TextPredicate


class ValueCheck(BaseModel, ABC):
    """Base class for the value part of a contract."""

    model_config = ConfigDict(frozen=True)

    supported_types: ClassVar[frozenset[CellType]] = frozenset()

    @abstractmethod
    def from_cell(self, cell: CellSnapshot) -> Any:
        """Value to check, read from a literal cell."""

    @abstractmethod
    def from_computed(self, computed: ComputedValue) -> Any:
        """Value to check, read from a formula's computed result."""

    @abstractmethod
    def check(self, value: Any, location: str) -> list[str]:
        """Return one message per failed expectation (empty when all pass)."""

    @abstractmethod
    def describe(self) -> str:
        """Short rendering used inside the contract description."""


class NumberCheck(ValueCheck):
    supported_types: ClassVar[frozenset[CellType]] = frozenset({CellType.NUMERIC})

    predicate: NumberPredicate

    def from_cell(self, cell: CellSnapshot) -> float:
        return float(cell.value)

    def from_computed(self, computed: ComputedValue) -> float:
        return float(computed.value)

    def check(self, value: float, location: str) -> list[str]:
        failure = self.predicate.apply(value)
        if failure is None:
            return []
        return [f"[number at {location} to {self.predicate}] {failure}"]

    def describe(self) -> str:
        return f"number is {self.predicate}"


class _TextValueCheck(ValueCheck):
    subject: ClassVar[str] = "text"

    predicate: TextPredicate

    def check(self, value: Optional[str], location: str) -> list[str]:
        failure = self.predicate.apply(value)
        if failure is None:
            return []
        return [f"[{self.subject} at {location} to {self.predicate}] {failure}"]

    def describe(self) -> str:
        return f"{self.subject} is {self.predicate}"


class TextCheck(_TextValueCheck):
    supported_types: ClassVar[frozenset[CellType]] = frozenset({CellType.STRING})

    def from_cell(self, cell: CellSnapshot) -> Optional[str]:
        return None if cell.value is None else str(cell.value)

    def from_computed(self, computed: ComputedValue) -> Optional[str]:
        return computed.string_value


class FormulaTextCheck(_TextValueCheck):
    supported_types: ClassVar[frozenset[CellType]] = frozenset({CellType.FORMULA})
    subject: ClassVar[str] = "formula text"

    def from_cell(self, cell: CellSnapshot) -> Optional[str]:
        return cell.formula

    def from_computed(self, computed: ComputedValue) -> Optional[str]:
        return computed.string_value


class ErrorTextCheck(_TextValueCheck):
    supported_types: ClassVar[frozenset[CellType]] = frozenset({CellType.ERROR})
    subject: ClassVar[str] = "error text"

    def from_cell(self, cell: CellSnapshot) -> Optional[str]:
        return None if cell.value is None else str(cell.value)

    def from_computed(self, computed: ComputedValue) -> Optional[str]:
        return computed.string_value


class BooleanCheck(ValueCheck):
    supported_types: ClassVar[frozenset[CellType]] = frozenset({CellType.BOOLEAN})

    expected: bool

    def from_cell(self, cell: CellSnapshot) -> bool:
        return bool(cell.value)

    def from_computed(self, computed: ComputedValue) -> bool:
        return bool(computed.value)

    def check(self, value: bool, location: str) -> list[str]:
        if value == self.expected:
            return []
        return [f"[boolean check at {location}] Expecting actual: {value} to be equal to: {self.expected}"]

    def describe(self) -> str:
        return f"value is {self.expected}"


def _to_datetime(value: Any) -> Any:
    """Parse strings with dateutil; aware values become naive UTC.

    Cell datetimes carry no zone, so an aware expectation is moved to UTC
    and compared as wall-clock time.
    """
    if isinstance(value, str):
        value = dateparser.parse(value)
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(tz.UTC).replace(tzinfo=None)
    return value


class DateTimeCheck(ValueCheck):
    """Date/time expectations on a numeric (date serial) cell.

    Any combination may be set; each failing expectation is reported on
    its own. String datetimes are parsed with dateutil.
    """

    supported_types: ClassVar[frozenset[CellType]] = frozenset({CellType.NUMERIC})

    before: Optional[datetime] = None
    after: Optional[datetime] = None
    equal_to: Optional[datetime] = None
    close_to: Optional[datetime] = None
    tolerance: Optional[timedelta] = None
    year: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None
    hour: Optional[int] = None
    minute: Optional[int] = None
    second: Optional[int] = None

    @field_validator("before", "after", "equal_to", "close_to", mode="before")
    @classmethod
    def _parse_datetime(cls, value: Any) -> Any:
        return _to_datetime(value)

    @model_validator(mode="after")
    def _tolerance_pairs(self) -> "DateTimeCheck":
        if (self.close_to is None) != (self.tolerance is None):
            raise ValueError("close_to and tolerance must be given together")
        if self.tolerance is not None and self.tolerance < timedelta(0):
            raise ValueError("tolerance must not be negative")
        return self

    def from_cell(self, cell: CellSnapshot) -> Optional[datetime]:
        if cell.date_value is not None:
            return cell.date_value
        return _serial_to_datetime(cell.value)

    def from_computed(self, computed: ComputedValue) -> Optional[datetime]:
        if computed.date_value is not None:
            return computed.date_value
        return _serial_to_datetime(computed.value)

    def check(self, value: Optional[datetime], location: str) -> list[str]:
        label = f"[datetime at {location}]"
        if value is None:
            return [f"{label} Expecting actual not to be null"]

        failures: list[str] = []
        if self.before is not None and not value < self.before:
            failures.append(f"{label} Expecting actual: {value} to be strictly before: {self.before}")
        if self.after is not None and not value > self.after:
            failures.append(f"{label} Expecting actual: {value} to be strictly after: {self.after}")
        if self.equal_to is not None and value != self.equal_to:
            failures.append(f"{label} Expecting actual: {value} to be equal to: {self.equal_to}")
        if self.close_to is not None and self.tolerance is not None:
            if abs(value - self.close_to) > self.tolerance:
                failures.append(
                    f"{label} Expecting actual: {value} to be close to: {self.close_to} "
                    f"within {self.tolerance}"
                )
        for part in ("year", "month", "day", "hour", "minute", "second"):
            expected = getattr(self, part)
            actual = getattr(value, part)
            if expected is not None and actual != expected:
                failures.append(f"{label} Expecting {part} of {value} to be {expected} but was {actual}")
        return failures

    def describe(self) -> str:
        parts = []
        for name in ("before", "after", "equal_to", "year", "month", "day", "hour", "minute", "second"):
            value = getattr(self, name)
            if value is not None:
                parts.append(f"{name}={value}")
        if self.close_to is not None:
            parts.append(f"close_to={self.close_to}±{self.tolerance}")
        return f"datetime is ({', '.join(parts)})"


def _serial_to_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value
    return serial_to_datetime(float(value))


class EmptyCheck(ValueCheck):
    """Cell is absent, blank, or whitespace-only text (formula results included)."""

    supported_types: ClassVar[frozenset[CellType]] = frozenset({CellType.BLANK, CellType.STRING})

    def from_cell(self, cell: CellSnapshot) -> str:
        return "" if cell.value is None else str(cell.value).strip()

    def from_computed(self, computed: ComputedValue) -> str:
        return "" if computed.value is None else str(computed.value).strip()

    def check(self, value: Any, location: str) -> list[str]:
        if value in (None, ""):
            return []
        return [f"Cell {location} expected to be empty but was not"]

    def describe(self) -> str:
        return "is EMPTY"


TextLike = Union[TextPredicate, str]


def as_text_predicate(expected: TextLike) -> TextPredicate:
    if isinstance(expected, TextPredicate):
        return expected
    return EqualsText(expected=expected)


class CellContract(BaseModel):
    """Everything asserted about one cell address."""

    model_config = ConfigDict(frozen=True)

    address: str
    value_check: Optional[ValueCheck] = None
    expected_format: Optional[TextPredicate] = None
    format_category: Optional[FormatCategory] = None
    comment: Optional[TextPredicate] = None
    sheet_name: Optional[str] = None

    @field_validator("address", mode="before")
    @classmethod
    def _valid_address(cls, value: Any) -> str:
        if value is None or not str(value).strip():
            raise ValueError("cell address cannot be null nor blank")
        text = str(value).strip()
        try:
            column, row = coordinate_from_string(text)
        except (CellCoordinatesException, ValueError) as exc:
            raise ValueError(f"invalid cell address {text!r}: {exc}") from exc
        return f"{column.upper()}{row}"

    @property
    def full_address(self) -> str:
        if self.sheet_name is None:
            return self.address
        return f"{self.sheet_name}!{self.address}"

    def with_format(self, expected: TextLike) -> "CellContract":
        return self.model_copy(update={"expected_format": as_text_predicate(expected)})

    def with_comment(self, expected: TextLike) -> "CellContract":
        return self.model_copy(update={"comment": as_text_predicate(expected)})

    def with_format_category(self, category: FormatCategory) -> "CellContract":
        return self.model_copy(update={"format_category": FormatCategory(category)})

    def bound_to(self, sheet_name: str) -> "CellContract":
        """Copy labelled with the sheet it is evaluated against."""
        return self.model_copy(update={"sheet_name": sheet_name})

    def __str__(self) -> str:
        check = "exists" if self.value_check is None else self.value_check.describe()
        text = f"(Cell {self.full_address} {check})"
        if self.expected_format is not None:
            text += f".withFormat({self.expected_format})"
        if self.comment is not None:
            text += f".withComment({self.comment})"
        if self.format_category is not None:
            text += f".withFormatCategory({self.format_category.value})"
        return text


__all__ = [
    "BooleanCheck",
    "CellContract",
    "DateTimeCheck",
    "EmptyCheck",
    "ErrorTextCheck",
    "FormulaTextCheck",
    "NumberCheck",
    "TextCheck",
    "ValueCheck",
]
