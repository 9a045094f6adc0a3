"""
number_predicates.py - Numeric checks applied to a single cell value.

Nine variants, all immutable:

    EqualTo             == expected
    GreaterThan         >  threshold
    GreaterOrEqual      >= threshold
    LessThan            <  threshold
    LessOrEqual         <= threshold
    CloseToOffset       |actual - expected| <= tolerance
    CloseToPercent      |actual - expected| <= |expected| * percent / 100
    WithinRange         actual in [lower..upper] (either end may be open)
    OutsideRange        actual not in [lower..upper]

Every predicate exposes `apply(actual)` which returns None on success or a
human-readable violation string, and `str(predicate)` which renders the
compact description used both in violation text and in "as" labels
(for example "∈ [1.0..10.0)").

Comparisons follow IEEE-754 float semantics: NaN never equals NaN and
infinities compare with ==.
Closeness and range operands reject NaN at construction, so every
constructible predicate has a wire form.

`close_in_ulps(actual, expected, max_ulps)` is a standalone closeness
check measured in units in the last place of the IEEE-754 encoding.
"""

from __future__ import annotations

import math
import struct
from abc import ABC, abstractmethod
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator


def format_number(value: float) -> str:
    """Render a float the way descriptions and the wire format print it."""
    return repr(float(value))


def _reject_nan(value: float) -> float:
    if math.isnan(value):
        raise ValueError("NaN is not a valid operand")
    return value


Operand = Annotated[float, AfterValidator(_reject_nan)]


class NumberPredicate(BaseModel, ABC):
    """Base class for the numeric predicate family."""

    model_config = ConfigDict(frozen=True)

    @abstractmethod
    def passes(self, actual: float) -> bool:
        """True when `actual` satisfies the predicate."""

    def apply(self, actual: float) -> Optional[str]:
        """Return None when `actual` satisfies the predicate, else the violation."""
        if self.passes(float(actual)):
            return None
        return f"Expected number to be {self} but was {format_number(actual)}"


class EqualTo(NumberPredicate):
    expected: float

    def passes(self, actual: float) -> bool:
        return actual == self.expected

    def __str__(self) -> str:
        return f"== {format_number(self.expected)}"


class GreaterThan(NumberPredicate):
    threshold: float

    def passes(self, actual: float) -> bool:
        return actual > self.threshold

    def __str__(self) -> str:
        return f"> {format_number(self.threshold)}"


class GreaterOrEqual(NumberPredicate):
    threshold: float

    def passes(self, actual: float) -> bool:
        return actual >= self.threshold

    def __str__(self) -> str:
        return f">= {format_number(self.threshold)}"


class LessThan(NumberPredicate):
    threshold: float

    def passes(self, actual: float) -> bool:
        return actual < self.threshold

    def __str__(self) -> str:
        return f"< {format_number(self.threshold)}"


class LessOrEqual(NumberPredicate):
    threshold: float

    def passes(self, actual: float) -> bool:
        return actual <= self.threshold

    def __str__(self) -> str:
        return f"<= {format_number(self.threshold)}"


class CloseToOffset(NumberPredicate):
    """Closeness by absolute offset; both interval ends are inclusive."""

    expected: Operand
    tolerance: Operand = Field(..., ge=0)

    def passes(self, actual: float) -> bool:
        return abs(actual - self.expected) <= self.tolerance

    def __str__(self) -> str:
        return f"~{format_number(self.expected)}±{format_number(self.tolerance)}"


class CloseToPercent(NumberPredicate):
    """Closeness by a percentage of the expected value; ends are inclusive."""

    expected: Operand
    percent: Operand = Field(..., ge=0)

    def passes(self, actual: float) -> bool:
        allowed = abs(self.expected * self.percent / 100.0)
        return abs(actual - self.expected) <= allowed

    def __str__(self) -> str:
        return f"~{format_number(self.expected)}±{format_number(self.percent)}%"


class _RangePredicate(NumberPredicate):
    lower: Operand
    upper: Operand
    exclusive_lower: bool = False
    exclusive_upper: bool = False

    @model_validator(mode="after")
    def _check_bounds(self) -> "_RangePredicate":
        if self.upper < self.lower:
            raise ValueError(
                f"upper must be >= lower (got {format_number(self.lower)}..{format_number(self.upper)})"
            )
        return self

    def interval(self) -> str:
        left = "(" if self.exclusive_lower else "["
        right = ")" if self.exclusive_upper else "]"
        return f"{left}{format_number(self.lower)}..{format_number(self.upper)}{right}"

    def contains(self, actual: float) -> bool:
        above = actual > self.lower if self.exclusive_lower else actual >= self.lower
        below = actual < self.upper if self.exclusive_upper else actual <= self.upper
        return above and below


class WithinRange(_RangePredicate):
    def passes(self, actual: float) -> bool:
        return self.contains(actual)

    def __str__(self) -> str:
        return f"∈ {self.interval()}"


class OutsideRange(_RangePredicate):
    def passes(self, actual: float) -> bool:
        left = actual <= self.lower if self.exclusive_lower else actual < self.lower
        right = actual >= self.upper if self.exclusive_upper else actual > self.upper
        return left or right

    def __str__(self) -> str:
        return f"∉ {self.interval()}"


def _ordered_bits(value: float) -> int:
    return struct.unpack("<q", struct.pack("<d", value))[0]


def ulp_distance(actual: float, expected: float) -> int:
    """Distance between two finite doubles, counted in representable steps."""
    return abs(_ordered_bits(actual) - _ordered_bits(expected))


def close_in_ulps(actual: float, expected: float, max_ulps: int) -> Optional[str]:
    """Return None when `actual` is within `max_ulps` ULPs of `expected`, else the violation.

    Infinities are close only to the same infinity, whatever `max_ulps` is.

    Raises:
        ValueError: either operand is NaN, or `max_ulps` is negative.
    """
    if math.isnan(actual) or math.isnan(expected):
        raise ValueError("NaN values are not supported")
    if max_ulps < 0:
        raise ValueError(f"max_ulps must be >= 0 (got {max_ulps})")

    if math.isinf(actual) or math.isinf(expected):
        if actual == expected:
            return None
        return (
            f"Expected <{format_number(actual)}> to be close to <{format_number(expected)}>, "
            "but one is infinite"
        )

    distance = ulp_distance(actual, expected)
    if distance <= max_ulps:
        return None
    return (
        f"Expected <{format_number(actual)}> to be within <{max_ulps}> ULPs of "
        f"<{format_number(expected)}> but difference was <{distance}> ULPs"
    )
