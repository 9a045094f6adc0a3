"""
text_predicates.py - Text checks for cell text, formula text, error text,
display formats and comments.

Three variants:

    EqualsText      exact match, optionally ignoring case and/or new lines
    ContainsText    substring containment, optionally ignoring case
    MatchesPattern  full regular-expression match, optionally ignoring case
                    and/or letting "." match new lines

Instances are immutable. The fluent helpers (`ignoring_case()`,
`ignoring_new_lines()`, `dotall()`, ...) return a modified copy, so a
predicate can be shared between contracts safely.

`apply(actual)` returns None on success or a violation string. `actual` may
be None (missing comment, missing format); only EqualsText with a None
expected value accepts it.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

# Any line terminator, including the \r\n pair and Unicode separators.
_LINE_BREAK = re.compile(r"\r\n|[\n\x0b\f\r\x85\u2028\u2029]")
_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_new_lines(text: Optional[str], ignore_case: bool = False) -> Optional[str]:
    """Collapse line breaks and surrounding whitespace runs into single spaces."""
    if text is None:
        return None
    flattened = _LINE_BREAK.sub(" ", text)
    flattened = _WHITESPACE_RUN.sub(" ", flattened).strip()
    return flattened.lower() if ignore_case else flattened


def _show(text: Optional[str]) -> str:
    return "null" if text is None else f"'{text}'"


class TextPredicate(BaseModel, ABC):
    """Base class for the text predicate family."""

    model_config = ConfigDict(frozen=True)

    ignore_case: bool = False

    def ignoring_case(self):
        return self.model_copy(update={"ignore_case": True})

    def case_sensitive(self):
        return self.model_copy(update={"ignore_case": False})

    def _case_label(self) -> str:
        return "ignoring case" if self.ignore_case else "case sensitive"

    @abstractmethod
    def apply(self, actual: Optional[str]) -> Optional[str]:
        """Return None when `actual` satisfies the predicate, else the violation."""


class EqualsText(TextPredicate):
    expected: Optional[str]
    ignore_new_lines: bool = False

    def ignoring_new_lines(self) -> "EqualsText":
        return self.model_copy(update={"ignore_new_lines": True})

    def respecting_new_lines(self) -> "EqualsText":
        return self.model_copy(update={"ignore_new_lines": False})

    def matches(self, actual: Optional[str]) -> bool:
        # None only ever equals None, whatever the options.
        if actual is None or self.expected is None:
            return actual is None and self.expected is None
        if self.ignore_new_lines:
            return normalize_new_lines(actual, self.ignore_case) == normalize_new_lines(
                self.expected, self.ignore_case
            )
        if self.ignore_case:
            return actual.lower() == self.expected.lower()
        return actual == self.expected

    def apply(self, actual: Optional[str]) -> Optional[str]:
        if self.matches(actual):
            return None
        return f"Expecting actual {_show(actual)} to {self}"

    def __str__(self) -> str:
        new_lines = "ignoring new lines" if self.ignore_new_lines else "respecting new lines"
        return f"equal {_show(self.expected)} {self._case_label()}, {new_lines}"


class ContainsText(TextPredicate):
    substring: str

    def apply(self, actual: Optional[str]) -> Optional[str]:
        if actual is None:
            return f"Expecting actual not to be null (to {self})"
        if self.ignore_case:
            found = self.substring.lower() in actual.lower()
        else:
            found = self.substring in actual
        if found:
            return None
        return f"Expecting actual {_show(actual)} to {self}"

    def __str__(self) -> str:
        return f"contain '{self.substring}' {self._case_label()}"


class MatchesPattern(TextPredicate):
    pattern: str
    dotall_mode: bool = False

    @field_validator("pattern")
    @classmethod
    def _compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid regular expression {value!r}: {exc}") from exc
        return value

    def dotall(self) -> "MatchesPattern":
        return self.model_copy(update={"dotall_mode": True})

    def no_dotall(self) -> "MatchesPattern":
        return self.model_copy(update={"dotall_mode": False})

    @property
    def flags(self) -> int:
        flags = 0
        if self.ignore_case:
            flags |= re.IGNORECASE
        if self.dotall_mode:
            flags |= re.DOTALL
        return flags

    def apply(self, actual: Optional[str]) -> Optional[str]:
        if actual is None:
            return f"Expecting actual not to be null (to {self})"
        if re.fullmatch(self.pattern, actual, self.flags) is not None:
            return None
        return f"Expecting actual {_show(actual)} to {self}"

    def __str__(self) -> str:
        mode = "dotall mode" if self.dotall_mode else "no dotall mode (default)"
        return f"match '{self.pattern}' {self._case_label()}, {mode}"
