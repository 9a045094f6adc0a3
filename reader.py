"""
reader.py - Expectations from a template workbook.

Every existing cell of the template becomes one contract registered on a
session. The template cell's value is the expected value and its comment
is a comma-separated, case-insensitive list of tags that pick the check:

    text      containing | matching | (default) equal, all ignoring case
    number    > | >= | < | <= | = (default =)
    no value  empty -> must be empty, otherwise must merely exist
    format    format-containing | format-matching | (default) format-equalto

Boolean, error, formula and date cells always compare for equality. A
format other than "General" or "@" adds a format check. Sheets named
"#<n>" select the sheet with index n; any other name selects by name.
"""

from __future__ import annotations

import re
from typing import Optional, Union

from contracts import (
    BooleanCheck,
    CellContract,
    DateTimeCheck,
    EmptyCheck,
    ErrorTextCheck,
    FormulaTextCheck,
    NumberCheck,
    TextCheck,
    ValueCheck,
)
from document import Source, WorkbookDocument
from logging_config import get_logger
from models import CellEntry, CellEntryKind
from number_predicates import EqualTo, GreaterOrEqual, GreaterThan, LessOrEqual, LessThan, NumberPredicate
from session import AssertionSession
from text_predicates import ContainsText, EqualsText, MatchesPattern, TextPredicate
from workbook_io import read_workbook

logger = get_logger(__name__)

SHEET_INDEX_PATTERN = re.compile(r"^#(?P<number>\d+)$")
UNCHECKED_FORMATS = {"General", "@"}


def parse_tags(comment: Optional[str]) -> set[str]:
    if not comment:
        return set()
    return {tag.strip().lower() for tag in comment.split(",") if tag.strip()}


def sheet_selector(name: str) -> Union[int, str]:
    match = SHEET_INDEX_PATTERN.match(name)
    if match:
        return int(match.group("number"))
    return name


def _loose_equals(expected: str) -> EqualsText:
    return EqualsText(expected=expected, ignore_case=True, ignore_new_lines=True)


def _number_predicate(expected: float, tags: set[str]) -> NumberPredicate:
    if "=" in tags:
        return EqualTo(expected=expected)
    if ">" in tags:
        return GreaterThan(threshold=expected)
    if ">=" in tags:
        return GreaterOrEqual(threshold=expected)
    if "<" in tags:
        return LessThan(threshold=expected)
    if "<=" in tags:
        return LessOrEqual(threshold=expected)
    return EqualTo(expected=expected)


def _text_predicate(expected: str, tags: set[str]) -> TextPredicate:
    if "equalto" in tags:
        return _loose_equals(expected)
    if "containing" in tags:
        return ContainsText(substring=expected, ignore_case=True)
    if "matching" in tags:
        return MatchesPattern(pattern=expected, ignore_case=True, dotall_mode=True)
    return _loose_equals(expected)


def _format_predicate(number_format: str, tags: set[str]) -> TextPredicate:
    if "format-equalto" in tags:
        return _loose_equals(number_format)
    if "format-containing" in tags:
        return ContainsText(substring=number_format, ignore_case=True)
    if "format-matching" in tags:
        return MatchesPattern(pattern=number_format, ignore_case=True, dotall_mode=True)
    return _loose_equals(number_format)


def _value_check(entry: CellEntry, tags: set[str]) -> Optional[ValueCheck]:
    kind = entry.kind
    if kind is CellEntryKind.TEXT:
        return TextCheck(predicate=_text_predicate(str(entry.value), tags))
    if kind is CellEntryKind.NUMBER:
        return NumberCheck(predicate=_number_predicate(float(entry.value), tags))
    if kind is CellEntryKind.BOOLEAN:
        return BooleanCheck(expected=bool(entry.value))
    if kind is CellEntryKind.DATE:
        return DateTimeCheck(equal_to=entry.value)
    if kind is CellEntryKind.ERROR:
        return ErrorTextCheck(predicate=_loose_equals(str(entry.value)))
    if kind is CellEntryKind.FORMULA:
        return FormulaTextCheck(predicate=_loose_equals(entry.formula or ""))
    if "empty" in tags:
        return EmptyCheck()
    return None


def contract_for(entry: CellEntry) -> CellContract:
    """Contract expressing what the template cell `entry` expects."""
    tags = parse_tags(entry.comment)
    contract = CellContract(address=entry.address, value_check=_value_check(entry, tags))
    if entry.number_format is not None and entry.number_format not in UNCHECKED_FORMATS:
        contract = contract.with_format(_format_predicate(entry.number_format, tags))
    return contract


def register_expectations(
    session: AssertionSession,
    template: Union[Source, WorkbookDocument],
) -> int:
    """Register one contract per template cell; returns how many were built."""
    count = 0
    for sheet in read_workbook(template):
        session.select_sheet(sheet_selector(sheet.name))
        for entry in sheet.cells:
            session.register(contract_for(entry))
            count += 1
    logger.info("expectations_loaded | contracts=%s | violations=%s", count, len(session.violations))
    return count
