"""
sample_workbooks.py - Workbook fixtures shared by the session and reader tests.

Sheets, in order:
    Numbers   formatted numeric literals
    Strings   text, a formula, and text that looks like a formula / error
    Errors    error literals
    Booleans  TRUE / FALSE
    Comments  commented cells, including one with no value
    Dates     a date-formatted datetime

Formulas written by openpyxl carry no cached result, so they compute as
NONE when read back.
"""

from __future__ import annotations

import os
from datetime import datetime

from models import CellEntry, CellEntryKind, SheetEntry
from workbook_io import write_workbook

SAMPLE_MOMENT = datetime(2024, 3, 15, 10, 30)


def _entry(address: str, kind: CellEntryKind, value=None, **extra) -> CellEntry:
    return CellEntry(address=address, kind=kind, value=value, **extra)


def sample_sheets() -> list[SheetEntry]:
    number, text = CellEntryKind.NUMBER, CellEntryKind.TEXT
    return [
        SheetEntry(
            name="Numbers",
            cells=[
                _entry("A1", number, 2.0, number_format="0.00"),
                _entry("A2", number, 34, number_format="0.0000%"),
                _entry("A3", number, 10, number_format="0.00"),
                _entry("A4", number, 0.00000001, number_format="0.00000000"),
                _entry("A5", number, -9999999, number_format="#,##0"),
                _entry("A6", number, 1.41421, number_format="0.0000"),
                _entry("A7", number, 3.14, number_format="0.0000"),
            ],
        ),
        SheetEntry(
            name="Strings",
            cells=[
                _entry("A1", text, "Monthly report"),
                _entry("A2", CellEntryKind.FORMULA, formula='"Hello "&"World"'),
                _entry("A3", text, "=SUM(1,2)"),
                _entry("A4", text, "#N/A"),
                _entry("A5", text, "Line1\n\nLine2"),
            ],
        ),
        SheetEntry(
            name="Errors",
            cells=[
                _entry("A1", CellEntryKind.ERROR, "#DIV/0!"),
                _entry("A2", CellEntryKind.ERROR, "#N/A"),
            ],
        ),
        SheetEntry(
            name="Booleans",
            cells=[
                _entry("A1", CellEntryKind.BOOLEAN, True),
                _entry("A2", CellEntryKind.BOOLEAN, False),
            ],
        ),
        SheetEntry(
            name="Comments",
            cells=[
                _entry("A1", text, "value", comment="FORMAT"),
                _entry("B1", CellEntryKind.NO_VALUE, comment="Sample comment"),
            ],
        ),
        SheetEntry(
            name="Dates",
            cells=[_entry("A1", CellEntryKind.DATE, SAMPLE_MOMENT)],
        ),
    ]


def write_sample_workbook(directory: str, name: str = "sample.xlsx") -> str:
    path = os.path.join(directory, name)
    write_workbook(path, sample_sheets())
    return path
