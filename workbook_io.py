"""
workbook_io.py - Walk workbooks into entries and write entries into workbooks.

`read_workbook` turns every existing cell of every sheet into a typed
CellEntry (text, number, boolean, date, error, formula, no value) with
its number format and comment. `fill_workbook` / `write_workbook` do the
reverse and are what test fixtures use to generate workbooks.

Text entries are always written as literal text, so "=A1" or "#N/A" stay
strings instead of becoming a formula or an error.
"""

from __future__ import annotations

import io
import os
from datetime import date, datetime
from typing import Any, Iterable, Union

from dateutil import parser as dateparser
from openpyxl import Workbook
from openpyxl.cell.cell import ERROR_CODES
from openpyxl.comments import Comment

from document import Source, WorkbookDocument
from logging_config import get_logger
from models import CellEntry, CellEntryKind, CellSnapshot, CellType, SheetEntry

logger = get_logger(__name__)

COMMENT_AUTHOR = "sheet-assert"


def _entry_for(cell: CellSnapshot) -> CellEntry:
    common = {"address": cell.address, "number_format": cell.number_format, "comment": cell.comment}

    if cell.is_formula:
        computed = cell.computed()
        value = computed.date_value if computed.date_value is not None else computed.value
        return CellEntry(kind=CellEntryKind.FORMULA, formula=cell.formula, value=value, **common)
    if cell.cell_type is CellType.STRING:
        return CellEntry(kind=CellEntryKind.TEXT, value=cell.value, **common)
    if cell.cell_type is CellType.NUMERIC:
        if cell.date_value is not None:
            return CellEntry(kind=CellEntryKind.DATE, value=cell.date_value, **common)
        return CellEntry(kind=CellEntryKind.NUMBER, value=cell.value, **common)
    if cell.cell_type is CellType.BOOLEAN:
        return CellEntry(kind=CellEntryKind.BOOLEAN, value=cell.value, **common)
    if cell.cell_type is CellType.ERROR:
        return CellEntry(kind=CellEntryKind.ERROR, value=cell.value, **common)
    return CellEntry(kind=CellEntryKind.NO_VALUE, **common)


def read_workbook(source: Union[Source, WorkbookDocument]) -> list[SheetEntry]:
    """Every sheet of `source` with its existing cells in row-major order."""
    if not isinstance(source, WorkbookDocument):
        with WorkbookDocument.open(source) as document:
            return read_workbook(document)

    document = source
    sheets = [
        SheetEntry(name=name, cells=[_entry_for(cell) for cell in document.iter_cells(name)])
        for name in document.sheet_names
    ]
    logger.debug(
        "workbook_read | source=%s | sheets=%s | cells=%s",
        document.label,
        len(sheets),
        sum(len(sheet.cells) for sheet in sheets),
    )
    return sheets


def _as_datetime(value: Any) -> Any:
    if isinstance(value, str):
        return dateparser.parse(value)
    if isinstance(value, (datetime, date)):
        return value
    raise ValueError(f"Expected a date or datetime, got {type(value).__name__}")


def _write_value(cell: Any, entry: CellEntry) -> None:
    kind = entry.kind
    if kind is CellEntryKind.TEXT:
        cell.value = "" if entry.value is None else str(entry.value)
        cell.data_type = "s"
    elif kind is CellEntryKind.NUMBER:
        cell.value = float(entry.value)
    elif kind is CellEntryKind.BOOLEAN:
        cell.value = bool(entry.value)
    elif kind is CellEntryKind.DATE:
        cell.value = _as_datetime(entry.value)
    elif kind is CellEntryKind.ERROR:
        code = str(entry.value)
        if code not in ERROR_CODES:
            raise ValueError(f"Unknown error code {code!r} for cell {entry.address}")
        cell.value = code
        cell.data_type = "e"
    elif kind is CellEntryKind.FORMULA:
        formula = (entry.formula or "").lstrip("=")
        if formula:
            cell.value = f"={formula}"
    elif kind is not CellEntryKind.NO_VALUE:
        raise ValueError(f"Unsupported cell entry kind for cell {entry.address}: {kind}")


def fill_workbook(workbook: Workbook, sheets: Iterable[SheetEntry]) -> Workbook:
    """Create (or reuse) each sheet and write its cells, formats and comments."""
    for sheet in sheets:
        if sheet.name in workbook.sheetnames:
            worksheet = workbook[sheet.name]
        else:
            worksheet = workbook.create_sheet(sheet.name)

        for entry in sheet.cells:
            cell = worksheet[entry.address]
            _write_value(cell, entry)
            if entry.comment:
                cell.comment = Comment(entry.comment, COMMENT_AUTHOR)
            if entry.number_format:
                cell.number_format = entry.number_format
    return workbook


def new_workbook(sheets: Iterable[SheetEntry]) -> Workbook:
    """Fresh workbook holding exactly `sheets` (the default sheet is dropped)."""
    sheets = list(sheets)
    workbook = Workbook()
    if sheets:
        workbook.remove(workbook.active)
    return fill_workbook(workbook, sheets)


def write_workbook(path: Union[str, "os.PathLike[str]"], sheets: Iterable[SheetEntry]) -> None:
    workbook = new_workbook(sheets)
    workbook.save(path)
    logger.debug("workbook_written | path=%s | sheets=%s", os.fspath(path), len(workbook.sheetnames))


def write_workbook_bytes(sheets: Iterable[SheetEntry]) -> bytes:
    buffer = io.BytesIO()
    new_workbook(sheets).save(buffer)
    return buffer.getvalue()
