"""
document.py - Workbook adapter over openpyxl.

Everything the assertion engine reads from a workbook goes through
WorkbookDocument:

    open(source)                   -> WorkbookDocument (path, bytes, or Workbook)
    sheet_count / sheet_names      -> sheet navigation
    cell_at(sheet, address)        -> Optional[CellSnapshot]
    evaluate_formula(sheet, addr)  -> ComputedValue
    close()                        -> release both workbook handles

The workbook is loaded twice: once for formulas, styles and comments, and
once with `data_only=True` for the values Excel cached when the file was
last saved. The cached value is the formula's computed value; files whose
formulas were never calculated (for example written by openpyxl itself)
have no cached value and compute as NONE, a type no value check or
emptiness check accepts.

Design principles:
1. Read-only: nothing here modifies or saves the workbook.
2. A cell with no value, no style and no comment does not exist.
3. Every load failure becomes a DocumentReadError; callers never see
   zipfile or openpyxl internals.
"""

from __future__ import annotations

import io
import os
import zipfile
from datetime import date, datetime, time, timedelta
from functools import partial
from typing import Any, Iterator, Optional, Union

from openpyxl import Workbook, load_workbook
from openpyxl.cell.cell import MergedCell
from openpyxl.utils.cell import column_index_from_string, coordinate_from_string
from openpyxl.utils.datetime import to_excel
from openpyxl.utils.exceptions import CellCoordinatesException, InvalidFileException
from openpyxl.worksheet.formula import ArrayFormula

from errors import DocumentError, DocumentReadError
from logging_config import get_logger
from models import CellSnapshot, CellType, ComputedValue, serial_to_datetime

logger = get_logger(__name__)

Source = Union[str, "os.PathLike[str]", bytes, Workbook]

_STRING_TYPES = {"s", "str", "inlineStr"}
_LOAD_ERRORS = (
    OSError,
    zipfile.BadZipFile,
    InvalidFileException,
    KeyError,
    ValueError,
    TypeError,
)


def _date_parts(value: Any) -> tuple[float, datetime]:
    """Serial number and datetime view of a date/time cell value."""
    serial = float(to_excel(value))
    if isinstance(value, datetime):
        return serial, value
    if isinstance(value, date):
        return serial, datetime.combine(value, time())
    return serial, serial_to_datetime(serial)


def _computed_from(cell: Any) -> ComputedValue:
    """Map a data_only cell (cached formula result) to a ComputedValue."""
    value = cell.value
    if value is None:
        # no cached result: the formula was never calculated
        return ComputedValue(cell_type=CellType.NONE)
    if cell.data_type == "e":
        return ComputedValue(cell_type=CellType.ERROR, value=str(value))
    if isinstance(value, bool):
        return ComputedValue(cell_type=CellType.BOOLEAN, value=value)
    if isinstance(value, (datetime, date, time, timedelta)):
        serial, as_datetime = _date_parts(value)
        return ComputedValue(cell_type=CellType.NUMERIC, value=serial, date_value=as_datetime)
    if isinstance(value, (int, float)):
        return ComputedValue(cell_type=CellType.NUMERIC, value=float(value))
    return ComputedValue(cell_type=CellType.STRING, value=str(value))


def _formula_text(value: Any) -> str:
    if isinstance(value, ArrayFormula):
        value = value.text
    text = str(value)
    return text[1:] if text.startswith("=") else text


class WorkbookDocument:
    """Opened workbook with a formula view and a cached-value view."""

    def __init__(self, workbook: Workbook, values: Workbook, label: str = "<workbook>") -> None:
        self._workbook = workbook
        self._values = values
        self.label = label
        self._closed = False

    @classmethod
    def open(cls, source: Source) -> "WorkbookDocument":
        """Load a workbook from a path, raw bytes, or an in-memory Workbook.

        Raises:
            DocumentReadError: the source is missing, unreadable or corrupt.
        """
        if isinstance(source, Workbook):
            buffer = io.BytesIO()
            source.save(buffer)
            source = buffer.getvalue()
            label = "<workbook>"
        elif isinstance(source, (bytes, bytearray)):
            label = "<bytes>"
        else:
            label = os.fspath(source)

        try:
            if isinstance(source, (bytes, bytearray)):
                workbook = load_workbook(io.BytesIO(source))
                values = load_workbook(io.BytesIO(source), data_only=True)
            else:
                workbook = load_workbook(source)
                values = load_workbook(source, data_only=True)
        except _LOAD_ERRORS as exc:
            logger.error("document_open_failed | source=%s | error=%s", label, exc)
            raise DocumentReadError(f"Cannot read workbook {label}: {exc}") from exc

        logger.info("document_opened | source=%s | sheets=%s", label, len(workbook.sheetnames))
        return cls(workbook, values, label)

    @property
    def closed(self) -> bool:
        return self._closed

    def sheet_count(self) -> int:
        return len(self._workbook.sheetnames)

    @property
    def sheet_names(self) -> list[str]:
        return list(self._workbook.sheetnames)

    def sheet_name_at(self, index: int) -> Optional[str]:
        names = self._workbook.sheetnames
        if 0 <= index < len(names):
            return names[index]
        return None

    def has_sheet(self, name: str) -> bool:
        return name in self._workbook.sheetnames

    def cell_at(self, sheet_name: str, address: str) -> Optional[CellSnapshot]:
        """Snapshot of the cell at `address`, or None when it does not exist."""
        worksheet = self._workbook[sheet_name]
        row, column = _split_address(address)
        if row > worksheet.max_row or column > worksheet.max_column:
            return None
        return self._snapshot(sheet_name, worksheet.cell(row=row, column=column))

    def iter_cells(self, sheet_name: str) -> Iterator[CellSnapshot]:
        """Existing cells of a sheet in row-major order."""
        for row in self._workbook[sheet_name].iter_rows():
            for cell in row:
                snapshot = self._snapshot(sheet_name, cell)
                if snapshot is not None:
                    yield snapshot

    def evaluate_formula(self, sheet_name: str, address: str) -> ComputedValue:
        """Computed (cached) value of the formula at `address`."""
        return _computed_from(self._values[sheet_name][address])

    def _snapshot(self, sheet_name: str, cell: Any) -> Optional[CellSnapshot]:
        if isinstance(cell, MergedCell):
            return None
        value = cell.value
        comment = cell.comment.text if cell.comment is not None else None
        if value is None and comment is None and not cell.has_style:
            return None

        address = cell.coordinate
        common = {
            "address": address,
            "number_format": cell.number_format,
            "comment": comment,
        }
        data_type = cell.data_type

        if data_type == "f" or isinstance(value, ArrayFormula):
            return CellSnapshot(
                cell_type=CellType.FORMULA,
                formula=_formula_text(value),
                compute=partial(self.evaluate_formula, sheet_name, address),
                **common,
            )
        if value is None:
            return CellSnapshot(cell_type=CellType.BLANK, **common)
        if data_type == "e":
            return CellSnapshot(cell_type=CellType.ERROR, value=str(value), **common)
        if isinstance(value, bool):
            return CellSnapshot(cell_type=CellType.BOOLEAN, value=value, **common)
        if isinstance(value, (datetime, date, time, timedelta)):
            serial, as_datetime = _date_parts(value)
            return CellSnapshot(cell_type=CellType.NUMERIC, value=serial, date_value=as_datetime, **common)
        if isinstance(value, (int, float)):
            return CellSnapshot(cell_type=CellType.NUMERIC, value=float(value), **common)
        if data_type in _STRING_TYPES or isinstance(value, str):
            return CellSnapshot(cell_type=CellType.STRING, value=str(value), **common)
        return CellSnapshot(cell_type=CellType.NONE, value=value, **common)

    def close(self) -> None:
        """Release both workbook views. Calling it twice is a no-op."""
        if self._closed:
            return
        self._closed = True
        try:
            self._workbook.close()
            self._values.close()
        except (OSError, ValueError) as exc:
            logger.error("document_close_failed | source=%s | error=%s", self.label, exc)
            raise DocumentError(f"Cannot close workbook {self.label}: {exc}") from exc
        logger.info("document_closed | source=%s", self.label)

    def __enter__(self) -> "WorkbookDocument":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def _split_address(address: str) -> tuple[int, int]:
    try:
        column, row = coordinate_from_string(address)
    except CellCoordinatesException as exc:
        raise ValueError(f"invalid cell address {address!r}") from exc
    return row, column_index_from_string(column)
