"""
models.py - Data Models shared by the assertion engine.

Every module communicates through these models:

    document.py     ->  CellSnapshot, ComputedValue
    engine.py       ->  Violation (via collector.py)
    session.py      ->  SheetRef
    workbook_io.py  ->  SheetEntry, CellEntry

Design principles:
1. Snapshots are read-only views of one cell at one moment; nothing here
   writes back to the document.
2. A formula cell carries a thunk for its computed value, so paths that
   never look at formula results never trigger evaluation.
3. Violations carry their location so the aggregated report can be read
   without the contracts that produced it.
"""

from __future__ import annotations

from datetime import datetime, time
from enum import Enum
from typing import Any, Callable, Optional, Union

from openpyxl.utils.datetime import WINDOWS_EPOCH, from_excel
from pydantic import BaseModel, ConfigDict, Field


def serial_to_datetime(serial: float) -> datetime:
    """Datetime for an Excel date serial (1900 date system).

    Serials below 1 are pure times of day and land on the epoch date.
    """
    result = from_excel(serial)
    if isinstance(result, time):
        return datetime.combine(WINDOWS_EPOCH.date(), result)
    return result


class CellType(str, Enum):
    """Runtime type of a cell, or of a formula's computed value."""

    STRING = "STRING"
    NUMERIC = "NUMERIC"
    BOOLEAN = "BOOLEAN"
    FORMULA = "FORMULA"
    ERROR = "ERROR"
    BLANK = "BLANK"
    NONE = "NONE"


class FormatCategory(str, Enum):
    """Coarse classification of a display-format string."""

    GENERAL = "GENERAL"
    PERCENTAGE = "PERCENTAGE"
    DATE = "DATE"
    TIME = "TIME"
    CURRENCY = "CURRENCY"
    ACCOUNTING = "ACCOUNTING"
    SCIENTIFIC = "SCIENTIFIC"
    FRACTION = "FRACTION"
    TEXT = "TEXT"
    OTHER = "OTHER"


class ComputedValue(BaseModel):
    """Result of evaluating a formula cell.

    `value` is a str for STRING, a float for NUMERIC, a bool for BOOLEAN,
    the error code (e.g. "#DIV/0!") for ERROR and None for BLANK. NONE means
    no result is available (a formula that was never calculated). Numeric
    results that came back as dates keep the datetime in `date_value`.
    """

    model_config = ConfigDict(frozen=True)

    cell_type: CellType
    value: Any = None
    date_value: Optional[datetime] = None

    @property
    def string_value(self) -> Optional[str]:
        return None if self.value is None else str(self.value)


class CellSnapshot(BaseModel):
    """Everything the engine may read from one existing cell.

    Produced by the document adapter. Cells that do not exist at all are
    represented by None rather than by a snapshot.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    address: str = Field(..., description="A1-style address, e.g. 'B5'.")
    cell_type: CellType = Field(
        ...,
        description=(
            "Declared cell type. FORMULA cells keep their formula text in "
            "`formula` and expose the computed result through `compute`."
        ),
    )
    value: Any = Field(
        default=None,
        description=(
            "Literal value: str for STRING, float for NUMERIC, bool for "
            "BOOLEAN, error code for ERROR, None for BLANK and FORMULA."
        ),
    )
    date_value: Optional[datetime] = Field(
        default=None,
        description="Datetime view of a NUMERIC cell whose format marks it as a date.",
    )
    formula: Optional[str] = Field(
        default=None,
        description="Formula text without the leading '=' (FORMULA cells only).",
    )
    number_format: Optional[str] = Field(
        default=None,
        description="Display-format string, e.g. '0.00' or 'General'.",
    )
    comment: Optional[str] = Field(default=None, description="Cell comment text.")
    compute: Optional[Callable[[], ComputedValue]] = Field(
        default=None,
        description="Thunk returning the computed value of a FORMULA cell.",
        exclude=True,
        repr=False,
    )

    @property
    def is_formula(self) -> bool:
        return self.cell_type is CellType.FORMULA

    def computed(self) -> ComputedValue:
        """Evaluate the formula behind this cell."""
        if not self.is_formula or self.compute is None:
            raise ValueError(f"Cell {self.address} of type {self.cell_type.value} has no formula to evaluate")
        return self.compute()

    @property
    def display_value(self) -> str:
        """Short text rendering used in violation messages."""
        if self.is_formula:
            return self.formula or ""
        if self.value is None:
            return ""
        if isinstance(self.value, bool):
            return "TRUE" if self.value else "FALSE"
        return str(self.value)


class SheetRef(BaseModel):
    """How a sheet was selected: by its name or by its zero-based index."""

    model_config = ConfigDict(frozen=True)

    ref: Union[int, str]

    @property
    def by_index(self) -> bool:
        return isinstance(self.ref, int)

    def __str__(self) -> str:
        if self.by_index:
            return f"#{self.ref}"
        return f"'{self.ref}'"


class Violation(BaseModel):
    """One recorded evaluation failure."""

    model_config = ConfigDict(frozen=True)

    location: str = Field(
        ...,
        description=(
            "Where the failure happened: 'Sheet!A1' for cell checks, the "
            "sheet reference (e.g. \"'Totals'\" or '#3') for missing sheets."
        ),
    )
    message: str

    def __str__(self) -> str:
        return f"{self.location}: {self.message}"


class CellEntryKind(str, Enum):
    """Value kinds used when walking or generating workbooks."""

    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    ERROR = "error"
    FORMULA = "formula"
    NO_VALUE = "no_value"


class CellEntry(BaseModel):
    """Plain description of one cell: value, format and comment.

    For FORMULA entries `formula` holds the formula text (without '=') and
    `value` the computed result when one was available.
    """

    address: str
    kind: CellEntryKind
    value: Any = None
    formula: Optional[str] = None
    number_format: Optional[str] = None
    comment: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"address": "A1", "kind": "number", "value": 2.0, "number_format": "0.00"},
                {"address": "A2", "kind": "formula", "formula": "A1*2", "value": 4.0},
                {"address": "B1", "kind": "no_value", "comment": "empty"},
            ]
        }
    )


class SheetEntry(BaseModel):
    """A named sheet and its cells, in row-major order."""

    name: str
    cells: list[CellEntry] = Field(default_factory=list)
