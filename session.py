"""
session.py - Sheet-scoped assertion session.

A session owns one opened workbook, one FailureCollector and a "current
sheet" pointer:

    session = open_session("report.xlsx")        # starts on sheet #0
    session.select_sheet("Numbers").register_all(
        cell_at("A1").with_number(equal_to(2.0)),
        cell_at("A2").with_text("total").with_format("0.00"),
    )
    session.close()        # raises AggregatedAssertionError if anything failed

Design principles:
1. Registration evaluates immediately; failures are recorded, never raised.
2. A missing sheet is itself a failure. Until another sheet is selected,
   registrations are skipped so one bad sheet name yields one failure.
3. close() releases the document first and finalizes second, so the
   aggregated report never leaks the document handle.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict

from collector import FailureCollector
from contracts import CellContract
from document import Source, WorkbookDocument
from engine import evaluate_contract
from errors import DocumentError
from logging_config import get_logger
from models import SheetRef, Violation

logger = get_logger(__name__)


class RegisteredContract(BaseModel):
    """Audit record: a contract and the sheet reference it was evaluated on."""

    model_config = ConfigDict(frozen=True)

    contract: CellContract
    sheet_ref: SheetRef

    def __str__(self) -> str:
        return f"{self.sheet_ref}: {self.contract}"


class AssertionSession:
    """Collects cell assertions against one workbook and reports them on close."""

    def __init__(self, document: WorkbookDocument) -> None:
        self._document = document
        self._collector = FailureCollector()
        self._records: list[RegisteredContract] = []
        self._sheet_name: Optional[str] = None
        self._sheet_ref: Optional[SheetRef] = None
        self._closed = False
        logger.info("session_opened | source=%s | sheets=%s", document.label, document.sheet_count())
        self.select_sheet(0)

    @property
    def document(self) -> WorkbookDocument:
        return self._document

    @property
    def current_sheet(self) -> Optional[SheetRef]:
        return self._sheet_ref

    @property
    def current_sheet_name(self) -> Optional[str]:
        return self._sheet_name

    @property
    def records(self) -> list[RegisteredContract]:
        return list(self._records)

    @property
    def violations(self) -> list[Violation]:
        return self._collector.violations

    @property
    def closed(self) -> bool:
        return self._closed

    def select_sheet(self, sheet: Union[int, str]) -> "AssertionSession":
        """Make `sheet` (zero-based index or name) the target of registrations."""
        ref = SheetRef(ref=sheet)
        if ref.by_index:
            name = self._document.sheet_name_at(sheet)
            missing = f"Cannot find sheet with index {sheet}"
        else:
            name = sheet if self._document.has_sheet(sheet) else None
            missing = f"Cannot find sheet with name '{sheet}'"

        if name is None:
            self._collector.record(str(ref), missing)
            self._sheet_name = None
            self._sheet_ref = None
            logger.warning("sheet_missing | ref=%s", ref)
            return self

        self._sheet_name = name
        self._sheet_ref = ref
        logger.info("sheet_selected | ref=%s | name=%s", ref, name)
        return self

    def register(self, contract: CellContract) -> "AssertionSession":
        """Evaluate `contract` against the current sheet and record it."""
        if self._sheet_name is None or self._sheet_ref is None:
            logger.info("contract_skipped | address=%s | reason=no_current_sheet", contract.address)
            return self

        bound = contract.bound_to(self._sheet_name)
        cell = self._document.cell_at(self._sheet_name, bound.address)
        recorded = evaluate_contract(bound, cell, self._collector)
        self._records.append(RegisteredContract(contract=bound, sheet_ref=self._sheet_ref))
        logger.info(
            "contract_registered | location=%s | violations=%s | total_violations=%s",
            bound.full_address,
            recorded,
            len(self._collector),
        )
        return self

    def register_all(self, *contracts: CellContract) -> "AssertionSession":
        for contract in contracts:
            self.register(contract)
        return self

    def close(self) -> None:
        """Release the document, then raise the aggregated failure if any.

        Raises:
            DocumentError: the document could not be released. Violations
                recorded so far are chained as its __cause__.
            AggregatedAssertionError: at least one violation was recorded.
        """
        if self._closed:
            return
        self._closed = True
        try:
            self._document.close()
        except DocumentError as exc:
            logger.error(
                "session_closed | status=document_error | pending_violations=%s",
                len(self._collector),
            )
            pending = self._collector.aggregated()
            if pending is not None:
                raise exc from pending
            raise
        logger.info(
            "session_closed | contracts=%s | violations=%s",
            len(self._records),
            len(self._collector),
        )
        self._collector.finalize()

    def __enter__(self) -> "AssertionSession":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        if exc_type is None:
            self.close()
            return
        # An exception is already propagating; release the document only.
        if self._closed:
            return
        self._closed = True
        try:
            self._document.close()
        except DocumentError as close_error:
            logger.error(
                "session_closed | status=document_error | propagating=%s | error=%s",
                exc_type.__name__,
                close_error,
            )


def open_session(source: Union[Source, WorkbookDocument]) -> AssertionSession:
    """Open `source` (path, bytes, Workbook or WorkbookDocument) in a new session."""
    if isinstance(source, WorkbookDocument):
        return AssertionSession(source)
    return AssertionSession(WorkbookDocument.open(source))
