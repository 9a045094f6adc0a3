"""
test_session.py - Workbook Session Tests

End-to-end validation against real .xlsx files written into a temporary
directory:
- document adapter: sheets, cell types, formats, comments, formulas
- session: sheet selection, registration records, aggregated close
- missing sheets and skipped registrations
- close failures carrying pending violations
- formulas with no cached result
- workbook walk / fixture writer
- the register -> decode -> apply acceptance scenario

Usage: python test_session.py
"""

from __future__ import annotations

import os
import sys
import tempfile

# Ensure we can import from project root
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from builders import (
    assert_that_workbook,
    cell_at,
    close_to,
    close_to_percent,
    containing,
    equal_to,
    greater_than,
    greater_than_or_equal_to,
    less_than,
    less_than_or_equal_to,
    matching,
    of_false,
    of_true,
    outside_range,
    within_range,
)
from codec import decode_number
from document import WorkbookDocument
from errors import AggregatedAssertionError, DocumentError, DocumentReadError
from logging_config import setup_logging_from_env
from models import CellEntry, CellEntryKind, CellType, FormatCategory, SheetEntry
from number_predicates import WithinRange
from sample_workbooks import SAMPLE_MOMENT, sample_sheets, write_sample_workbook
from session import open_session
from workbook_io import read_workbook, write_workbook, write_workbook_bytes


def _configure_output_symbols() -> tuple[str, str, str]:
    try:
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    except Exception:
        pass

    try:
        "✓✗═".encode(sys.stdout.encoding or "utf-8")
        return "✓", "✗", "═"
    except Exception:
        return "[OK]", "[FAIL]", "="


PASS, FAIL, LINE = _configure_output_symbols()


def _close_error(session) -> AggregatedAssertionError | None:
    try:
        session.close()
    except AggregatedAssertionError as exc:
        return exc
    return None


def _document_error(session) -> DocumentError | None:
    try:
        session.close()
    except DocumentError as exc:
        return exc
    return None


class _FailingCloseDocument(WorkbookDocument):
    def close(self) -> None:
        super().close()
        raise DocumentError(f"Cannot close workbook {self.label}: device lost")


def main() -> int:
    passed = 0
    failed = 0

    def check(name: str, condition: bool) -> None:
        nonlocal passed, failed
        if condition:
            print(f"    {PASS} {name}")
            passed += 1
        else:
            print(f"    {FAIL} {name}")
            failed += 1

    print(LINE * 50)
    print("  Workbook Session Tests")
    print(LINE * 50)

    with tempfile.TemporaryDirectory() as tmp:
        path = write_sample_workbook(tmp)

        # Category 1: document adapter
        print("\n  Document adapter:")
        with WorkbookDocument.open(path) as document:
            check("sheets in order", document.sheet_names == ["Numbers", "Strings", "Errors", "Booleans", "Comments", "Dates"])
            check("sheet_name_at out of range is None", document.sheet_name_at(6) is None and document.sheet_name_at(-1) is None)
            a1 = document.cell_at("Numbers", "A1")
            check("numeric literal", a1 is not None and a1.cell_type is CellType.NUMERIC and a1.value == 2.0)
            check("number format kept", a1 is not None and a1.number_format == "0.00")
            check("cell outside used range is absent", document.cell_at("Numbers", "Z99") is None)
            check("unused cell inside range is absent", document.cell_at("Numbers", "B1") is None)
            literal = document.cell_at("Strings", "A3")
            check("text '=SUM(1,2)' stays text", literal is not None and literal.cell_type is CellType.STRING and literal.value == "=SUM(1,2)")
            na_text = document.cell_at("Strings", "A4")
            check("text '#N/A' stays text", na_text is not None and na_text.cell_type is CellType.STRING)
            formula = document.cell_at("Strings", "A2")
            check("formula cell", formula is not None and formula.is_formula and formula.formula == '"Hello "&"World"')
            check("uncalculated formula computes as NONE", formula is not None and formula.computed().cell_type is CellType.NONE)
            error = document.cell_at("Errors", "A1")
            check("error literal", error is not None and error.cell_type is CellType.ERROR and error.value == "#DIV/0!")
            flag = document.cell_at("Booleans", "A2")
            check("boolean literal", flag is not None and flag.cell_type is CellType.BOOLEAN and flag.value is False)
            commented = document.cell_at("Comments", "A1")
            check("comment text", commented is not None and commented.comment == "FORMAT")
            bare = document.cell_at("Comments", "B1")
            check("comment-only cell is BLANK", bare is not None and bare.cell_type is CellType.BLANK)
            when = document.cell_at("Dates", "A1")
            check("date cell is NUMERIC with a datetime view", when is not None and when.cell_type is CellType.NUMERIC and when.date_value == SAMPLE_MOMENT)
        check("document closed by context manager", document.closed)

        missing_path = os.path.join(tmp, "missing.xlsx")
        try:
            WorkbookDocument.open(missing_path)
            missing_error = False
        except DocumentReadError:
            missing_error = True
        check("missing file -> DocumentReadError", missing_error)
        try:
            WorkbookDocument.open(b"not a zip file")
            corrupt_error = False
        except DocumentReadError as exc:
            corrupt_error = isinstance(exc, OSError)
        check("corrupt bytes -> DocumentReadError (an OSError)", corrupt_error)

        # Category 2: passing session
        print("\n  Passing session:")
        session = assert_that_workbook(path)
        check("session starts on sheet #0", str(session.current_sheet) == "#0" and session.current_sheet_name == "Numbers")
        session.register_all(
            cell_at("A1").with_number(equal_to(2.0)).with_format("0.00"),
            cell_at("A2").with_number(greater_than(33)).with_format("0.0000%"),
            cell_at("A3").with_number(greater_than_or_equal_to(10)).with_format("0.00"),
            cell_at("A4").with_number(less_than(0.0000001)).with_format("0.00000000"),
            cell_at("A5").with_number(less_than_or_equal_to(-9999999)).with_format("#,##0"),
            cell_at("A6").with_number(close_to(1.4142, 0.0001)).with_format("0.0000"),
            cell_at("A7").with_number(close_to_percent(3.1105, 1)),
            cell_at("A1").with_number(within_range(1.99999, 2.00001, True, True)),
            cell_at("A1").with_number(outside_range(2.0, 2.02, True, True)),
            cell_at("A2").exists().with_format_category(FormatCategory.PERCENTAGE),
            cell_at("A5").exists().with_format(matching(".*##\\d")),
        )
        session.select_sheet(1).register_all(
            cell_at("A1").with_text(containing("REPORT").ignoring_case()),
            cell_at("A2").with_formula_text(containing('&"World"')),
            cell_at("A3").with_text(matching("=sUm\\(\\d+,\\d+\\)").ignoring_case()),
            cell_at("A4").with_text("#N/A"),
            cell_at("A5").with_text(equal_to("line1 line2").ignoring_case().ignoring_new_lines()),
            cell_at("A5").with_text(matching("Line1.*Line2").dotall()),
        )
        session.select_sheet("Errors").register_all(
            cell_at("A1").with_error_text(containing("div/0").ignoring_case()),
            cell_at("A2").with_error_text("#N/A"),
        )
        session.select_sheet("Booleans").register_all(
            cell_at("A1").with_boolean(of_true()),
            cell_at("A2").with_boolean(of_false()),
        )
        session.select_sheet("Comments").register_all(
            cell_at("A1").exists().with_comment("FORMAT"),
            cell_at("B1").exists().with_comment(containing("comment")),
            cell_at("B1").empty(),
            cell_at("C5").empty(),
        )
        session.select_sheet("Dates").register(
            cell_at("A1").with_date_time(equal_to=SAMPLE_MOMENT, year=2024, month=3, day=15)
        )
        check("no violations recorded", session.violations == [])
        check("one record per registration", len(session.records) == 26)
        check(
            "record renders sheet reference and contract",
            str(session.records[0]) == "#0: (Cell Numbers!A1 number is == 2.0).withFormat(equal '0.00' case sensitive, respecting new lines)",
        )
        check("records by name use quotes", str(session.records[-1]).startswith("'Dates': (Cell Dates!A1"))
        check("close does not raise", _close_error(session) is None)
        check("document released on close", session.document.closed)
        check("second close is a no-op", _close_error(session) is None)

        # Category 3: failing session
        print("\n  Failing session:")
        session = open_session(path)
        session.register_all(
            cell_at("A1").with_number(equal_to(3.0)),
            cell_at("A1").with_text("2"),
            cell_at("A1").with_number(equal_to(2.0)).with_format("0.000"),
        )
        session.select_sheet("Strings").register_all(
            cell_at("A2").with_text("Hello World"),
            cell_at("A2").empty(),
        )
        check("value, format, formula and emptiness failures", len(session.violations) == 5)
        error = _close_error(session)
        check("close raises AggregatedAssertionError", error is not None)
        check("document released before raising", session.document.closed)
        message = str(error) if error is not None else ""
        check("message counts failures", message.startswith("5 cell assertion failures"))
        check("type mismatch names STRING/NUMERIC", "of type NUMERIC" in message)
        check("formula failure names computed type", "computed as NONE" in message)
        lines = message.splitlines()
        check("violations keep registration order", len(lines) == 6 and "== 3.0" in lines[1] and "Strings!A2" in lines[4] and "expected to be empty" in lines[5])

        # Category 4: missing sheets
        print("\n  Missing sheets:")
        session = open_session(path)
        session.select_sheet("Nope")
        check("missing sheet recorded at once", [str(v) for v in session.violations] == ["'Nope': Cannot find sheet with name 'Nope'"])
        check("current sheet cleared", session.current_sheet is None)
        session.register_all(cell_at("A1").with_number(equal_to(99)), cell_at("A2").empty())
        check("registrations skipped while no sheet", session.records == [] and len(session.violations) == 1)
        session.select_sheet(42)
        check("missing index recorded", str(session.violations[-1]) == "#42: Cannot find sheet with index 42")
        session.select_sheet("Numbers").register(cell_at("A1").with_number(equal_to(2.0)))
        check("evaluation resumes after a valid select", len(session.records) == 1 and len(session.violations) == 2)
        error = _close_error(session)
        check("missing sheets reported on close", error is not None and len(error.violations) == 2)

        empty_path = os.path.join(tmp, "only_second.xlsx")
        write_workbook(empty_path, [SheetEntry(name="Only")])
        session = open_session(empty_path)
        session.select_sheet(1)
        check("index past the end is missing", session.current_sheet is None)
        _close_error(session)

        # Category 5: context manager
        print("\n  Context manager:")
        try:
            with assert_that_workbook(path) as session:
                session.register(cell_at("A1").with_number(equal_to(5)))
            raised = None
        except AggregatedAssertionError as exc:
            raised = exc
        check("with-block closes and raises aggregated failure", raised is not None and len(raised.violations) == 1)
        try:
            with assert_that_workbook(path) as session:
                session.register(cell_at("A1").with_number(equal_to(5)))
                raise KeyError("boom")
        except KeyError:
            inner_kept = True
        except AggregatedAssertionError:
            inner_kept = False
        check("inner exception wins; document still released", inner_kept and session.document.closed)

        session = open_session(_FailingCloseDocument.open(path))
        session.register(cell_at("A1").with_number(equal_to(5)))
        close_failure = _document_error(session)
        check("close failure surfaces as DocumentError", close_failure is not None)
        cause = close_failure.__cause__ if close_failure is not None else None
        check(
            "pending violations chained as the cause",
            isinstance(cause, AggregatedAssertionError) and len(cause.violations) == 1,
        )
        session = open_session(_FailingCloseDocument.open(path))
        clean_failure = _document_error(session)
        check("nothing chained when nothing failed", clean_failure is not None and clean_failure.__cause__ is None)
        try:
            with open_session(_FailingCloseDocument.open(path)):
                raise KeyError("boom")
        except KeyError:
            inner_survives = True
        except DocumentError:
            inner_survives = False
        check("close failure does not hide the propagating exception", inner_survives)

        # Category 6: workbook walk and writer
        print("\n  Workbook walk:")
        sheets = read_workbook(path)
        check("every sheet walked", [s.name for s in sheets] == [s.name for s in sample_sheets()])
        kinds = {(s.name, c.address): c.kind for s in sheets for c in s.cells}
        check("number entry", kinds.get(("Numbers", "A1")) is CellEntryKind.NUMBER)
        check("formula entry", kinds.get(("Strings", "A2")) is CellEntryKind.FORMULA)
        check("literal text entry", kinds.get(("Strings", "A3")) is CellEntryKind.TEXT)
        check("error entry", kinds.get(("Errors", "A1")) is CellEntryKind.ERROR)
        check("date entry", kinds.get(("Dates", "A1")) is CellEntryKind.DATE)
        check("no-value entry", kinds.get(("Comments", "B1")) is CellEntryKind.NO_VALUE)
        formula_entry = next(c for s in sheets for c in s.cells if c.kind is CellEntryKind.FORMULA)
        check("formula entry keeps formula text", formula_entry.formula == '"Hello "&"World"')
        try:
            write_workbook_bytes([SheetEntry(name="X", cells=[CellEntry(address="A1", kind=CellEntryKind.ERROR, value="#OOPS")])])
            bad_code = False
        except ValueError:
            bad_code = True
        check("unknown error code rejected", bad_code)
        session = open_session(write_workbook_bytes(sample_sheets()))
        session.register(cell_at("A1").with_number(equal_to(2.0)))
        check("session from bytes", session.violations == [] and session.document.label == "<bytes>")
        session.close()

        uncalculated = write_workbook_bytes(
            [SheetEntry(name="S", cells=[CellEntry(address="A1", kind=CellEntryKind.FORMULA, formula="1+1")])]
        )
        session = open_session(uncalculated)
        session.register_all(cell_at("A1").empty(), cell_at("A1").with_number(equal_to(2.0)))
        messages = [v.message for v in session.violations]
        check("uncalculated formula is never empty", len(messages) == 2 and "expected to be empty" in messages[0])
        check("uncalculated formula failure names NONE", len(messages) == 2 and "computed as NONE: '1+1'" in messages[1])
        _close_error(session)

        # Category 7: acceptance scenario
        print("\n  Acceptance scenario:")
        session = open_session(path)
        session.register(cell_at("A1").with_number(equal_to(2.0)))
        check("EqualTo(2.0) on 2.0 -> no violation", len(session.violations) == 0)
        session.register(cell_at("A1").with_number(equal_to(3.0)))
        latest = str(session.violations[-1]) if session.violations else ""
        check("EqualTo(3.0) on 2.0 -> one violation naming both", len(session.violations) == 1 and "3.0" in latest and "2.0" in latest)
        session.register(cell_at("A1").with_number(within_range(1.99, 2.01)))
        check("WithinRange(1.99, 2.01) -> no new violation", len(session.violations) == 1)
        half_open = decode_number({"in": "(1.0..2.0]"})
        check(
            "decode '(1.0..2.0]'",
            half_open == WithinRange(lower=1.0, upper=2.0, exclusive_lower=True, exclusive_upper=False),
        )
        check("applies to 2.0", half_open.apply(2.0) is None)
        check("rejects 1.0", half_open.apply(1.0) is not None)
        outside = decode_number({"notIn": "[1.0..5.0]"})
        check("notIn [1.0..5.0] fails 3.0 with description", "∉ [1.0..5.0]" in (outside.apply(3.0) or ""))
        _close_error(session)

    print(f"\n{LINE * 50}")
    print(f"  Results: {passed}/{passed + failed} passed")
    if failed == 0:
        print(f"  Workbook sessions: COMPLETE {PASS}")
    else:
        print(f"  Workbook sessions: {failed} FAILED")
    print(f"{LINE * 50}")
    return failed


def test_session() -> None:
    assert main() == 0


if __name__ == "__main__":
    setup_logging_from_env()
    raise SystemExit(1 if main() else 0)
