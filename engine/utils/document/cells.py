"""
Workbook loading and cell-value coercion.

Vendor workbooks mix typed numbers, free text and formula cells whose cached
result may or may not be present (files written by a generator are never
recalculated until a spreadsheet application saves them). Every cell read by
the engine goes through `read_cell`, which returns one of:

    NumberCell     - a numeric literal
    TextCell       - a text literal
    FormulaResult  - a formula plus its cached result (NumberCell | TextCell | None)
    EmptyCell      - nothing in the cell

`coerce_number` and `coerce_text` are the only places those variants are
turned into plain Python values.
"""

from __future__ import annotations

import io
import re
import datetime
from pathlib import Path
from dataclasses import dataclass
from typing import Any, BinaryIO, Optional, Union

import openpyxl
from openpyxl.workbook.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from utils.core.warnings_config import configure_warning_filters


WorkbookSource = Union[bytes, bytearray, str, Path, BinaryIO]

_SEPARATORS = re.compile(r"[,\s]")
# optional sign, then an ISO code and/or symbol: "-USD", "$", "AED€"
_CURRENCY_PREFIX = re.compile(r"^(-?)(?:[A-Za-z]{3})?[$€£¥]?")
_LEADING_NUMBER = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?")


@dataclass(frozen=True)
class NumberCell:
    value: float


@dataclass(frozen=True)
class TextCell:
    value: str


@dataclass(frozen=True)
class EmptyCell:
    pass


@dataclass(frozen=True)
class FormulaResult:
    formula: str
    result: Optional[Union[NumberCell, TextCell]] = None


CellValue = Union[NumberCell, TextCell, FormulaResult, EmptyCell]

EMPTY = EmptyCell()


def _literal(value: Any) -> CellValue:
    if value is None:
        return EMPTY
    if isinstance(value, bool):
        return TextCell("TRUE" if value else "FALSE")
    if isinstance(value, (int, float)):
        return NumberCell(float(value))
    if isinstance(value, (datetime.date, datetime.datetime, datetime.time)):
        return TextCell(value.isoformat())
    text = str(value)
    if text.strip() == "":
        return EMPTY
    return TextCell(text)


def read_cell(raw: Any, cached: Any = None) -> CellValue:
    """
    Classify one cell.

    Args:
        raw: Value from the formula view of the workbook (data_only=False)
        cached: Value from the cached-result view (data_only=True)
    """
    if isinstance(raw, str) and raw.startswith("="):
        result = _literal(cached)
        return FormulaResult(raw, None if isinstance(result, EmptyCell) else result)
    # ArrayFormula / DataTableFormula objects
    if raw is not None and not isinstance(raw, (str, int, float, bool)) and hasattr(raw, "text"):
        result = _literal(cached)
        return FormulaResult(str(raw.text), None if isinstance(result, EmptyCell) else result)
    return _literal(raw)


def coerce_number(cell: CellValue) -> float:
    """
    Read a cell as a number.

    Whitespace and thousands separators are removed, then a leading
    currency code / symbol ("USD", "$", "€") is dropped and the leading
    numeric token is read, so annotated text such as "$250,000 (year 1 of 3)"
    reads as 250000. Formula cells use their cached result. Text without a
    leading number, and anything else, is 0.
    """
    if isinstance(cell, NumberCell):
        return cell.value
    if isinstance(cell, FormulaResult):
        return coerce_number(cell.result) if cell.result is not None else 0.0
    if isinstance(cell, TextCell):
        cleaned = _SEPARATORS.sub("", cell.value)
        cleaned = _CURRENCY_PREFIX.sub(r"\1", cleaned, count=1)
        match = _LEADING_NUMBER.match(cleaned)
        return float(match.group()) if match else 0.0
    return 0.0


def coerce_text(cell: CellValue) -> str:
    """Read a cell as text; numbers keep integral values free of a trailing '.0'."""
    if isinstance(cell, TextCell):
        return cell.value
    if isinstance(cell, NumberCell):
        value = cell.value
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(cell, FormulaResult):
        return coerce_text(cell.result) if cell.result is not None else ""
    return ""


def _read_bytes(source: WorkbookSource) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if isinstance(source, (str, Path)):
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Excel file not found: {path}")
        return path.read_bytes()
    return source.read()


class SheetView:
    """A worksheet seen through both its formula and cached-value views."""

    def __init__(self, formulas: Worksheet, values: Worksheet):
        self._formulas = formulas
        self._values = values

    @property
    def title(self) -> str:
        return self._formulas.title

    @property
    def max_row(self) -> int:
        return self._formulas.max_row

    @property
    def max_column(self) -> int:
        return self._formulas.max_column

    def cell(self, row: int, column: int) -> CellValue:
        """1-based access, as in openpyxl."""
        return read_cell(
            self._formulas.cell(row=row, column=column).value,
            self._values.cell(row=row, column=column).value,
        )

    def row(self, row: int) -> list[CellValue]:
        return [self.cell(row, col) for col in range(1, self.max_column + 1)]

    def header_texts(self, row: int = 1) -> list[str]:
        return [coerce_text(c) for c in self.row(row)]


class WorkbookViews:
    """
    A workbook loaded twice: once for formulas, once for cached results.

    Usage:
        views = WorkbookViews.load(buffer)
        sheet = views.sheet("Cost Breakdown")
    """

    def __init__(self, formulas: Workbook, values: Workbook):
        self.formulas = formulas
        self.values = values

    @classmethod
    def load(cls, source: WorkbookSource) -> "WorkbookViews":
        configure_warning_filters()
        data = _read_bytes(source)
        formulas = openpyxl.load_workbook(io.BytesIO(data), data_only=False)
        values = openpyxl.load_workbook(io.BytesIO(data), data_only=True)
        return cls(formulas, values)

    @property
    def sheetnames(self) -> list[str]:
        return list(self.formulas.sheetnames)

    def sheet(self, name: str) -> Optional[SheetView]:
        if name not in self.formulas.sheetnames:
            return None
        return SheetView(self.formulas[name], self.values[name])

    def first_sheet(self) -> Optional[SheetView]:
        if not self.formulas.worksheets:
            return None
        return self.sheet(self.formulas.worksheets[0].title)

    def close(self) -> None:
        self.formulas.close()
        self.values.close()


def load_workbook_bytes(source: WorkbookSource) -> bytes:
    """Normalise any supported source to the raw workbook bytes."""
    return _read_bytes(source)
