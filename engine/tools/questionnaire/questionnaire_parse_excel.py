"""
Vendor questionnaire parsing using openpyxl.

Reads a vendor-filled questionnaire workbook back into ComplianceAnswer
records. Columns are located by header text, never by position, so vendors
may reorder or rename columns as long as the header still carries one of
the keywords below.

Usage:
    from tools.questionnaire.questionnaire_parse_excel import QuestionnaireParser

    result = QuestionnaireParser(buffer).parse()
    if not result.recognized:
        print(result.warnings)
"""

from __future__ import annotations

import io
from enum import Enum, auto
from typing import Any, Iterable, Optional

import openpyxl

from utils.core.errors import StructuralParseError
from utils.core.fuzzy_search import HeaderMatch, match_headers
from utils.core.log import get_logger
from utils.document.cells import (
    SheetView,
    WorkbookSource,
    WorkbookViews,
    coerce_text,
    load_workbook_bytes,
)
from tools.questionnaire.questionnaire_models import (
    ComplianceAnswer,
    ComplianceLabel,
    QuestionnaireParseResult,
)


class ColumnType(Enum):
    """Columns the parser looks for in a questionnaire header row."""
    SECTION = auto()
    QUESTION = auto()
    COMPLIANCE = auto()
    REMARKS = auto()


# Table order is priority order: a header is claimed by the first type it matches.
COLUMN_KEYWORDS: dict[ColumnType, tuple[str, ...]] = {
    ColumnType.SECTION: ("section", "category"),
    ColumnType.QUESTION: ("question",),
    ColumnType.COMPLIANCE: ("compliance",),
    ColumnType.REMARKS: ("remark",),
}

COLUMN_EXACT: dict[ColumnType, tuple[str, ...]] = {
    ColumnType.QUESTION: ("#",),
}

# Misspelt "Complaince" / "Remakrs" headers are still worth recovering
FUZZY_COLUMNS = (ColumnType.COMPLIANCE, ColumnType.REMARKS)

COMPLIANCE_LABELS: dict[str, ComplianceLabel] = {
    "full": ComplianceLabel.FULL,
    "partial": ComplianceLabel.PARTIAL,
    "none": ComplianceLabel.NONE,
    "": ComplianceLabel.NONE,
    "not applicable": ComplianceLabel.NOT_APPLICABLE,
    "n/a": ComplianceLabel.NOT_APPLICABLE,
}

STRUCTURE_NOT_RECOGNIZED = "structure not recognized"


def normalize_compliance(raw: Optional[str]) -> ComplianceLabel:
    """
    Map cell text to a ComplianceLabel.

    Case-insensitive and trimmed. Blank is treated exactly like "None";
    any other unknown text is UNRECOGNIZED.
    """
    key = (raw or "").strip().lower()
    return COMPLIANCE_LABELS.get(key, ComplianceLabel.UNRECOGNIZED)


def locate_columns(
    headers: list[str], fuzzy_threshold: float = 85
) -> dict[ColumnType, HeaderMatch]:
    return match_headers(
        headers,
        COLUMN_KEYWORDS,
        exact_table=COLUMN_EXACT,
        fuzzy_fields=FUZZY_COLUMNS,
        threshold=fuzzy_threshold,
    )


class QuestionnaireParser:
    """
    Parser for vendor-filled questionnaire workbooks.

    Reads the first worksheet (the Commercial Terms sheet of a procurement
    workbook). A workbook without a compliance or question column yields an
    empty, unrecognised result rather than an exception, unless `strict` is
    set.
    """

    def __init__(
        self,
        source: WorkbookSource,
        fuzzy_threshold: float = 85,
        strict: bool = False,
    ):
        """
        Args:
            source: Workbook bytes, path or binary stream
            fuzzy_threshold: rapidfuzz ratio for misspelt headers
            strict: Raise StructuralParseError instead of failing soft

        Raises:
            FileNotFoundError: If a path is given and doesn't exist
        """
        self._data = load_workbook_bytes(source)
        self.fuzzy_threshold = fuzzy_threshold
        self.strict = strict

    def parse(self) -> QuestionnaireParseResult:
        views = WorkbookViews.load(self._data)
        try:
            sheet = views.first_sheet()
            if sheet is None:
                return self._unrecognized(None, [], "workbook has no worksheets")
            return self._parse_sheet(sheet)
        finally:
            views.close()

    def _unrecognized(
        self, sheet_name: Optional[str], headers: list[str], reason: str
    ) -> QuestionnaireParseResult:
        message = f"{STRUCTURE_NOT_RECOGNIZED}: {reason}"
        if self.strict:
            raise StructuralParseError(message)
        get_logger().warning("Questionnaire %s (sheet=%s)", message, sheet_name)
        return QuestionnaireParseResult(
            sheet_name=sheet_name,
            headers=headers,
            recognized=False,
            answers=[],
            warnings=[message],
        )

    def _parse_sheet(self, sheet: SheetView) -> QuestionnaireParseResult:
        headers = sheet.header_texts(1)
        columns = locate_columns(headers, self.fuzzy_threshold)

        if ColumnType.COMPLIANCE not in columns:
            return self._unrecognized(sheet.title, headers, "no compliance column")
        if ColumnType.QUESTION not in columns:
            return self._unrecognized(sheet.title, headers, "no question column")

        warnings = [
            f"'{m.header}' read as {m.field.name.lower()} column (fuzzy match {m.confidence:.0%})"
            for m in columns.values()
            if m.confidence < 1.0
        ]

        def text_at(row: int, column: ColumnType) -> str:
            match = columns.get(column)
            if match is None:
                return ""
            return coerce_text(sheet.cell(row, match.index + 1))

        answers: list[ComplianceAnswer] = []
        unrecognized = 0
        for row_idx in range(2, sheet.max_row + 1):
            question = text_at(row_idx, ColumnType.QUESTION).strip()
            if not question:
                continue

            raw = text_at(row_idx, ColumnType.COMPLIANCE)
            label = normalize_compliance(raw)
            if label is ComplianceLabel.UNRECOGNIZED:
                unrecognized += 1
            section = text_at(row_idx, ColumnType.SECTION).strip()

            answers.append(
                ComplianceAnswer(
                    row_number=row_idx,
                    question=question,
                    compliance_raw=raw,
                    compliance_label=label,
                    remarks=text_at(row_idx, ColumnType.REMARKS),
                    section=section or None,
                )
            )

        if unrecognized:
            warnings.append(f"{unrecognized} row(s) with unrecognized compliance text")

        get_logger().debug(
            "Parsed %d answers from sheet '%s'", len(answers), sheet.title
        )
        return QuestionnaireParseResult(
            sheet_name=sheet.title,
            headers=headers,
            recognized=True,
            answers=answers,
            warnings=warnings,
        )


def parse_questionnaire(
    source: WorkbookSource, fuzzy_threshold: float = 85
) -> QuestionnaireParseResult:
    return QuestionnaireParser(source, fuzzy_threshold=fuzzy_threshold).parse()


def parse_excel_questionnaire(source: WorkbookSource) -> list[ComplianceAnswer]:
    """
    Convenience function returning only the answers.

    An unrecognised workbook yields an empty list.
    """
    return parse_questionnaire(source).answers


def parse_questionnaire_to_json(source: WorkbookSource) -> dict[str, Any]:
    """
    Flatten the first worksheet for an editing front end.

    Returns:
        {"headers": [...], "rows": [{"rowNumber", "question", "compliance",
        "remarks", <header>: <text>, ...}]} for every row with a question
    """
    views = WorkbookViews.load(source)
    try:
        sheet = views.first_sheet()
        if sheet is None:
            return {"headers": [], "rows": []}

        headers = [
            text or f"Column {idx}" for idx, text in enumerate(sheet.header_texts(1), start=1)
        ]
        columns = locate_columns(headers)
        question_match = columns.get(ColumnType.QUESTION)

        rows: list[dict[str, Any]] = []
        for row_idx in range(2, sheet.max_row + 1):
            values = [coerce_text(c) for c in sheet.row(row_idx)]
            question = values[question_match.index].strip() if question_match else ""
            if not question:
                continue
            row: dict[str, Any] = {
                "rowNumber": row_idx,
                "question": question,
                "compliance": "",
                "remarks": "",
            }
            for field, key in (
                (ColumnType.COMPLIANCE, "compliance"),
                (ColumnType.REMARKS, "remarks"),
            ):
                match = columns.get(field)
                if match is not None:
                    row[key] = values[match.index]
            for header, value in zip(headers, values):
                row.setdefault(header, value)
            rows.append(row)
        return {"headers": headers, "rows": rows}
    finally:
        views.close()


def update_questionnaire_from_json(
    source: WorkbookSource, updated_rows: Iterable[dict[str, Any]]
) -> bytes:
    """
    Write edited compliance / remark values back into the workbook.

    Rows are addressed by their "rowNumber". Formulas, dropdowns and other
    sheets are preserved.

    Returns:
        The updated workbook as bytes
    """
    logger = get_logger()
    wb = openpyxl.load_workbook(io.BytesIO(load_workbook_bytes(source)))
    ws = wb.worksheets[0]

    headers = [c.value for c in ws[1]]
    columns = locate_columns([str(h) if h is not None else "" for h in headers])
    compliance = columns.get(ColumnType.COMPLIANCE)
    remarks = columns.get(ColumnType.REMARKS)

    for row in updated_rows:
        row_number = row.get("rowNumber", row.get("row_number"))
        if not isinstance(row_number, int) or row_number < 2:
            logger.debug("Skipping edited row without a valid rowNumber: %r", row)
            continue
        if compliance is not None and "compliance" in row:
            ws.cell(row=row_number, column=compliance.index + 1, value=row["compliance"])
        if remarks is not None and "remarks" in row:
            ws.cell(row=row_number, column=remarks.index + 1, value=row["remarks"])

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()
