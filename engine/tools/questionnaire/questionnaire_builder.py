"""
Questionnaire template generation using openpyxl.

Builds the workbooks vendors fill in:

- A compliance questionnaire: Number | Question | Category | Compliance Score
  | Remarks, with a dropdown restricted to the compliance vocabulary, a frozen
  header and alternating row shading.
- A procurement questionnaire with three linked sheets:
    1. Commercial Terms  - the compliance layout plus Licensing Model and
                           Payment Terms dropdowns
    2. Cost Breakdown    - one row per cost line item, grouped by category,
                           with input cells for unit price, quantity and
                           years 1-5 and a formula for the 5-year total
    3. TCO Summary       - SUMIF formulas per category, a grand total and an
                           average annual cost

Formulas are written, never evaluated; any spreadsheet application
recalculates them on open.

Usage:
    from tools.questionnaire.questionnaire_builder import generate_questionnaire

    path = generate_questionnaire("NFR Questionnaire", questions, "out/nfr.xlsx")
    data = procurement_questionnaire_bytes(commercial_questions)
"""

from __future__ import annotations

import io
import os
import re
import time
from pathlib import Path
from typing import Iterable, Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter, quote_sheetname
from openpyxl.worksheet.datavalidation import DataValidation
from openpyxl.worksheet.worksheet import Worksheet

from utils.core.log import get_logger
from tools.questionnaire.questionnaire_config import (
    COMMERCIAL_TERMS_HEADERS,
    COMPLIANCE_OPTIONS,
    COST_BREAKDOWN_HEADERS,
    LICENSING_MODEL_OPTIONS,
    PAYMENT_TERMS_OPTIONS,
    QUESTION_HEADERS,
    SHEET_COMMERCIAL_TERMS,
    SHEET_COST_BREAKDOWN,
    SHEET_TCO_SUMMARY,
    TCO_YEARS,
    ScoringSettings,
    load_settings,
)
from tools.questionnaire.questionnaire_models import CostLineItem, QuestionRecord


HEADER_FONT = Font(bold=True, size=12, color="FFFFFFFF")
HEADER_FILL = PatternFill(fill_type="solid", fgColor="FF1F4788")
HEADER_ALIGNMENT = Alignment(vertical="center", horizontal="center", wrap_text=True)
STRIPE_FILL = PatternFill(fill_type="solid", fgColor="FFF5F5F5")
TOTAL_FILL = PatternFill(fill_type="solid", fgColor="FFDDE4F0")
TOTAL_FONT = Font(bold=True)
ROW_ALIGNMENT = Alignment(vertical="top", wrap_text=True)
_THIN = Side(style="thin", color="FFCCCCCC")
CELL_BORDER = Border(top=_THIN, left=_THIN, bottom=_THIN, right=_THIN)
CURRENCY_FORMAT = "#,##0.00"

QUESTION_WIDTHS = [8, 60, 20, 25, 40]
COMMERCIAL_WIDTHS = [8, 60, 20, 22, 26, 22, 40]
COST_WIDTHS = [6, 24, 36, 14, 14, 10, 14, 14, 14, 14, 14, 16, 30]

# Title -> filename stem used by generate_all_questionnaires
QUESTIONNAIRE_TITLES = {
    "product": "Product Questionnaire",
    "nfr": "NFR Questionnaire",
    "cybersecurity": "Cybersecurity Questionnaire",
    "agile": "Agile Delivery Questionnaire",
}

_INVALID_SHEET_CHARS = re.compile(r"[\[\]\:\*\?\/\\]")


def _sheet_title(title: str) -> str:
    """Excel sheet names: max 31 chars, no []:*?/\\ characters."""
    cleaned = _INVALID_SHEET_CHARS.sub(" ", title or "").strip()
    return (cleaned or "Questionnaire")[:31]


def _list_validation(options: Sequence[str], error: str) -> DataValidation:
    return DataValidation(
        type="list",
        formula1='"' + ",".join(options) + '"',
        allow_blank=True,
        showErrorMessage=True,
        errorStyle="stop",
        errorTitle="Invalid Selection",
        error=error,
    )


def _write_header(ws: Worksheet, headers: Sequence[str], widths: Sequence[int]) -> None:
    ws.append(list(headers))
    for col_idx, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(col_idx)].width = width
    for cell in ws[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGNMENT
        cell.border = CELL_BORDER
    ws.row_dimensions[1].height = 25
    ws.freeze_panes = "A2"


def _style_row(ws: Worksheet, row_idx: int, n_cols: int, striped: bool) -> None:
    for col_idx in range(1, n_cols + 1):
        cell = ws.cell(row=row_idx, column=col_idx)
        cell.alignment = ROW_ALIGNMENT
        cell.border = CELL_BORDER
        if striped:
            cell.fill = STRIPE_FILL


def _write_questions(
    ws: Worksheet,
    questions: Sequence[QuestionRecord],
    headers: Sequence[str],
) -> None:
    """Question rows under an existing header; extra columns are left blank for the vendor."""
    for index, q in enumerate(questions):
        row_idx = index + 2
        values = [q.number, q.question, q.category or ""] + [None] * (len(headers) - 3)
        for col_idx, value in enumerate(values, start=1):
            ws.cell(row=row_idx, column=col_idx, value=value)
        _style_row(ws, row_idx, len(headers), striped=index % 2 == 0)
        ws.row_dimensions[row_idx].height = 30


def _add_dropdown(
    ws: Worksheet, column: int, n_rows: int, options: Sequence[str], error: str
) -> Optional[DataValidation]:
    if n_rows <= 0:
        return None
    letter = get_column_letter(column)
    dv = _list_validation(options, error)
    ws.add_data_validation(dv)
    dv.add(f"{letter}2:{letter}{n_rows + 1}")
    return dv


def _compliance_column(headers: Sequence[str]) -> int:
    return headers.index("Compliance Score") + 1


def create_questionnaire_workbook(
    title: str, questions: Sequence[QuestionRecord]
) -> Workbook:
    """
    Build a single-sheet compliance questionnaire.

    Args:
        title: Sheet title (trimmed to Excel's 31-character limit)
        questions: Ordered questions to place, one per row

    Returns:
        openpyxl Workbook ready to save
    """
    wb = Workbook()
    ws = wb.active
    ws.title = _sheet_title(title)

    _write_header(ws, QUESTION_HEADERS, QUESTION_WIDTHS)
    _write_questions(ws, questions, QUESTION_HEADERS)
    _add_dropdown(
        ws,
        _compliance_column(QUESTION_HEADERS),
        len(questions),
        COMPLIANCE_OPTIONS,
        "Please select a valid compliance score",
    )
    return wb


def _group_by_category(items: Iterable[CostLineItem]) -> list[CostLineItem]:
    """Stable grouping: categories in order of first appearance."""
    order: dict[str, list[CostLineItem]] = {}
    for item in items:
        order.setdefault(item.cost_category, []).append(item)
    return [item for group in order.values() for item in group]


def _build_commercial_terms(ws: Worksheet, questions: Sequence[QuestionRecord]) -> None:
    headers = COMMERCIAL_TERMS_HEADERS
    _write_header(ws, headers, COMMERCIAL_WIDTHS)
    _write_questions(ws, questions, headers)
    n = len(questions)
    _add_dropdown(
        ws, _compliance_column(headers), n, COMPLIANCE_OPTIONS,
        "Please select a valid compliance score",
    )
    _add_dropdown(
        ws, headers.index("Licensing Model") + 1, n, LICENSING_MODEL_OPTIONS,
        "Please select a licensing model from the list",
    )
    _add_dropdown(
        ws, headers.index("Payment Terms") + 1, n, PAYMENT_TERMS_OPTIONS,
        "Please select payment terms from the list",
    )


def _build_cost_breakdown(ws: Worksheet, items: Sequence[CostLineItem]) -> tuple[int, int]:
    """
    Write the cost schedule and a trailing Grand Total row.

    Returns:
        (first data row, last data row); last < first when there are no items
    """
    headers = COST_BREAKDOWN_HEADERS
    _write_header(ws, headers, COST_WIDTHS)

    col = {h: headers.index(h) + 1 for h in headers}
    year_cols = [col[f"Year {y} Cost"] for y in range(1, TCO_YEARS + 1)]
    first_year = get_column_letter(year_cols[0])
    last_year = get_column_letter(year_cols[-1])
    total_col = col["5-Year Total"]

    first_row = 2
    row_idx = first_row - 1
    for index, item in enumerate(_group_by_category(items)):
        row_idx = first_row + index
        ws.cell(row=row_idx, column=col["No."], value=item.number)
        ws.cell(row=row_idx, column=col["Cost Category"], value=item.cost_category)
        ws.cell(row=row_idx, column=col["Description"], value=item.description)
        ws.cell(row=row_idx, column=col["Unit"], value=item.unit)
        ws.cell(
            row=row_idx,
            column=total_col,
            value=f"=SUM({first_year}{row_idx}:{last_year}{row_idx})",
        )
        for c in [col["Unit Price"], *year_cols, total_col]:
            ws.cell(row=row_idx, column=c).number_format = CURRENCY_FORMAT
        _style_row(ws, row_idx, len(headers), striped=index % 2 == 0)
    last_row = row_idx

    grand_row = last_row + 1
    ws.cell(row=grand_row, column=col["Cost Category"], value="Grand Total")
    if last_row >= first_row:
        for c in [*year_cols, total_col]:
            letter = get_column_letter(c)
            cell = ws.cell(
                row=grand_row, column=c, value=f"=SUM({letter}{first_row}:{letter}{last_row})"
            )
            cell.number_format = CURRENCY_FORMAT
    for col_idx in range(1, len(headers) + 1):
        cell = ws.cell(row=grand_row, column=col_idx)
        cell.font = TOTAL_FONT
        cell.fill = TOTAL_FILL
        cell.border = CELL_BORDER
    return first_row, last_row


def _build_tco_summary(ws: Worksheet, items: Sequence[CostLineItem]) -> None:
    cost_ref = quote_sheetname(SHEET_COST_BREAKDOWN)
    category_letter = get_column_letter(COST_BREAKDOWN_HEADERS.index("Cost Category") + 1)
    total_letter = get_column_letter(COST_BREAKDOWN_HEADERS.index("5-Year Total") + 1)

    ws.column_dimensions["A"].width = 32
    ws.column_dimensions["B"].width = 24
    ws["A1"] = "Total Cost of Ownership Summary"
    ws["A1"].font = Font(bold=True, size=14)
    ws["A2"] = "Vendor Name"
    ws["A3"] = "Solution Name"
    for ref in ("A2", "A3"):
        ws[ref].font = TOTAL_FONT

    header_row = 5
    ws.cell(row=header_row, column=1, value="Cost Category")
    ws.cell(row=header_row, column=2, value="5-Year Total")
    for cell in ws[header_row]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGNMENT
        cell.border = CELL_BORDER

    categories = list(dict.fromkeys(item.cost_category for item in items))
    row_idx = header_row
    for index, category in enumerate(categories):
        row_idx = header_row + 1 + index
        ws.cell(row=row_idx, column=1, value=category)
        cell = ws.cell(
            row=row_idx,
            column=2,
            value=(
                f"=SUMIF({cost_ref}!${category_letter}:${category_letter},"
                f"A{row_idx},{cost_ref}!${total_letter}:${total_letter})"
            ),
        )
        cell.number_format = CURRENCY_FORMAT
        _style_row(ws, row_idx, 2, striped=index % 2 == 0)

    grand_row = row_idx + 1
    ws.cell(row=grand_row, column=1, value="Grand Total (5-Year TCO)")
    if categories:
        grand_formula = f"=SUM(B{header_row + 1}:B{row_idx})"
    else:
        grand_formula = "=0"
    ws.cell(row=grand_row, column=2, value=grand_formula)
    ws.cell(row=grand_row + 1, column=1, value="Average Annual Cost")
    ws.cell(row=grand_row + 1, column=2, value=f"=B{grand_row}/{TCO_YEARS}")
    for r in (grand_row, grand_row + 1):
        for c in (1, 2):
            cell = ws.cell(row=r, column=c)
            cell.font = TOTAL_FONT
            cell.fill = TOTAL_FILL
            cell.border = CELL_BORDER
        ws.cell(row=r, column=2).number_format = CURRENCY_FORMAT


def create_procurement_workbook(
    questions: Sequence[QuestionRecord],
    cost_items: Optional[Sequence[CostLineItem]] = None,
    settings: Optional[ScoringSettings] = None,
) -> Workbook:
    """
    Build the three-sheet procurement questionnaire.

    Args:
        questions: Commercial terms questions
        cost_items: Cost schedule; settings.cost_line_items when omitted
        settings: Runtime settings, load_settings() when omitted

    Returns:
        openpyxl Workbook with Commercial Terms, Cost Breakdown and TCO Summary
    """
    if cost_items is None:
        cost_items = (settings or load_settings()).cost_line_items
    items = list(cost_items)

    wb = Workbook()
    terms = wb.active
    terms.title = SHEET_COMMERCIAL_TERMS
    _build_commercial_terms(terms, questions)
    _build_cost_breakdown(wb.create_sheet(SHEET_COST_BREAKDOWN), items)
    _build_tco_summary(wb.create_sheet(SHEET_TCO_SUMMARY), items)
    return wb


def workbook_to_bytes(wb: Workbook) -> bytes:
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def questionnaire_bytes(title: str, questions: Sequence[QuestionRecord]) -> bytes:
    return workbook_to_bytes(create_questionnaire_workbook(title, questions))


def procurement_questionnaire_bytes(
    questions: Sequence[QuestionRecord],
    cost_items: Optional[Sequence[CostLineItem]] = None,
    settings: Optional[ScoringSettings] = None,
) -> bytes:
    return workbook_to_bytes(create_procurement_workbook(questions, cost_items, settings))


def _save(wb: Workbook, output_path: str | Path) -> str:
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    return str(path)


def generate_questionnaire(
    title: str, questions: Sequence[QuestionRecord], output_path: str | Path
) -> str:
    """
    Write a compliance questionnaire to `output_path`.

    Returns:
        The written path
    """
    logger = get_logger()
    path = _save(create_questionnaire_workbook(title, questions), output_path)
    logger.info("Generated '%s' with %d questions -> %s", title, len(questions), path)
    return path


def generate_procurement_questionnaire(
    questions: Sequence[QuestionRecord],
    output_path: str | Path,
    cost_items: Optional[Sequence[CostLineItem]] = None,
    settings: Optional[ScoringSettings] = None,
) -> str:
    logger = get_logger()
    path = _save(create_procurement_workbook(questions, cost_items, settings), output_path)
    logger.info(
        "Generated procurement questionnaire with %d questions -> %s", len(questions), path
    )
    return path


def generate_all_questionnaires(
    project_id: str,
    questions_by_type: dict[str, Sequence[QuestionRecord]],
    output_dir: Optional[str | Path] = None,
    procurement_questions: Optional[Sequence[QuestionRecord]] = None,
    cost_items: Optional[Sequence[CostLineItem]] = None,
    settings: Optional[ScoringSettings] = None,
) -> dict[str, str]:
    """
    Generate the Product, NFR, Cybersecurity and Agile Delivery questionnaires
    (and the procurement workbook when its questions are supplied).

    Args:
        project_id: Prefix for the generated filenames
        questions_by_type: {"product"|"nfr"|"cybersecurity"|"agile": questions}
        output_dir: Directory the files are written to; settings.output_dir when omitted
        procurement_questions: Commercial terms questions, optional
        cost_items: Cost schedule override for the procurement workbook
        settings: Runtime settings, load_settings() when omitted

    Returns:
        {questionnaire type: written path}
    """
    settings = settings or load_settings()
    if output_dir is None:
        output_dir = settings.output_dir

    timestamp = int(time.time() * 1000)
    paths: dict[str, str] = {}
    for key, title in QUESTIONNAIRE_TITLES.items():
        questions = questions_by_type.get(key)
        if questions is None:
            continue
        filename = f"{project_id}_{key}_{timestamp}.xlsx"
        paths[key] = generate_questionnaire(title, questions, os.path.join(output_dir, filename))

    if procurement_questions is not None:
        filename = f"{project_id}_procurement_{timestamp}.xlsx"
        paths["procurement"] = generate_procurement_questionnaire(
            procurement_questions, os.path.join(output_dir, filename), cost_items, settings
        )
    return paths
