"""
Procurement cost extraction.

Reads the "Cost Breakdown" sheet of a vendor-filled procurement workbook,
sums the five year columns over every non-total row and derives the
5-year TCO and a pricing tier.

A workbook without a Cost Breakdown sheet yields an all-zero summary with an
empty display string; unreadable cost cells count as 0.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from utils.core.errors import MissingSheetError
from utils.core.fuzzy_search import match_headers
from utils.core.log import get_logger
from utils.document.cells import (
    SheetView,
    WorkbookSource,
    WorkbookViews,
    coerce_number,
    coerce_text,
)
from tools.questionnaire.questionnaire_config import (
    PRICING_TIER_FLOOR,
    PRICING_TIER_THRESHOLDS,
    SHEET_COST_BREAKDOWN,
    TCO_YEARS,
    TOTAL_ROW_MARKERS,
)
from tools.questionnaire.questionnaire_models import ProcurementCostSummary


class CostColumn(str, Enum):
    CATEGORY = "category"
    YEAR1 = "year1"
    YEAR2 = "year2"
    YEAR3 = "year3"
    YEAR4 = "year4"
    YEAR5 = "year5"
    TOTAL = "total"


YEAR_COLUMNS = [CostColumn.YEAR1, CostColumn.YEAR2, CostColumn.YEAR3, CostColumn.YEAR4, CostColumn.YEAR5]

COST_COLUMN_KEYWORDS: dict[CostColumn, tuple[str, ...]] = {
    CostColumn.CATEGORY: ("cost category", "category"),
    **{col: (f"year {n}",) for n, col in enumerate(YEAR_COLUMNS, start=1)},
    CostColumn.TOTAL: ("5-year", "total"),
}

COST_COLUMN_EXACT: dict[CostColumn, tuple[str, ...]] = {
    col: (f"year{n}cost",) for n, col in enumerate(YEAR_COLUMNS, start=1)
}

# Category is assumed to be the first column when no header names it
DEFAULT_CATEGORY_INDEX = 0


def pricing_tier_for(yearly_average: float) -> str:
    for lower_bound, tier in PRICING_TIER_THRESHOLDS:
        if yearly_average > lower_bound:
            return tier
    return PRICING_TIER_FLOOR


def format_cost(amount: float) -> str:
    """$1.2M / $350K / $800"""
    if amount >= 1_000_000:
        return f"${amount / 1_000_000:.1f}M"
    if amount >= 1_000:
        return f"${amount / 1_000:.0f}K"
    return f"${amount:.0f}"


def is_total_row(category_text: str) -> bool:
    text = category_text.strip().lower()
    return any(marker in text for marker in TOTAL_ROW_MARKERS)


def summarize_year_totals(year_totals: list[float]) -> ProcurementCostSummary:
    """
    Build the summary from five year totals.

    The yearly average is taken over populated years only (total > 0), so a
    vendor quoting two years is not diluted by three empty ones.
    """
    if len(year_totals) != TCO_YEARS:
        raise ValueError(f"Expected {TCO_YEARS} year totals, got {len(year_totals)}")

    tco_total = sum(year_totals)
    populated_years = sum(1 for y in year_totals if y > 0)
    yearly_average = tco_total / populated_years if populated_years > 0 else 0.0

    formatted = ""
    if tco_total > 0:
        formatted = (
            f"{format_cost(tco_total)} 5-year TCO ({format_cost(yearly_average)}/year avg)"
        )

    return ProcurementCostSummary(
        year1_total=year_totals[0],
        year2_total=year_totals[1],
        year3_total=year_totals[2],
        year4_total=year_totals[3],
        year5_total=year_totals[4],
        tco_total=tco_total,
        populated_years=populated_years,
        yearly_average=yearly_average,
        pricing_tier=pricing_tier_for(yearly_average),
        formatted=formatted,
    )


def _sum_cost_sheet(sheet: SheetView) -> list[float]:
    logger = get_logger()
    columns = match_headers(
        sheet.header_texts(1), COST_COLUMN_KEYWORDS, exact_table=COST_COLUMN_EXACT
    )
    category_idx = (
        columns[CostColumn.CATEGORY].index
        if CostColumn.CATEGORY in columns
        else DEFAULT_CATEGORY_INDEX
    )
    missing = [c.value for c in YEAR_COLUMNS if c not in columns]
    if missing:
        logger.warning("Cost Breakdown is missing year column(s): %s", ", ".join(missing))

    totals = [0.0] * TCO_YEARS
    skipped = 0
    for row_idx in range(2, sheet.max_row + 1):
        category = coerce_text(sheet.cell(row_idx, category_idx + 1))
        if is_total_row(category):
            skipped += 1
            continue
        for year, col in enumerate(YEAR_COLUMNS):
            match = columns.get(col)
            if match is not None:
                totals[year] += coerce_number(sheet.cell(row_idx, match.index + 1))

    logger.debug("Cost Breakdown summed with %d total/summary row(s) skipped", skipped)
    return totals


def extract_procurement_costs(
    source: WorkbookSource | WorkbookViews, strict: bool = False
) -> ProcurementCostSummary:
    """
    Extract the 5-year cost summary from a procurement workbook.

    Args:
        source: Workbook bytes / path / stream, or already-loaded views
        strict: Raise MissingSheetError instead of returning a zero summary

    Returns:
        ProcurementCostSummary
    """
    logger = get_logger()
    owned = not isinstance(source, WorkbookViews)
    views = WorkbookViews.load(source) if owned else source
    try:
        sheet: Optional[SheetView] = views.sheet(SHEET_COST_BREAKDOWN)
        if sheet is None:
            if strict:
                raise MissingSheetError(f"No '{SHEET_COST_BREAKDOWN}' sheet in workbook")
            logger.warning(
                "No '%s' sheet found (sheets: %s); returning zero cost summary",
                SHEET_COST_BREAKDOWN,
                ", ".join(views.sheetnames),
            )
            return summarize_year_totals([0.0] * TCO_YEARS)
        return summarize_year_totals(_sum_cost_sheet(sheet))
    finally:
        if owned:
            views.close()
