"""
Unit tests for questionnaire template generation
================================================
Tests cover:
1. Compliance questionnaire layout, styling and dropdowns
2. Procurement workbook: Commercial Terms, Cost Breakdown formulas, TCO Summary
3. File output helpers
"""

import io
import os

import openpyxl
import pytest

from tools.questionnaire.questionnaire_builder import (
    create_procurement_workbook,
    create_questionnaire_workbook,
    generate_all_questionnaires,
    generate_questionnaire,
    questionnaire_bytes,
)
from tools.questionnaire.questionnaire_config import (
    COMPLIANCE_OPTIONS,
    DEFAULT_COST_LINE_ITEMS,
    ScoringSettings,
)
from tools.questionnaire.questionnaire_models import CostLineItem, QuestionRecord


def validation_formulas(ws):
    return {str(dv.sqref): dv.formula1 for dv in ws.data_validations.dataValidation}


class TestQuestionnaireWorkbook:
    """Single-sheet compliance questionnaire"""

    def test_header_and_rows(self, questions):
        ws = create_questionnaire_workbook("NFR Questionnaire", questions).active
        assert [c.value for c in ws[1]] == [
            "Number", "Question", "Category", "Compliance Score", "Remarks",
        ]
        assert ws["A2"].value == 1
        assert ws["B2"].value == "Supports SSO via SAML 2.0?"
        assert ws["C2"].value == "Security"
        assert ws["D2"].value is None
        assert ws.max_row == len(questions) + 1

    def test_header_styling(self, questions):
        ws = create_questionnaire_workbook("NFR", questions).active
        assert ws["A1"].font.bold
        assert ws["A1"].fill.fgColor.rgb == "FF1F4788"
        assert ws.freeze_panes == "A2"

    def test_alternate_rows_shaded(self, questions):
        ws = create_questionnaire_workbook("NFR", questions).active
        assert ws["A2"].fill.fgColor.rgb == "FFF5F5F5"
        assert ws["A3"].fill.fill_type is None

    def test_compliance_dropdown(self, questions):
        ws = create_questionnaire_workbook("NFR", questions).active
        formulas = validation_formulas(ws)
        assert formulas == {"D2:D5": '"' + ",".join(COMPLIANCE_OPTIONS) + '"'}

    def test_no_questions_no_dropdown(self):
        ws = create_questionnaire_workbook("Empty", []).active
        assert ws.max_row == 1
        assert validation_formulas(ws) == {}

    def test_long_or_invalid_titles_sanitised(self, questions):
        ws = create_questionnaire_workbook("Cyber/Security [Draft]: a very long questionnaire title", questions).active
        assert len(ws.title) <= 31
        assert "/" not in ws.title and "[" not in ws.title

    def test_deterministic_content(self, questions):
        first = create_questionnaire_workbook("NFR", questions).active
        second = create_questionnaire_workbook("NFR", questions).active
        assert [[c.value for c in r] for r in first.iter_rows()] == [
            [c.value for c in r] for r in second.iter_rows()
        ]


class TestProcurementWorkbook:
    """Three linked sheets"""

    def test_sheet_order(self, questions):
        wb = create_procurement_workbook(questions)
        assert wb.sheetnames == ["Commercial Terms", "Cost Breakdown", "TCO Summary"]

    def test_commercial_terms_dropdowns(self, questions):
        ws = create_procurement_workbook(questions)["Commercial Terms"]
        assert [c.value for c in ws[1]][4:6] == ["Licensing Model", "Payment Terms"]
        formulas = validation_formulas(ws)
        assert set(formulas) == {"D2:D5", "E2:E5", "F2:F5"}
        assert "Net 30" in formulas["F2:F5"]
        assert "Perpetual License" in formulas["E2:E5"]

    def test_cost_breakdown_row_formulas(self, questions):
        ws = create_procurement_workbook(questions)["Cost Breakdown"]
        assert ws["B1"].value == "Cost Category"
        assert ws["L1"].value == "5-Year Total"
        assert ws["B2"].value == "Licensing"
        assert ws["L2"].value == "=SUM(G2:K2)"
        last = len(DEFAULT_COST_LINE_ITEMS) + 1
        assert ws[f"L{last}"].value == f"=SUM(G{last}:K{last})"

    def test_cost_breakdown_grand_total(self, questions):
        ws = create_procurement_workbook(questions)["Cost Breakdown"]
        last = len(DEFAULT_COST_LINE_ITEMS) + 1
        grand = last + 1
        assert ws[f"B{grand}"].value == "Grand Total"
        assert ws[f"G{grand}"].value == f"=SUM(G2:G{last})"
        assert ws[f"L{grand}"].value == f"=SUM(L2:L{last})"

    def test_cost_items_grouped_by_category(self, questions):
        items = [
            CostLineItem(number=1, cost_category="Licensing", description="Base"),
            CostLineItem(number=2, cost_category="Training", description="Users"),
            CostLineItem(number=3, cost_category="Licensing", description="Renewal"),
        ]
        ws = create_procurement_workbook(questions, items)["Cost Breakdown"]
        assert [ws[f"B{r}"].value for r in range(2, 5)] == ["Licensing", "Licensing", "Training"]
        assert [ws[f"C{r}"].value for r in range(2, 5)] == ["Base", "Renewal", "Users"]

    def test_tco_summary_formulas(self, questions):
        items = [
            CostLineItem(number=1, cost_category="Licensing", description="Base"),
            CostLineItem(number=2, cost_category="Training", description="Users"),
        ]
        ws = create_procurement_workbook(questions, items)["TCO Summary"]
        assert ws["A2"].value == "Vendor Name"
        assert ws["A3"].value == "Solution Name"
        assert ws["A6"].value == "Licensing"
        assert ws["B6"].value == "=SUMIF('Cost Breakdown'!$B:$B,A6,'Cost Breakdown'!$L:$L)"
        assert ws["A8"].value == "Grand Total (5-Year TCO)"
        assert ws["B8"].value == "=SUM(B6:B7)"
        assert ws["B9"].value == "=B8/5"

    def test_cost_schedule_from_settings(self, questions):
        settings = ScoringSettings(
            cost_line_items=(CostLineItem(number=1, cost_category="Hosting", description="Cloud"),)
        )
        wb = create_procurement_workbook(questions, settings=settings)
        assert wb["Cost Breakdown"]["B2"].value == "Hosting"
        assert wb["Cost Breakdown"]["B3"].value == "Grand Total"
        assert wb["TCO Summary"]["A6"].value == "Hosting"

    def test_empty_cost_schedule(self, questions):
        wb = create_procurement_workbook(questions, [])
        assert wb["Cost Breakdown"]["B2"].value == "Grand Total"
        assert wb["TCO Summary"]["B6"].value == "=0"


class TestOutput:
    def test_bytes_reload(self, questions):
        wb = openpyxl.load_workbook(io.BytesIO(questionnaire_bytes("Product", questions)))
        assert wb.active["B3"].value == "p95 latency under 200ms?"

    def test_generate_questionnaire_creates_dirs(self, tmp_path, questions):
        path = generate_questionnaire("Agile", questions, tmp_path / "nested" / "agile.xlsx")
        assert os.path.exists(path)

    def test_generate_all(self, tmp_path, questions):
        paths = generate_all_questionnaires(
            "proj-1",
            {"product": questions, "nfr": questions},
            tmp_path,
            procurement_questions=questions,
        )
        assert set(paths) == {"product", "nfr", "procurement"}
        for key, path in paths.items():
            assert os.path.basename(path).startswith(f"proj-1_{key}_")
            assert path.endswith(".xlsx")
            assert os.path.exists(path)

    def test_generate_all_defaults_to_settings_output_dir(self, tmp_path, questions):
        settings = ScoringSettings(output_dir=str(tmp_path / "generated"))
        paths = generate_all_questionnaires(
            "proj-2", {"agile": questions}, procurement_questions=questions, settings=settings
        )
        assert set(paths) == {"agile", "procurement"}
        for path in paths.values():
            assert os.path.dirname(path) == str(tmp_path / "generated")
            assert os.path.exists(path)

    def test_question_record_requires_text(self):
        with pytest.raises(ValueError):
            QuestionRecord(number=1, question="")
