"""
Unit tests for vendor scoring orchestration
===========================================
Tests cover:
1. Filename classification
2. Per-vendor scoring with per-document failure isolation
3. Async batch scoring over vendors
4. Hybrid blending of vendor results
5. Command line entry point
"""

import asyncio
import json

import pytest

from tools.questionnaire.questionnaire import (
    VendorDocument,
    blend_vendor_score,
    calculate_excel_scores_for_vendor,
    classify_questionnaire,
    main,
    score_vendors,
)
from tools.questionnaire.questionnaire_config import ScoringSettings
from tools.questionnaire.questionnaire_models import QuestionnaireScore, VendorExcelScores


SETTINGS = ScoringSettings()


@pytest.fixture
def nfr_workbook(make_xlsx):
    rows = [
        ["Question", "Category", "Compliance Score"],
        ["Q1", "Performance", "Full"],
        ["Q2", "Performance", "Partial"],
        ["Q3", "Scalability", "Partial"],
        ["Q4", "Security", "None"],
    ]
    return make_xlsx({"NFR": rows})


@pytest.fixture
def cyber_workbook(make_xlsx):
    return make_xlsx({"Cyber": [["Question", "Compliance"], ["Q1", "Full"], ["Q2", "Full"]]})


@pytest.fixture
def procurement_workbook(make_xlsx):
    return make_xlsx(
        {
            "Commercial Terms": [["Question", "Compliance Score"], ["Net 30?", "Full"], ["Escrow?", "None"]],
            "Cost Breakdown": [
                ["Cost Category", "Year 1 Cost", "Year 2 Cost", "Year 3 Cost", "Year 4 Cost", "Year 5 Cost"],
                ["Licensing", 600000, 600000, 600000, 600000, 600000],
            ],
        }
    )


class TestClassifyQuestionnaire:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Acme_Product_Questionnaire.xlsx", "Product"),
            ("acme-nfr.xlsx", "NFR"),
            ("Non-Functional Requirements.xlsx", "NFR"),
            ("cybersecurity_answers.xlsx", "Cybersecurity"),
            ("Security.xlsx", "Cybersecurity"),
            ("agile_delivery.xlsx", "Agile"),
            ("commercial_offer.xlsx", "Procurement"),
            ("uploads/p1/procurement_product_terms.xlsx", "Procurement"),
            ("pricing.xlsx", None),
        ],
    )
    def test_classification(self, name, expected):
        assert classify_questionnaire(name) == expected


class TestCalculateVendorScores:
    """Score every workbook a vendor submitted"""

    def test_scores_each_questionnaire(self, answered_questionnaire, nfr_workbook, cyber_workbook):
        scores = calculate_excel_scores_for_vendor(
            "Acme",
            [
                VendorDocument("acme_product.xlsx", data=answered_questionnaire),
                VendorDocument("acme_nfr.xlsx", data=nfr_workbook),
                VendorDocument("acme_cybersecurity.xlsx", data=cyber_workbook),
            ],
            SETTINGS,
        )
        assert scores.product_score.overall_score == 75.0
        assert scores.product_score.questionnaire_type == "Product"
        assert scores.nfr_score.overall_score == 50.0
        assert scores.cybersecurity_score.overall_score == 100.0
        assert scores.agile_score is None
        assert scores.average_score == 75.0
        assert scores.unavailable == {}

    def test_nfr_characteristics_derived(self, nfr_workbook, cyber_workbook):
        scores = calculate_excel_scores_for_vendor(
            "Acme",
            [
                VendorDocument("nfr.xlsx", data=nfr_workbook),
                VendorDocument("cybersecurity.xlsx", data=cyber_workbook),
            ],
            SETTINGS,
        )
        assert scores.nfr_section_scores.performance == 75.0
        assert scores.nfr_section_scores.scalability == 50.0
        # 75*0.7 + 50*0.3
        assert scores.characteristic_scores.performance_efficiency == 67.5
        # 0*0.4 + 100*0.6
        assert scores.characteristic_scores.security == 60.0

    def test_procurement_yields_cost_and_score(self, procurement_workbook):
        scores = calculate_excel_scores_for_vendor(
            "Acme", [VendorDocument("Acme Procurement.xlsx", data=procurement_workbook)], SETTINGS
        )
        assert scores.procurement_score.overall_score == 50.0
        assert scores.procurement_cost_summary.tco_total == 3_000_000
        assert scores.procurement_cost_summary.pricing_tier == "value"
        # procurement is not part of the questionnaire average
        assert scores.average_score == 0.0

    def test_broken_document_isolated(self, answered_questionnaire):
        scores = calculate_excel_scores_for_vendor(
            "Acme",
            [
                VendorDocument("acme_nfr.xlsx", data=b"not a workbook"),
                VendorDocument("acme_product.xlsx", data=answered_questionnaire),
            ],
            SETTINGS,
        )
        assert scores.product_score.overall_score == 75.0
        assert scores.nfr_score is None
        assert scores.unavailable["NFR"]["status"] == "error"
        assert scores.unavailable["NFR"]["file"] == "acme_nfr.xlsx"

    def test_later_broken_duplicate_keeps_earlier_score(self, answered_questionnaire):
        scores = calculate_excel_scores_for_vendor(
            "Acme",
            [
                VendorDocument("acme_product.xlsx", data=answered_questionnaire),
                VendorDocument("acme_product_v2.xlsx", data=b"not a workbook"),
                VendorDocument("acme_product_v3.xlsx", key="acme/product_v3.xlsx"),
            ],
            SETTINGS,
        )
        assert scores.product_score.overall_score == 75.0
        assert "Product" not in scores.unavailable

    def test_unrecognised_structure_marked_unavailable(self, make_xlsx):
        data = make_xlsx({"S": [["Item", "Answer"], ["x", "Full"]]})
        scores = calculate_excel_scores_for_vendor(
            "Acme", [VendorDocument("agile.xlsx", data=data)], SETTINGS
        )
        assert scores.agile_score is None
        assert "structure not recognized" in scores.unavailable["Agile"]["error"]

    def test_non_excel_and_unclassified_ignored(self, answered_questionnaire):
        scores = calculate_excel_scores_for_vendor(
            "Acme",
            [
                VendorDocument("product_brochure.pdf", data=b"%PDF"),
                VendorDocument("pricing.xlsx", data=answered_questionnaire),
            ],
            SETTINGS,
        )
        assert scores == VendorExcelScores(vendor_name="Acme")


class TestScoreVendors:
    """Async batch over vendors"""

    def test_batch_with_fetch(self, answered_questionnaire, cyber_workbook):
        store = {
            "p1/acme/product.xlsx": answered_questionnaire,
            "p1/globex/security.xlsx": cyber_workbook,
        }

        async def fetch(key):
            return store[key]

        progress = []
        vendors = {
            "Acme": [VendorDocument("product.xlsx", key="p1/acme/product.xlsx")],
            "Globex": [VendorDocument("security.xlsx", key="p1/globex/security.xlsx")],
        }
        results = asyncio.run(
            score_vendors(vendors, fetch, settings=SETTINGS, progress_callback=progress.append)
        )

        assert results["Acme"].product_score.overall_score == 75.0
        assert results["Globex"].cybersecurity_score.overall_score == 100.0
        assert progress[0]["stage"] == "score"
        assert {p["vendor_name"] for p in progress if p["stage"] == "vendor_done"} == {"Acme", "Globex"}

    def test_failed_download_isolated(self, answered_questionnaire):
        async def fetch(key):
            if "broken" in key:
                raise ConnectionError("object store unavailable")
            return answered_questionnaire

        vendors = {
            "Acme": [
                VendorDocument("product.xlsx", key="acme/product.xlsx"),
                VendorDocument("nfr.xlsx", key="acme/broken/nfr.xlsx"),
            ],
            "Globex": [VendorDocument("product.xlsx", key="globex/product.xlsx")],
        }
        results = asyncio.run(score_vendors(vendors, fetch, settings=SETTINGS))

        assert results["Acme"].product_score.overall_score == 75.0
        nfr = results["Acme"].unavailable["NFR"]
        assert nfr["stage"] == "fetch"
        assert nfr["error"] == "object store unavailable"
        assert nfr["errorType"] == "ConnectionError"
        assert results["Globex"].product_score.overall_score == 75.0

    def test_empty_batch(self):
        assert asyncio.run(score_vendors({}, settings=SETTINGS)) == {}


class TestBlendVendorScore:
    def test_blends_with_average(self):
        vendor = VendorExcelScores(
            vendor_name="Acme", product_score=QuestionnaireScore(overall_score=60), average_score=60
        )
        assert blend_vendor_score(80, vendor, SETTINGS).combined_score == 68.0

    def test_ai_only_without_questionnaires(self):
        vendor = VendorExcelScores(
            vendor_name="Acme", procurement_score=QuestionnaireScore(overall_score=90)
        )
        result = blend_vendor_score(80, vendor, SETTINGS)
        assert result.combined_score == 80
        assert result.excel_score is None
        assert blend_vendor_score(80, None, SETTINGS).weight.ai == 1.0


class TestCommandLine:
    def test_generate_and_score(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr("tools.questionnaire.questionnaire.setup_logging", lambda: None)
        questions = tmp_path / "questions.json"
        questions.write_text(json.dumps(["Supports SSO?", "Encrypts data at rest?"]))
        output = tmp_path / "acme_cybersecurity.xlsx"

        assert main(["generate", str(questions), str(output), "--title", "Cybersecurity"]) == 0
        assert output.exists()
        capsys.readouterr()

        assert main(["score", str(output), "--vendor", "Acme", "--ai-score", "80"]) == 0
        payload = json.loads(capsys.readouterr().out)
        # blank answers score as None
        assert payload["scores"]["cybersecurityScore"]["overallScore"] == 0.0
        assert payload["hybrid"]["combinedScore"] == 32.0

    def test_generate_defaults_to_configured_output_dir(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr("tools.questionnaire.questionnaire.setup_logging", lambda: None)
        monkeypatch.setenv("QUESTIONNAIRE_OUTPUT_DIR", str(tmp_path / "out"))
        questions = tmp_path / "questions.json"
        questions.write_text(json.dumps(["Net 30 payment terms?"]))

        assert main(["generate", str(questions), "--procurement"]) == 0
        written = tmp_path / "out" / "procurement_questionnaire.xlsx"
        assert capsys.readouterr().out.strip().splitlines()[-1] == str(written)
        assert written.exists()
