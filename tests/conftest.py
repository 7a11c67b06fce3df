"""
Shared fixtures: small in-memory workbooks shaped like vendor uploads.
"""

import io

import pytest
from openpyxl import Workbook

from tools.questionnaire.questionnaire_models import QuestionRecord


def build_xlsx(sheets):
    """
    Args:
        sheets: {sheet title: list of rows}, first row is the header

    Returns:
        Workbook bytes
    """
    wb = Workbook()
    wb.remove(wb.active)
    for title, rows in sheets.items():
        ws = wb.create_sheet(title)
        for row in rows:
            ws.append(list(row))
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.fixture
def make_xlsx():
    return build_xlsx


@pytest.fixture
def questions():
    return [
        QuestionRecord(number=1, question="Supports SSO via SAML 2.0?", category="Security"),
        QuestionRecord(number=2, question="p95 latency under 200ms?", category="Performance"),
        QuestionRecord(number=3, question="Horizontal scaling supported?", category="Scalability"),
        QuestionRecord(number=4, question="Runs on-premise?", category=None),
    ]


@pytest.fixture
def answered_questionnaire(make_xlsx):
    """Ten answers: 6 Full, 3 Partial, 1 None."""
    header = ["Number", "Question", "Category", "Compliance Score", "Remarks"]
    labels = ["Full"] * 6 + ["Partial"] * 3 + ["None"]
    rows = [header] + [
        [i, f"Question {i}", "General", label, ""] for i, label in enumerate(labels, start=1)
    ]
    return make_xlsx({"Product Questionnaire": rows})
