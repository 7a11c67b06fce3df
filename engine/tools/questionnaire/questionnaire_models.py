"""
Pydantic models for questionnaire templates, vendor answers and the scores
derived from them.

The hierarchy is:
    QuestionRecord          (question placed in a template)
    ComplianceAnswer        (one filled row read back from a vendor workbook)
    QuestionnaireScore      (overall + per-section score for one workbook)
    NFRSectionScores        (8 NFR dimensions picked out of section scores)
    CharacteristicScores    (7 quality characteristics blended from NFR)
    CostLineItem            (one row of the Cost Breakdown schedule)
    ProcurementCostSummary  (5-year totals, TCO and pricing tier)
    HybridScore             (AI score blended with the spreadsheet score)
    VendorExcelScores       (everything scored for one vendor)

All models serialise with camelCase aliases (`model_dump(by_alias=True)`)
for the persistence layer and front end.
"""

from __future__ import annotations

import json
import re
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Model(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_dict(self) -> dict:
        """Dictionary with camelCase keys."""
        return self.model_dump(by_alias=True)


class _FrozenModel(_Model):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class ComplianceLabel(str, Enum):
    """Normalised compliance answer."""

    FULL = "Full"
    PARTIAL = "Partial"
    NONE = "None"
    NOT_APPLICABLE = "Not Applicable"
    UNRECOGNIZED = "Unrecognized"


PricingTier = Literal["premium", "competitive", "value", "budget"]


class QuestionRecord(_FrozenModel):
    """A question placed in a template. Supplied by the text-generation step."""

    number: int = Field(ge=1, description="1-based ordinal shown in the Number column")
    question: str = Field(min_length=1, description="Question wording")
    category: Optional[str] = Field(
        default=None, description="Section / category label (e.g. Performance, Security)"
    )


class ComplianceAnswer(_FrozenModel):
    """
    One vendor-filled questionnaire row.

    `compliance_raw` keeps the cell text exactly as the vendor left it so
    unrecognised answers can be audited.
    """

    row_number: int = Field(description="1-based worksheet row")
    question: str
    compliance_raw: str = ""
    compliance_label: ComplianceLabel = ComplianceLabel.NONE
    remarks: str = ""
    section: Optional[str] = None


class QuestionnaireParseResult(_Model):
    """Answers read from a workbook plus what the parser could (not) recognise."""

    sheet_name: Optional[str] = None
    headers: list[str] = Field(default_factory=list)
    recognized: bool = True
    answers: list[ComplianceAnswer] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class QuestionnaireScore(_Model):
    questionnaire_type: str = "Unknown"
    total_questions: int = 0
    answered_questions: int = 0
    not_applicable_questions: int = 0
    unrecognized_questions: int = 0
    full_compliance: int = 0
    partial_compliance: int = 0
    no_compliance: int = 0
    overall_score: float = Field(default=0.0, ge=0, le=100)
    breakdown: dict[str, int] = Field(default_factory=dict)
    section_scores: dict[str, float] = Field(default_factory=dict)


class NFRSectionScores(_FrozenModel):
    performance: float = 0.0
    reliability: float = 0.0
    scalability: float = 0.0
    security: float = 0.0
    compliance: float = 0.0
    compatibility: float = 0.0
    maintainability: float = 0.0
    usability: float = 0.0


class CharacteristicScores(_FrozenModel):
    compatibility: float = 0.0
    maintainability: float = 0.0
    performance_efficiency: float = 0.0
    portability: float = 0.0
    reliability: float = 0.0
    security: float = 0.0
    usability: float = 0.0


class CostLineItem(_FrozenModel):
    """
    A row of the Cost Breakdown schedule. The vendor fills unit price,
    quantity and the five year costs; the 5-Year Total is a formula.
    """

    number: int = Field(ge=1)
    cost_category: str
    description: str
    unit: str = ""


class ProcurementCostSummary(_Model):
    year1_total: float = 0.0
    year2_total: float = 0.0
    year3_total: float = 0.0
    year4_total: float = 0.0
    year5_total: float = 0.0
    tco_total: float = 0.0
    populated_years: int = 0
    yearly_average: float = 0.0
    pricing_tier: PricingTier = "budget"
    formatted: str = Field(
        default="", description="Display string; empty when no cost data was found"
    )

    @property
    def year_totals(self) -> list[float]:
        return [
            self.year1_total,
            self.year2_total,
            self.year3_total,
            self.year4_total,
            self.year5_total,
        ]


class HybridWeight(_FrozenModel):
    ai: float = Field(ge=0, le=1)
    excel: float = Field(ge=0, le=1)


class HybridScore(_Model):
    ai_score: float = Field(ge=0, le=100)
    excel_score: Optional[float] = Field(
        default=None, description="Absent when no spreadsheet score exists"
    )
    combined_score: float = Field(ge=0, le=100)
    weight: HybridWeight


class EvaluationScores(_Model):
    technical_fit: float = 0.0
    integration: float = 0.0
    compliance: float = 0.0
    delivery_risk: float = 0.0


class VendorExcelScores(_Model):
    vendor_name: str = ""
    product_score: Optional[QuestionnaireScore] = None
    nfr_score: Optional[QuestionnaireScore] = None
    cybersecurity_score: Optional[QuestionnaireScore] = None
    agile_score: Optional[QuestionnaireScore] = None
    procurement_score: Optional[QuestionnaireScore] = None
    procurement_cost_summary: Optional[ProcurementCostSummary] = None
    average_score: float = 0.0
    nfr_section_scores: Optional[NFRSectionScores] = None
    characteristic_scores: Optional[CharacteristicScores] = None
    unavailable: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        description="Questionnaire type -> error payload for documents that could not be scored",
    )


_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def coerce_question_records(payload: Any) -> list[QuestionRecord]:
    """
    Turn generated question output into numbered QuestionRecords.

    Accepts a JSON string (optionally inside a ``` fence), a list, or an
    object with a "questions" list. List entries may be plain strings or
    dicts carrying "question"/"text" and "category"/"section". Entries
    without text are dropped; numbering follows the surviving order.
    """
    if isinstance(payload, (str, bytes)):
        text = payload.decode() if isinstance(payload, bytes) else payload
        payload = json.loads(_FENCE.sub("", text.strip()))

    if isinstance(payload, dict):
        payload = payload.get("questions", [])
    if not isinstance(payload, list):
        raise ValueError("Generated questions must be a list or an object with 'questions'")

    records: list[QuestionRecord] = []
    for entry in payload:
        if isinstance(entry, str):
            text, category = entry, None
        elif isinstance(entry, dict):
            text = entry.get("question") or entry.get("text") or ""
            category = entry.get("category") or entry.get("section")
        else:
            continue
        text = str(text).strip()
        if not text:
            continue
        records.append(
            QuestionRecord(
                number=len(records) + 1,
                question=text,
                category=str(category).strip() if category else None,
            )
        )
    return records
