"""
Fixed vocabularies, scoring constants and runtime settings for the
questionnaire engine.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from utils.core.log import get_logger
from tools.questionnaire.questionnaire_models import CostLineItem


# ---------------------------------------------------------------------------
# Compliance vocabulary (shared by the template builder and the parser)
# ---------------------------------------------------------------------------

COMPLIANCE_FULL = "Full"
COMPLIANCE_PARTIAL = "Partial"
COMPLIANCE_NONE = "None"
COMPLIANCE_NOT_APPLICABLE = "Not Applicable"

COMPLIANCE_OPTIONS = [
    COMPLIANCE_FULL,
    COMPLIANCE_PARTIAL,
    COMPLIANCE_NONE,
    COMPLIANCE_NOT_APPLICABLE,
]

COMPLIANCE_POINTS = {
    COMPLIANCE_FULL: 100,
    COMPLIANCE_PARTIAL: 50,
    COMPLIANCE_NONE: 0,
}

LICENSING_MODEL_OPTIONS = [
    "Perpetual License",
    "Annual Subscription",
    "Per-User/Seat License",
    "Enterprise License",
    "Usage-Based/Pay-as-you-go",
    "Hybrid Model",
]

PAYMENT_TERMS_OPTIONS = [
    "Net 30",
    "Net 45",
    "Net 60",
    "Net 90",
    "Milestone-Based",
    "Annual in Advance",
    "Quarterly in Advance",
]

QUESTION_HEADERS = ["Number", "Question", "Category", "Compliance Score", "Remarks"]

COMMERCIAL_TERMS_HEADERS = [
    "Number",
    "Question",
    "Category",
    "Compliance Score",
    "Licensing Model",
    "Payment Terms",
    "Remarks",
]

COST_BREAKDOWN_HEADERS = [
    "No.",
    "Cost Category",
    "Description",
    "Unit",
    "Unit Price",
    "Quantity",
    "Year 1 Cost",
    "Year 2 Cost",
    "Year 3 Cost",
    "Year 4 Cost",
    "Year 5 Cost",
    "5-Year Total",
    "Notes",
]

SHEET_COMMERCIAL_TERMS = "Commercial Terms"
SHEET_COST_BREAKDOWN = "Cost Breakdown"
SHEET_TCO_SUMMARY = "TCO Summary"

TCO_YEARS = 5

# ---------------------------------------------------------------------------
# Cost extraction / pricing tiers
# ---------------------------------------------------------------------------

# (lower bound exclusive, tier) evaluated top-down against the yearly average
PRICING_TIER_THRESHOLDS = [
    (2_000_000, "premium"),
    (1_000_000, "competitive"),
    (500_000, "value"),
]
PRICING_TIER_FLOOR = "budget"

TOTAL_ROW_MARKERS = ("total", "summary", "grand total")

# ---------------------------------------------------------------------------
# Quality characteristic mapping
# ---------------------------------------------------------------------------

NFR_DIMENSIONS = [
    "performance",
    "reliability",
    "scalability",
    "security",
    "compliance",
    "compatibility",
    "maintainability",
    "usability",
]

PERFORMANCE_WEIGHTS = {"performance": 0.7, "scalability": 0.3}
PORTABILITY_WEIGHTS = {"compatibility": 0.6, "scalability": 0.4}
SECURITY_WEIGHTS = {"nfr": 0.4, "cybersecurity": 0.6}

# Evaluation dimensions derived from questionnaire overall scores
EVALUATION_WEIGHTS = {
    "technicalFit": {"product": 0.5, "nfr": 0.5},
    "integration": {"nfr": 0.7, "product": 0.3},
}

# ---------------------------------------------------------------------------
# Hybrid blending
# ---------------------------------------------------------------------------

DEFAULT_AI_WEIGHT = 0.4
DEFAULT_EXCEL_WEIGHT = 0.6


# ---------------------------------------------------------------------------
# Default cost schedule
# ---------------------------------------------------------------------------

DEFAULT_COST_LINE_ITEMS: tuple[CostLineItem, ...] = tuple(
    CostLineItem(number=i, cost_category=category, description=description, unit=unit)
    for i, (category, description, unit) in enumerate(
        [
            ("Licensing", "Base Software License", "License"),
            ("Licensing", "Annual License Renewal", "Per Year"),
            ("Licensing", "Additional User License", "Per User"),
            ("Implementation", "Implementation Services", "Fixed Fee"),
            ("Implementation", "Data Migration", "Fixed Fee"),
            ("Implementation", "System Integration", "Fixed Fee"),
            ("Training", "End-User Training", "Fixed Fee"),
            ("Training", "Administrator Training", "Fixed Fee"),
            ("Support & Maintenance", "Annual Support & Maintenance", "Per Year"),
            ("Support & Maintenance", "Premium Support (24/7)", "Per Year"),
            ("Infrastructure", "Cloud Hosting", "Per Year"),
            ("Infrastructure", "Additional Storage", "Per TB"),
            ("Professional Services", "Custom Development", "Per Day"),
            ("Professional Services", "Consulting Services", "Per Day"),
            ("Professional Services", "Change Request", "Per Request"),
        ],
        start=1,
    )
)


# ---------------------------------------------------------------------------
# Runtime settings
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScoringSettings:
    ai_weight: float = DEFAULT_AI_WEIGHT
    excel_weight: float = DEFAULT_EXCEL_WEIGHT
    output_dir: str = os.path.join("uploads", "questionnaires")
    header_fuzzy_threshold: float = 85.0
    cost_line_items: tuple[CostLineItem, ...] = field(
        default=DEFAULT_COST_LINE_ITEMS
    )


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        get_logger().warning("Ignoring %s=%r (not a number); using %s", name, raw, default)
        return default


def load_settings() -> ScoringSettings:
    return ScoringSettings(
        ai_weight=_env_float("HYBRID_AI_WEIGHT", DEFAULT_AI_WEIGHT),
        excel_weight=_env_float("HYBRID_EXCEL_WEIGHT", DEFAULT_EXCEL_WEIGHT),
        output_dir=os.environ.get(
            "QUESTIONNAIRE_OUTPUT_DIR", os.path.join("uploads", "questionnaires")
        ).strip(),
        header_fuzzy_threshold=_env_float("HEADER_FUZZY_THRESHOLD", 85.0),
    )
