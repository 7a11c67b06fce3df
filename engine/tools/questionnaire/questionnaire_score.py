"""
Compliance scoring and quality-characteristic mapping.

Scores are computed from parsed answers with fixed points:

    Full = 100, Partial = 50, None (or blank) = 0

    overall = round(points / (Full + Partial + None), 1)   # 0 when nothing answered

Not Applicable and unrecognised answers are reported as counts only; they
never enter the numerator or the denominator. Section scores apply the same
formula per lower-cased, trimmed section label ("uncategorized" if absent).

All functions here are pure and safe to call concurrently.
"""

from __future__ import annotations

from collections import Counter
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Mapping, Optional

from tools.questionnaire.questionnaire_config import (
    COMPLIANCE_POINTS,
    EVALUATION_WEIGHTS,
    NFR_DIMENSIONS,
    PERFORMANCE_WEIGHTS,
    PORTABILITY_WEIGHTS,
    SECURITY_WEIGHTS,
)
from tools.questionnaire.questionnaire_models import (
    CharacteristicScores,
    ComplianceAnswer,
    ComplianceLabel,
    EvaluationScores,
    NFRSectionScores,
    QuestionnaireScore,
    VendorExcelScores,
)


UNCATEGORIZED = "uncategorized"

_POINTS = {
    ComplianceLabel.FULL: COMPLIANCE_POINTS["Full"],
    ComplianceLabel.PARTIAL: COMPLIANCE_POINTS["Partial"],
    ComplianceLabel.NONE: COMPLIANCE_POINTS["None"],
}


def round1(value: float) -> float:
    """Half-up rounding to one decimal."""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), ROUND_HALF_UP))


def _score(counts: Mapping[ComplianceLabel, int]) -> float:
    answered = sum(counts.get(label, 0) for label in _POINTS)
    if answered == 0:
        return 0.0
    points = sum(counts.get(label, 0) * pts for label, pts in _POINTS.items())
    return round1(points / answered)


def section_key(section: Optional[str]) -> str:
    key = (section or "").strip().lower()
    return key or UNCATEGORIZED


def calculate_section_scores(answers: Iterable[ComplianceAnswer]) -> dict[str, float]:
    """
    Per-section scores, keyed by normalised section label in first-seen order.

    A section whose answers are all Not Applicable / unrecognised scores 0.
    """
    sections: dict[str, Counter] = {}
    for answer in answers:
        counts = sections.setdefault(section_key(answer.section), Counter())
        counts[answer.compliance_label] += 1
    return {key: _score(counts) for key, counts in sections.items()}


def calculate_questionnaire_score(
    answers: Iterable[ComplianceAnswer], questionnaire_type: str = "Unknown"
) -> QuestionnaireScore:
    """
    Score one parsed questionnaire.

    Args:
        answers: Parsed answers, in sheet order
        questionnaire_type: Label carried onto the result (e.g. "NFR")

    Returns:
        QuestionnaireScore with counts, overall and per-section scores
    """
    answers = list(answers)
    counts = Counter(a.compliance_label for a in answers)

    full = counts[ComplianceLabel.FULL]
    partial = counts[ComplianceLabel.PARTIAL]
    none = counts[ComplianceLabel.NONE]
    not_applicable = counts[ComplianceLabel.NOT_APPLICABLE]

    return QuestionnaireScore(
        questionnaire_type=questionnaire_type,
        total_questions=len(answers),
        answered_questions=full + partial + none,
        not_applicable_questions=not_applicable,
        unrecognized_questions=counts[ComplianceLabel.UNRECOGNIZED],
        full_compliance=full,
        partial_compliance=partial,
        no_compliance=none,
        overall_score=_score(counts),
        breakdown={
            "full": full,
            "partial": partial,
            "none": none,
            "notApplicable": not_applicable,
        },
        section_scores=calculate_section_scores(answers),
    )


def extract_nfr_section_scores(section_scores: Mapping[str, float]) -> NFRSectionScores:
    """
    Pick the 8 NFR dimensions out of free-form section labels.

    Each dimension takes the first section whose label contains the
    dimension name; unmatched dimensions are 0.
    """
    def get_score(dimension: str) -> float:
        for label, score in section_scores.items():
            if dimension in label.lower():
                return score
        return 0.0

    return NFRSectionScores(**{d: get_score(d) for d in NFR_DIMENSIONS})


def _blend(values: Mapping[str, float], weights: Mapping[str, float]) -> float:
    return round1(sum(values[k] * w for k, w in weights.items()))


def map_nfr_to_characteristics(
    nfr: NFRSectionScores, cybersecurity_score: Optional[float] = None
) -> CharacteristicScores:
    """
    Remap NFR dimensions onto the 7 quality characteristics.

        performanceEfficiency = performance*0.7 + scalability*0.3
        portability           = compatibility*0.6 + scalability*0.4
        security              = nfr.security*0.4 + cybersecurity*0.6
                                (nfr.security alone without a cybersecurity score)

    The rest pass through unchanged.
    """
    values = nfr.model_dump()
    if cybersecurity_score is not None:
        security = _blend(
            {"nfr": nfr.security, "cybersecurity": cybersecurity_score}, SECURITY_WEIGHTS
        )
    else:
        security = nfr.security

    return CharacteristicScores(
        compatibility=nfr.compatibility,
        maintainability=nfr.maintainability,
        performance_efficiency=_blend(values, PERFORMANCE_WEIGHTS),
        portability=_blend(values, PORTABILITY_WEIGHTS),
        reliability=nfr.reliability,
        security=security,
        usability=nfr.usability,
    )


def map_section_scores_to_characteristics(
    section_scores: Mapping[str, float], cybersecurity_score: Optional[float] = None
) -> CharacteristicScores:
    return map_nfr_to_characteristics(
        extract_nfr_section_scores(section_scores), cybersecurity_score
    )


def average_questionnaire_score(vendor: VendorExcelScores) -> float:
    """Mean overall score of the Product / NFR / Cybersecurity / Agile questionnaires present."""
    scores = [
        s.overall_score
        for s in (
            vendor.product_score,
            vendor.nfr_score,
            vendor.cybersecurity_score,
            vendor.agile_score,
        )
        if s is not None
    ]
    if not scores:
        return 0.0
    return round1(sum(scores) / len(scores))


def map_scores_to_evaluation(vendor: VendorExcelScores) -> EvaluationScores:
    """Translate questionnaire scores into evaluation dimensions; missing scores count as 0."""
    def overall(score) -> float:
        return score.overall_score if score is not None else 0.0

    values = {
        "product": overall(vendor.product_score),
        "nfr": overall(vendor.nfr_score),
    }
    agile = overall(vendor.agile_score)

    return EvaluationScores(
        technical_fit=_blend(values, EVALUATION_WEIGHTS["technicalFit"]),
        integration=_blend(values, EVALUATION_WEIGHTS["integration"]),
        compliance=overall(vendor.cybersecurity_score),
        delivery_risk=round1(100 - agile),
    )
