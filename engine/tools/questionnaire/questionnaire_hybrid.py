"""
Hybrid score blending.

Combines an externally judged (AI) score with the deterministic spreadsheet
score. Without a spreadsheet score the AI score passes through unchanged and
the weight metadata says so ({ai: 1.0, excel: 0.0}).
"""

from __future__ import annotations

from typing import Optional

from tools.questionnaire.questionnaire_config import (
    DEFAULT_AI_WEIGHT,
    DEFAULT_EXCEL_WEIGHT,
)
from tools.questionnaire.questionnaire_models import HybridScore, HybridWeight
from tools.questionnaire.questionnaire_score import round1


def _normalize_weights(ai_weight: float, excel_weight: float) -> tuple[float, float]:
    if ai_weight < 0 or excel_weight < 0:
        raise ValueError("Hybrid weights must be non-negative")
    total = ai_weight + excel_weight
    if total == 0:
        raise ValueError("At least one hybrid weight must be positive")
    if abs(total - 1.0) < 1e-9:
        return ai_weight, excel_weight
    return ai_weight / total, excel_weight / total


def calculate_hybrid_score(
    ai_score: float,
    excel_score: Optional[float],
    ai_weight: float = DEFAULT_AI_WEIGHT,
    excel_weight: float = DEFAULT_EXCEL_WEIGHT,
) -> HybridScore:
    """
    Blend the AI score with the spreadsheet score.

    Args:
        ai_score: Always-present qualitative score (0-100)
        excel_score: Spreadsheet-derived score, or None when unavailable
        ai_weight: Weight of the AI score (default 0.4)
        excel_weight: Weight of the spreadsheet score (default 0.6)

    Weights that do not sum to 1 are scaled proportionally before blending.
    The weights reported on the result are the ones applied, rounded to two
    decimals (0.5/0.6 is applied and reported as 0.45/0.55).

    Returns:
        HybridScore with combined_score = round(ai*w_ai + excel*w_excel, 1)
    """
    if not 0 <= ai_score <= 100:
        raise ValueError(f"AI score must be within 0-100, got {ai_score}")

    if excel_score is None:
        return HybridScore(
            ai_score=ai_score,
            excel_score=None,
            combined_score=ai_score,
            weight=HybridWeight(ai=1.0, excel=0.0),
        )

    if not 0 <= excel_score <= 100:
        raise ValueError(f"Spreadsheet score must be within 0-100, got {excel_score}")

    ai_w, excel_w = _normalize_weights(ai_weight, excel_weight)
    combined = round1(ai_score * ai_w + excel_score * excel_w)
    return HybridScore(
        ai_score=ai_score,
        excel_score=excel_score,
        combined_score=min(100.0, max(0.0, combined)),
        weight=HybridWeight(ai=round(ai_w, 2), excel=round(excel_w, 2)),
    )
