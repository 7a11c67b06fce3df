"""
Vendor Scoring Tools - questionnaire generation and evaluation.

Submodules:
- questionnaire: Vendor questionnaires, compliance scoring, cost extraction
"""

from tools import questionnaire

__all__ = [
    "questionnaire",
]
