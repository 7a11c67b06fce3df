"""
Vendor Scoring Utils - shared utility functions.

Submodules:
- core: Logging, errors, warning filters and header matching
- document: Workbook loading and typed cell access
"""

from utils import core
from utils import document

__all__ = [
    "core",
    "document",
]
