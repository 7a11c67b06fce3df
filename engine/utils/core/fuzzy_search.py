"""
Header matching for semi-structured spreadsheets.

Columns are located by a keyword table {field -> acceptable substrings}
evaluated once per header row. Fields listed in `fuzzy_fields` get a second,
typo-tolerant pass (rapidfuzz) over the headers left unclaimed.

pip install rapidfuzz
"""

import re
from dataclasses import dataclass
from typing import Any, Hashable, Iterable, Mapping, Optional, Sequence

from rapidfuzz import fuzz

from utils.core.log import get_logger


@dataclass(frozen=True)
class HeaderMatch:
    """
    A header cell resolved to a canonical field.

    Attributes:
        field: Canonical field key from the keyword table
        index: 0-based column index
        header: Original header text
        confidence: 1.0 for a keyword hit, rapidfuzz ratio / 100 otherwise
    """

    field: Hashable
    index: int
    header: str
    confidence: float = 1.0


def normalize_text(txt: str) -> str:
    txt = txt.replace("‘", "'").replace("’", "'")
    txt = re.sub(r"\s+", " ", txt)
    return txt.strip().lower()


def normalize_header(value: Any) -> str:
    if value is None:
        return ""
    return normalize_text(str(value))


def _keyword_hit(header: str, substrings: Iterable[str], exact: Iterable[str]) -> bool:
    if header in exact:
        return True
    return any(s in header for s in substrings)


def _fuzzy_score(header: str, substrings: Iterable[str]) -> float:
    words = [w for w in re.split(r"[^\w]+", header) if len(w) >= 4]
    best = 0.0
    for keyword in substrings:
        for word in words:
            best = max(best, fuzz.ratio(keyword, word))
    return best


def match_headers(
    headers: Sequence[Any],
    keyword_table: Mapping[Hashable, Sequence[str]],
    exact_table: Optional[Mapping[Hashable, Sequence[str]]] = None,
    fuzzy_fields: Iterable[Hashable] = (),
    threshold: float = 85,
) -> dict[Hashable, HeaderMatch]:
    """
    Resolve header cells to canonical fields.

    Each header is claimed by the first field (in table order) whose keyword
    it contains or whose exact token it equals; each field keeps the first
    header that claims it. Unresolved fields in `fuzzy_fields` are then
    matched against the remaining headers by word-level rapidfuzz ratio.

    Args:
        headers: Raw header cell values, in column order
        keyword_table: {field: substrings}, order defines priority
        exact_table: {field: tokens that must equal the whole header}
        fuzzy_fields: Fields allowed a typo-tolerant second pass
        threshold: Minimum rapidfuzz ratio (0-100) for the second pass

    Returns:
        {field: HeaderMatch} for every resolved field
    """
    logger = get_logger()
    exact_table = exact_table or {}
    normalized = [normalize_header(h) for h in headers]
    matches: dict[Hashable, HeaderMatch] = {}
    claimed: set[int] = set()

    for idx, header in enumerate(normalized):
        if not header:
            continue
        for field, substrings in keyword_table.items():
            if _keyword_hit(header, substrings, exact_table.get(field, ())):
                claimed.add(idx)
                if field not in matches:
                    matches[field] = HeaderMatch(field, idx, str(headers[idx]).strip())
                break

    for field in fuzzy_fields:
        if field in matches:
            continue
        best_idx, best_score = None, 0.0
        for idx, header in enumerate(normalized):
            if not header or idx in claimed:
                continue
            score = _fuzzy_score(header, keyword_table.get(field, ()))
            if score > best_score:
                best_idx, best_score = idx, score
        if best_idx is not None and best_score >= threshold:
            claimed.add(best_idx)
            matches[field] = HeaderMatch(
                field, best_idx, str(headers[best_idx]).strip(), round(best_score / 100, 2)
            )
            logger.debug(
                f"Fuzzy header match ({best_score:.0f}%) for {field!r} -> '{headers[best_idx]}'"
            )

    return matches
