"""Recover a newsletter's (month, year) from its file name or body text.

Each cascade is an ordered tuple of ``(name, strategy)`` pairs; the first
strategy returning a date wins. A strategy yields a whole ``InferredDate`` or
``None``, never a month without a year.
"""
from __future__ import annotations

import re
from typing import Callable, Optional, Sequence, Tuple

from common.config import yaml_config
from common.logger import get_logger
from ingestion.document_models import InferredDate
from ingestion.extractor import extract_plain_text

log = get_logger(__name__)

Strategy = Callable[[str], Optional[InferredDate]]

MONTH_NAMES = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)

MONTH_ABBREVIATIONS = {
    "jan": 0, "feb": 1, "mar": 2, "apr": 3, "may": 4, "jun": 5, "jul": 6,
    "aug": 7, "sep": 8, "sept": 8, "oct": 9, "nov": 10, "dec": 11,
}

GERMAN_MONTH_NAMES = {
    "januar": 0, "februar": 1, "märz": 2, "maerz": 2, "april": 3, "mai": 4,
    "juni": 5, "juli": 6, "august": 7, "september": 8, "oktober": 9,
    "november": 10, "dezember": 11,
}

_FULL = "|".join(MONTH_NAMES)
_GERMAN = "|".join(GERMAN_MONTH_NAMES)
_ABBR = "|".join(MONTH_ABBREVIATIONS)
_ANY_MONTH = f"{_FULL}|{_GERMAN}|{_ABBR}"

_ABBR_TOKEN_RES = [
    (re.compile(rf"\b{abbr}(?=\b|\d)"), idx) for abbr, idx in MONTH_ABBREVIATIONS.items()
]
_YEAR4_RE = re.compile(r"\b(?:19|20)\d{2}\b")
# Known false-positive source: any two-digit number after a non-digit qualifies.
# The 4-digit pass always runs first.
_YEAR2_RE = re.compile(r"(?:^|[^0-9])'?([0-9]{2})(?![0-9])")

_MONTH_YEAR_RE = re.compile(rf"\b({_ANY_MONTH})\s*[,-]?\s*(?:'(\d{{2}})|(\d{{4}})|(\d{{2}}))\b")
_COMPACT_RE = re.compile(rf"\b({_ABBR})(\d{{2}})(?!\d)")
_YEAR20_RE = re.compile(r"\b20\d{2}\b")
_MONTH_TOKEN_RE = re.compile(rf"\b({_ANY_MONTH})")


def month_index_of(token: str) -> Optional[int]:
    token = token.lower()
    if token in MONTH_NAMES:
        return MONTH_NAMES.index(token)
    if token in GERMAN_MONTH_NAMES:
        return GERMAN_MONTH_NAMES[token]
    return MONTH_ABBREVIATIONS.get(token)


def _run_cascade(cascade: Sequence[Tuple[str, Strategy]], value: str) -> Optional[InferredDate]:
    for name, strategy in cascade:
        found = strategy(value)
        if found is not None:
            log.debug("Date found by %s: %s", name, found)
            return found
    return None


# ---- identity (file name) strategies -------------------------------------


def _year_in(scope: str) -> Optional[int]:
    m = _YEAR4_RE.search(scope)
    if m:
        return int(m.group(0))
    m = _YEAR2_RE.search(scope)
    if m:
        return 2000 + int(m.group(1))
    return None


def _dated(month_index: Optional[int], scope: str) -> Optional[InferredDate]:
    if month_index is None:
        return None
    year = _year_in(scope)
    return InferredDate(month_index, year) if year is not None else None


def _full_month_in_identity(identity: str) -> Optional[InferredDate]:
    lower = identity.lower()
    month = next((i for i, name in enumerate(MONTH_NAMES) if name in lower), None)
    return _dated(month, lower)


def _abbreviation_in_identity(identity: str) -> Optional[InferredDate]:
    lower = identity.lower()
    month = next((idx for rx, idx in _ABBR_TOKEN_RES if rx.search(lower)), None)
    return _dated(month, lower)


# ---- body text strategies ------------------------------------------------


def _month_then_year(lower: str) -> Optional[InferredDate]:
    m = _MONTH_YEAR_RE.search(lower)
    if not m:
        return None
    quoted, four, two = m.group(2), m.group(3), m.group(4)
    year = int(four) if four else 2000 + int(quoted or two)
    month = month_index_of(m.group(1))
    if month is None or not 2000 <= year < 2100:
        return None
    return InferredDate(month, year)


def _compact_abbreviation(lower: str) -> Optional[InferredDate]:
    m = _COMPACT_RE.search(lower)
    if not m:
        return None
    return InferredDate(MONTH_ABBREVIATIONS[m.group(1)], 2000 + int(m.group(2)))


def _nearest_month_to_year(lower: str) -> Optional[InferredDate]:
    """First year (in document order) with a month token nearby, paired with its nearest month."""
    years = list(_YEAR20_RE.finditer(lower))
    if not years:
        return None
    months = list(_MONTH_TOKEN_RE.finditer(lower))
    limit = yaml_config.dates.max_month_year_distance

    for y in years:
        in_range = [m for m in months if abs(m.start() - y.start()) <= limit]
        if in_range:
            m = min(in_range, key=lambda m: abs(m.start() - y.start()))
            return InferredDate(month_index_of(m.group(1)), int(y.group(0)))
    return None


IDENTITY_CASCADE: Tuple[Tuple[str, Strategy], ...] = (
    ("full-month-name", _full_month_in_identity),
    ("month-abbreviation", _abbreviation_in_identity),
)

TEXT_CASCADE: Tuple[Tuple[str, Strategy], ...] = (
    ("month-year", _month_then_year),
    ("compact-abbreviation", _compact_abbreviation),
    ("nearest-month-to-year", _nearest_month_to_year),
)


def infer_date_from_identity(identity: str) -> Optional[InferredDate]:
    if not identity:
        return None
    try:
        return _run_cascade(IDENTITY_CASCADE, identity)
    except Exception:
        log.warning("Date inference failed for identity %r", identity, exc_info=True)
        return None


def infer_date_from_text(text: str) -> Optional[InferredDate]:
    if not text:
        return None
    try:
        lower = text.replace("\x00", "").lower()
        return _run_cascade(TEXT_CASCADE, lower)
    except Exception:
        log.warning("Date inference from text failed", exc_info=True)
        return None


def infer_date_from_html(html: str) -> Optional[InferredDate]:
    return infer_date_from_text(extract_plain_text(html))


def infer_date(identity: str, raw_text: Optional[str] = None) -> Optional[InferredDate]:
    """Catalog cascade: file name, then raw text, then rendered body text."""
    found = infer_date_from_identity(identity)
    if found is None and raw_text:
        found = infer_date_from_text(raw_text) or infer_date_from_html(raw_text)
    return found
