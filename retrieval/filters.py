from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from ingestion.document_models import NewsletterRecord, SearchIndexEntry
from ingestion.text_index import build_query_snippet, highlight

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class ChapterMatch:
    newsletter_id: str
    newsletter_slug: str
    section_id: str
    href: str
    html: str


def filter_newsletters(
    records: Iterable[NewsletterRecord],
    month_index: Optional[int] = None,
    year: Optional[int] = None,
    query: Optional[str] = None,
    search_index: Optional[Dict[str, SearchIndexEntry]] = None,
) -> List[NewsletterRecord]:
    """
    Narrow the catalog the way the archive page does:
      - month/year must equal the record's date when given (undated records drop out)
      - query matches title, excerpt or body text, case-insensitively
    """
    search_index = search_index or {}
    q = (query or "").strip().lower()
    out: List[NewsletterRecord] = []
    for r in records:
        if month_index is not None or year is not None:
            if r.date is None:
                continue
            if year is not None and r.date.year != year:
                continue
            if month_index is not None and r.date.month_index != month_index:
                continue
        if q:
            entry = search_index.get(r.id)
            body = entry.text if entry else r.text
            if not any(q in s.lower() for s in (r.title, r.excerpt, body)):
                continue
        out.append(r)
    return out


def normalize_chapter_name(name: str) -> str:
    s = (name or "").lower().replace("™", "").replace("&", "and")
    return _NON_ALNUM_RE.sub(" ", s).strip()


def _newest_first_key(record: NewsletterRecord):
    if record.date is None:
        return (1, 0)
    return (0, -(record.date.year * 12 + record.date.month_index))


def find_chapter_matches(records: Iterable[NewsletterRecord], chapter: str) -> List[ChapterMatch]:
    """First section per newsletter whose title contains the chapter name."""
    wanted = normalize_chapter_name(chapter)
    if not wanted:
        return []
    matched = []
    for r in records:
        found = next((s for s in r.sections if wanted in normalize_chapter_name(s.title)), None)
        if found is None:
            continue
        matched.append(
            (
                r,
                ChapterMatch(
                    newsletter_id=r.id,
                    newsletter_slug=r.slug,
                    section_id=found.id,
                    href=f"/newsletters/{r.slug}#{found.id}",
                    html=found.html,
                ),
            )
        )
    matched.sort(key=lambda m: _newest_first_key(m[0]))
    return [m for _, m in matched]


def build_match_snippets(
    records: Iterable[NewsletterRecord],
    query: str,
    search_index: Optional[Dict[str, SearchIndexEntry]] = None,
) -> Dict[str, str]:
    """Highlighted snippet per newsletter: body text first, excerpt as a fallback."""
    q = (query or "").strip()
    if not q:
        return {}
    search_index = search_index or {}
    out: Dict[str, str] = {}
    for r in records:
        entry = search_index.get(r.id)
        snippet = build_query_snippet(entry.text if entry else r.text, q)
        if not snippet and q.lower() in r.excerpt.lower():
            snippet = highlight(r.excerpt, q)
        if snippet:
            out[r.id] = snippet
    return out
