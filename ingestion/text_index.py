from __future__ import annotations

import html as html_lib
import re
from typing import List

from bs4 import Tag

from common.config import yaml_config
from common.logger import get_logger
from ingestion.cleaners import (
    ELLIPSIS,
    collapse_whitespace,
    is_boilerplate,
    split_sentences,
    truncate,
)
from ingestion.document_models import QueryMatch
from ingestion.extractor import extract_plain_text, sanitize_and_extract_body
from ingestion.markup import closest, parse, text_of

log = get_logger(__name__)

_BOLD_STYLE_RE = re.compile(r"font-weight\s*:\s*(bold|[6-9]00)", re.I)
_BLOCK_TAGS = ["p", "li", "td", "th", "div"]
_HEADING_TAGS = {"h1", "h2", "h3", "h4"}


def _boilerplate(text: str) -> bool:
    cfg = yaml_config.excerpt
    return is_boilerplate(text, cfg.min_paragraph_chars, cfg.min_letter_ratio)


def extract_lead_excerpt(html: str) -> str:
    """First meaningful paragraph of the newsletter, skipping Word boilerplate."""
    if not html:
        return ""
    limit = yaml_config.excerpt.max_chars
    try:
        soup = parse(sanitize_and_extract_body(html))
        for p in soup.find_all("p"):
            text = text_of(p)
            if text and not _boilerplate(text):
                return truncate(text, limit)

        body = extract_plain_text(html)
        candidate = next((s for s in split_sentences(body) if not _boilerplate(s)), body)
        return truncate(candidate, limit)
    except Exception:
        log.warning("Lead excerpt extraction failed", exc_info=True)
        return truncate(extract_plain_text(html), limit)


def highlight(snippet: str, query: str) -> str:
    pattern = re.compile(re.escape(query), re.I)
    out: List[str] = []
    pos = 0
    for m in pattern.finditer(snippet):
        out.append(html_lib.escape(snippet[pos : m.start()], quote=False))
        out.append(f"<mark>{html_lib.escape(m.group(0), quote=False)}</mark>")
        pos = m.end()
    out.append(html_lib.escape(snippet[pos:], quote=False))
    return "".join(out)


def build_query_snippet(text: str, query: str) -> str:
    """Window of text around the first hit of ``query``, with every hit marked.

    Returns ``""`` when the query does not occur.
    """
    query = (query or "").strip()
    if not text or not query:
        return ""
    idx = text.lower().find(query.lower())
    if idx == -1:
        return ""
    context = yaml_config.search.context_chars
    start = max(0, idx - context)
    end = min(len(text), idx + len(query) + context)
    prefix = ELLIPSIS if start > 0 else ""
    suffix = ELLIPSIS if end < len(text) else ""
    window = collapse_whitespace(text[start:end])
    return prefix + highlight(window, query) + suffix


def _is_boldish(el: Tag) -> bool:
    if el.find(["strong", "b"]) is not None:
        return True
    return bool(_BOLD_STYLE_RE.search(el.get("style") or ""))


def _context_title(el: Tag) -> str:
    for sib in el.find_previous_siblings():
        if sib.name in _HEADING_TAGS or _is_boldish(sib):
            title = text_of(sib)
            if title:
                return title
    text = text_of(el)
    sentences = split_sentences(text)
    return truncate(sentences[0] if sentences else text, yaml_config.search.max_title_chars)


def find_loose_matches(html: str, query: str) -> List[QueryMatch]:
    """Blocks (paragraphs, list items, cells) whose text contains ``query``."""
    q = (query or "").strip().lower()
    if not html or not q:
        return []
    try:
        soup = parse(sanitize_and_extract_body(html))
        key_chars = yaml_config.search.dedup_key_chars
        results: List[QueryMatch] = []
        seen = set()
        for el in soup.find_all(_BLOCK_TAGS):
            text = text_of(el)
            if not text or q not in text.lower():
                continue
            row = closest(el, "tr")
            fragment = (row or el).decode()
            key = text[:key_chars] + "|" + fragment[:key_chars]
            if key in seen:
                continue
            seen.add(key)
            results.append(QueryMatch(title=_context_title(el), html=fragment, text=text))
        return results
    except Exception:
        log.warning("Loose query matching failed", exc_info=True)
        return []
