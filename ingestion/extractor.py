"""Locate the real newsletter content, sanitize it and make headings addressable."""
from __future__ import annotations

import re
from typing import Optional, Set

from bs4 import BeautifulSoup, Tag
from bs4.element import PreformattedString

from common.config import yaml_config
from common.logger import get_logger
from ingestion.cleaners import collapse_whitespace
from ingestion.encoding import normalize
from ingestion.markup import (
    assign_heading_ids,
    closest,
    inner_html,
    parse,
    root_of,
    serialize_from,
)

log = get_logger(__name__)

_SAFE_REL = "noopener noreferrer"
# ASCII whitespace and control characters browsers ignore inside URLs
_URL_NOISE_RE = re.compile(r"[\x00-\x20\x7f]+")
_SCHEME_RE = re.compile(r"^([a-z][a-z0-9+.\-]*):")
_UNSAFE_STYLE_RE = re.compile(r"expression\(|javascript:|vbscript:|-moz-binding|behavior:", re.I)


def find_content_start(soup: BeautifulSoup) -> Optional[Tag]:
    """First element matched by the configured start anchors, promoted to its table."""
    for selector in yaml_config.extraction.start_anchors:
        el = soup.select_one(selector)
        if el is None:
            continue
        log.debug("Content start matched %s", selector)
        return closest(el, "table") or el
    return None


def extract_content_markup(normalized: str) -> str:
    """Markup from the content start through the end of the document (unsanitized)."""
    soup = parse(normalized)
    start = find_content_start(soup)
    if start is not None:
        return serialize_from(start)

    # No template marker: skip the mail-header preamble by starting at the first table
    body_inner = inner_html(root_of(soup)) or normalized
    idx = body_inner.lower().find("<table")
    return body_inner[idx:] if idx >= 0 else body_inner


def _attr_text(value) -> str:
    return " ".join(value) if isinstance(value, list) else str(value)


def _allowed_url(value: str, schemes: Set[str]) -> bool:
    """Relative URLs pass; absolute ones need an allowlisted scheme."""
    compact = _URL_NOISE_RE.sub("", value).lower()
    m = _SCHEME_RE.match(compact)
    return m is None or m.group(1) in schemes


def sanitize_markup(html: str) -> BeautifulSoup:
    """Apply the allowlist policy and link safety rules; returns the cleaned tree.

    Denylisted and dropped elements go with their content, other unknown
    elements are unwrapped. Attributes outside the allowlist, event handlers,
    URLs with a foreign scheme and scripted styles are removed.
    """
    soup = parse(html)
    policy = yaml_config.extraction

    for el in soup.find_all(policy.forbid_tags + policy.drop_tags):
        if not el.decomposed:
            el.decompose()
    for node in soup.find_all(string=lambda s: isinstance(s, PreformattedString)):
        node.extract()

    allowed_tags = {t.lower() for t in policy.allowed_tags}
    for el in soup.find_all(True):
        if el.name not in allowed_tags:
            el.unwrap()

    allowed_attrs = {a.lower() for a in policy.allowed_attrs}
    forbidden = {a.lower() for a in policy.forbid_attrs}
    url_attrs = {a.lower() for a in policy.url_attrs}
    schemes = {s.lower() for s in policy.allowed_url_schemes}
    for el in soup.find_all(True):
        for attr in list(el.attrs):
            name = attr.lower()
            value = _attr_text(el[attr])
            if name not in allowed_attrs or name in forbidden or name.startswith("on"):
                del el[attr]
            elif name in url_attrs and not _allowed_url(value, schemes):
                del el[attr]
            elif name == "style" and _UNSAFE_STYLE_RE.search(_URL_NOISE_RE.sub("", value)):
                del el[attr]

    for a in soup.find_all("a", href=True):
        if a["href"].strip().lower().startswith(("http://", "https://")):
            a["target"] = "_blank"
            a["rel"] = _SAFE_REL
    return soup


def _render(soup: BeautifulSoup) -> str:
    return inner_html(root_of(soup))


def sanitize_and_extract_body(html: str) -> str:
    """Sanitized, renderable newsletter body with stable heading ids.

    Falls back to sanitizing the whole input when extraction fails, and to an
    empty string when even that fails.
    """
    if not html:
        return ""
    try:
        normalized = normalize(html)
        soup = sanitize_markup(extract_content_markup(normalized))
        assign_heading_ids(root_of(soup), yaml_config.extraction.heading_tags)
        return _render(soup)
    except Exception:
        log.warning("Content extraction failed; sanitizing raw markup", exc_info=True)
    try:
        return _render(sanitize_markup(str(html)))
    except Exception:
        log.warning("Raw sanitize failed; returning empty body", exc_info=True)
        return ""


def extract_plain_text(html: str) -> str:
    """Whitespace-collapsed text of the content region, for search indexing."""
    if not html:
        return ""
    try:
        markup = extract_content_markup(normalize(html))
        return collapse_whitespace(parse(markup).get_text())
    except Exception:
        log.warning("Plain text extraction failed; using raw input", exc_info=True)
        return collapse_whitespace(str(html))
