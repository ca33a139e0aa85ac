"""Split a sanitized newsletter body into ordered, addressable chapters.

Two modes:

- explicit chapter containers (``id="chapter_..."``) are authoritative;
- otherwise headings and the authoring tool's header styles are used, each
  mapped to an anchor block (its table, or its row) so table layouts are not
  cut in half.

A section covers its anchor block up to the next section's anchor block.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from bs4 import Tag

from common.config import yaml_config
from common.logger import get_logger
from ingestion.cleaners import collapse_whitespace
from ingestion.document_models import SectionSnippet
from ingestion.extractor import sanitize_and_extract_body
from ingestion.markup import (
    IdAllocator,
    assign_heading_ids,
    clone_range,
    closest,
    parse,
    root_of,
    text_of,
)

log = get_logger(__name__)

_HEADING_RE = re.compile(r"^h([1-4])$")
_CLAUSE_SPLIT_RE = re.compile(r"\s{2,}|[.!?]")


@dataclass
class _Anchor:
    block: Tag
    title: str
    level: int


def _prefix() -> str:
    return yaml_config.sections.chapter_prefix.lower()


def _is_chapter_container(el: Tag) -> bool:
    value = el.get("id")
    return isinstance(value, str) and value.lower().startswith(_prefix())


def _is_chapter_anchor(el: Tag) -> bool:
    value = el.get("name")
    return el.name == "a" and isinstance(value, str) and value.lower().startswith(_prefix())


def _is_heading(el: Tag) -> bool:
    return bool(_HEADING_RE.match(el.name or ""))


def _has_header_style(el: Tag) -> bool:
    if el.name != "span":
        return False
    style = (el.get("style") or "").lower()
    return any(sig in style for sig in yaml_config.sections.header_styles)


# Order only documents which signatures exist; candidates are taken in document order.
HEADER_SIGNATURES: Tuple[Tuple[str, Callable[[Tag], bool]], ...] = (
    ("chapter-anchor", _is_chapter_anchor),
    ("heading", _is_heading),
    ("header-style", _has_header_style),
)


def _is_candidate(el: Tag) -> bool:
    return any(check(el) for _, check in HEADER_SIGNATURES)


def _anchor_block(el: Tag) -> Tag:
    if _is_chapter_anchor(el):
        table = el.find_parent("table")
        if table is not None:
            return table
        container = el.find_parent(_is_chapter_container)
        return container if container is not None else el
    row = closest(el, "tr")
    if row is None:
        return el
    return row.find_parent("table") or row


def _container_title(root: Tag) -> str:
    titled = root.find("a", title=True)
    if titled is not None:
        title = collapse_whitespace(titled.get("title") or "")
        if title:
            return title
    strong = root.find(["strong", "b", "h1", "h2", "h3", "h4"])
    if strong is not None:
        title = text_of(strong)
        if title:
            return title
    lead = _CLAUSE_SPLIT_RE.split(root.get_text().strip(), maxsplit=1)[0]
    lead = collapse_whitespace(lead)[: yaml_config.sections.max_title_chars].rstrip()
    return lead or "Chapter"


def _chapter_anchors(root: Tag, ids: IdAllocator) -> List[Tuple[str, _Anchor]]:
    anchors: List[Tuple[str, _Anchor]] = []
    used: set = set()
    for el in root.find_all(_is_chapter_container):
        section_id = el["id"]
        if section_id in used:
            section_id = ids.allocate(section_id)
            el["id"] = section_id
        used.add(section_id)
        anchors.append((section_id, _Anchor(block=el, title=_container_title(el), level=2)))
    return anchors


def _heuristic_anchors(root: Tag, ids: IdAllocator) -> List[Tuple[str, _Anchor]]:
    positions: Dict[int, int] = {id(node): i for i, node in enumerate(root.descendants)}

    unique: List[_Anchor] = []
    seen: set = set()
    headers: set = set()
    for el in root.find_all(_is_candidate):
        # A header signature nested in another one (styled span in a heading) is the same header
        if any(id(parent) in headers for parent in el.parents):
            continue
        title = text_of(el)
        if not title:
            continue
        headers.add(id(el))
        block = _anchor_block(el)
        if id(block) in seen:
            continue
        seen.add(id(block))
        m = _HEADING_RE.match(el.name)
        unique.append(_Anchor(block=block, title=title, level=int(m.group(1)) if m else 2))

    unique.sort(key=lambda a: positions.get(id(a.block), -1))

    anchors: List[Tuple[str, _Anchor]] = []
    used: set = set()
    for i, anchor in enumerate(unique):
        section_id = (anchor.block.get("id") or "").strip()
        if not section_id or section_id in used:
            section_id = ids.allocate(anchor.title, fallback=f"section-{i}")
            anchor.block["id"] = section_id
        used.add(section_id)
        anchors.append((section_id, anchor))
    return anchors


def extract_sections(html: str) -> List[SectionSnippet]:
    """Ordered chapter snippets for a newsletter; ``[]`` when none can be derived."""
    if not html:
        return []
    try:
        soup = parse(sanitize_and_extract_body(html))
        root = root_of(soup)
        assign_heading_ids(root, yaml_config.extraction.heading_tags)
        ids = IdAllocator.for_tree(root)

        anchors = _chapter_anchors(root, ids)
        if not anchors:
            anchors = _heuristic_anchors(root, ids)

        snippets: List[SectionSnippet] = []
        for i, (section_id, anchor) in enumerate(anchors):
            nxt = anchors[i + 1][1].block if i + 1 < len(anchors) else None
            fragment = clone_range(root, anchor.block, nxt)
            text = collapse_whitespace(fragment.get_text()) or anchor.title
            snippets.append(
                SectionSnippet(
                    id=section_id,
                    title=anchor.title,
                    level=anchor.level,
                    html=fragment.decode(),
                    text=text,
                )
            )
        log.debug("Extracted %d sections", len(snippets))
        return snippets
    except Exception:
        log.warning("Section extraction failed", exc_info=True)
        return []
