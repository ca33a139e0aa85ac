"""Tree helpers over BeautifulSoup.

Everything that walks or slices parsed markup goes through this module so the
extraction code only deals with "element with children, attributes and text".
The concrete parser backend is chosen in config (``app.markup_parser``).
"""
from __future__ import annotations

import copy
from typing import Iterable, List, Optional, Set

from bs4 import BeautifulSoup, NavigableString, Tag

from common.config import yaml_config
from ingestion.cleaners import collapse_whitespace, slugify


def parse(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", yaml_config.app.markup_parser)


def root_of(soup: BeautifulSoup) -> Tag:
    """The element that holds the content: ``<body>`` when the parser made one."""
    return soup.body or soup


def closest(el: Tag, name: str) -> Optional[Tag]:
    """Nearest element named ``name`` among ``el`` and its ancestors."""
    if el.name == name:
        return el
    return el.find_parent(name)


def text_of(node) -> str:
    return collapse_whitespace(node.get_text())


def serialize_node(node) -> str:
    """Markup for an element or text node; comments and doctypes render empty."""
    if isinstance(node, Tag):
        return node.decode()
    if type(node) is NavigableString:
        return node.output_ready()
    return ""


def serialize_from(start: Tag) -> str:
    """Outer markup of ``start`` followed by all of its following siblings."""
    parts = [serialize_node(start)]
    parts.extend(serialize_node(sib) for sib in start.next_siblings)
    return "".join(parts)


def inner_html(el: Tag) -> str:
    return "".join(serialize_node(child) for child in el.children)


class IdAllocator:
    """Hands out slug ids that are unique among the ids already in a document."""

    def __init__(self, taken: Iterable[str] = ()):
        self._taken: Set[str] = set(taken)

    @classmethod
    def for_tree(cls, root: Tag) -> "IdAllocator":
        return cls(el["id"] for el in root.find_all(id=True) if isinstance(el.get("id"), str))

    def claim(self, value: str) -> None:
        self._taken.add(value)

    def __contains__(self, value: str) -> bool:
        return value in self._taken

    def allocate(self, text: str, fallback: str = "section") -> str:
        base = slugify(text) or fallback
        candidate = base
        n = 1
        while candidate in self._taken:
            n += 1
            candidate = f"{base}-{n}"
        self._taken.add(candidate)
        return candidate


def assign_heading_ids(root: Tag, heading_tags: List[str]) -> None:
    """Give every non-empty heading without an id a unique slug id."""
    ids = IdAllocator.for_tree(root)
    for heading in root.find_all(heading_tags):
        if (heading.get("id") or "").strip():
            continue
        raw = heading.get_text().strip()
        if not raw:
            continue
        heading["id"] = ids.allocate(raw)


def _shallow_clone(soup: BeautifulSoup, el: Tag) -> Tag:
    attrs = {k: (list(v) if isinstance(v, list) else v) for k, v in el.attrs.items()}
    return soup.new_tag(el.name, attrs=attrs)


def clone_range(root: Tag, start: Tag, end: Optional[Tag]) -> BeautifulSoup:
    """Copy of the content of ``root`` from before ``start`` up to before ``end``.

    Ancestors only partially covered by the range are copied without the
    children that fall outside it. ``end=None`` runs to the end of ``root``.
    """
    out = BeautifulSoup("", yaml_config.app.markup_parser)
    start_path = {id(a) for a in start.parents}
    end_path = {id(a) for a in end.parents} if end is not None else set()
    state = {"started": False, "stopped": False}

    def walk(parent: Tag, target: Tag) -> None:
        for child in parent.children:
            if state["stopped"]:
                return
            if end is not None and child is end:
                state["stopped"] = True
                return
            if child is start:
                state["started"] = True
            if state["started"]:
                if isinstance(child, Tag) and id(child) in end_path:
                    shell = _shallow_clone(out, child)
                    target.append(shell)
                    walk(child, shell)
                elif isinstance(child, Tag) or type(child) is NavigableString:
                    target.append(copy.copy(child))
            elif isinstance(child, Tag) and id(child) in start_path:
                shell = _shallow_clone(out, child)
                target.append(shell)
                walk(child, shell)

    walk(root, out)
    return out
