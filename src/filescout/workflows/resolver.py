"""Heuristic display-name resolution for links that carry no usable filename.

The resolver is an ordered tuple of rules. Each rule is a pure function
``(FilenameContext) -> Optional[str]`` and the first non-empty answer wins.
When every rule declines, the literal fallback name is returned, so
``resolve`` never yields an empty string.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence, Tuple
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup, Tag  # type: ignore

from .dom import Node, attr_text, element_text, iter_elements
from .scout_config import (
    CONTEXT_DEPTH,
    FALLBACK_FILENAME,
    FILENAME_QUERY_PARAMS,
    PAGE_NAME_MAX,
    USEFUL_NAME_MAX,
    USEFUL_NAME_MIN,
)
from .url_utils import clean_filename, filename_from_url, is_useful_filename

_SIZE_LABEL_RE = re.compile(r"^\d+\s*[KMG]?B?$", re.IGNORECASE)
_SITE_SUFFIX_RE = re.compile(r"\s*[-|–—•·]\s*")
_NAME_ATTR_TOKENS = ("filename", "name")
_CONTEXT_HEADINGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6", "strong", "b"})
_CONTEXT_CLASS_TOKENS = ("title", "name")


@dataclass(frozen=True, eq=False)
class FilenameContext:
    anchor: Tag
    url: str
    page: Optional[Node] = None

    @property
    def anchor_text(self) -> str:
        return element_text(self.anchor)

    def page_root(self) -> Node:
        if self.page is not None:
            return self.page
        node: Node = self.anchor
        while node.parent is not None:
            node = node.parent
        return node


FilenameRule = Callable[[FilenameContext], Optional[str]]


def _accept(text: Optional[str]) -> Optional[str]:
    if not text or not is_useful_filename(text):
        return None
    return clean_filename(text) or None


def _first(elements: Iterable[Tag], predicate: Callable[[Tag], bool]) -> Optional[Tag]:
    for el in elements:
        if predicate(el):
            return el
    return None


def title_attribute(ctx: FilenameContext) -> Optional[str]:
    title = attr_text(ctx.anchor, "title")
    if not title or _SIZE_LABEL_RE.match(title.strip()):
        return None
    return _accept(title)


def name_attributes(ctx: FilenameContext) -> Optional[str]:
    for attr in list(ctx.anchor.attrs):
        lowered = attr.lower()
        if not any(token in lowered for token in _NAME_ATTR_TOKENS):
            continue
        found = _accept(attr_text(ctx.anchor, attr))
        if found:
            return found
    return None


def anchor_text(ctx: FilenameContext) -> Optional[str]:
    return _accept(ctx.anchor_text)


def aria_label(ctx: FilenameContext) -> Optional[str]:
    return _accept(attr_text(ctx.anchor, "aria-label"))


def query_parameter(ctx: FilenameContext) -> Optional[str]:
    try:
        params = parse_qs(urlparse(ctx.url).query or "")
    except ValueError:
        return None
    for name in FILENAME_QUERY_PARAMS:
        values = params.get(name) or []
        value = values[0] if values else ""
        if not (USEFUL_NAME_MIN <= len(value) <= USEFUL_NAME_MAX):
            continue
        spaced = re.sub(r"\s+", " ", re.sub(r"[_-]+", " ", value)).strip()
        found = _accept(spaced)
        if found:
            return found
    return None


def _has_context_class(el: Tag) -> bool:
    classes = attr_text(el, "class") or ""
    return any(token in classes for token in _CONTEXT_CLASS_TOKENS)


def nearby_context(ctx: FilenameContext) -> Optional[str]:
    """Look up to three ancestors for a heading or a title/name-classed element."""

    own_text = ctx.anchor_text
    parent = ctx.anchor.parent
    depth = 0
    while isinstance(parent, Tag) and not isinstance(parent, BeautifulSoup) and depth < CONTEXT_DEPTH:
        heading = _first(iter_elements(parent), lambda el: el.name in _CONTEXT_HEADINGS)
        if heading is not None:
            text = element_text(heading)
            if text != own_text:
                found = _accept(text)
                if found:
                    return found
        titled = _first(iter_elements(parent), _has_context_class)
        if titled is not None:
            text = element_text(titled)
            if text != own_text:
                found = _accept(text)
                if found:
                    return found
        parent = parent.parent
        depth += 1
    return None


def page_heading(ctx: FilenameContext) -> Optional[str]:
    """Main ``<h1>``, else the document title with a trailing site name removed."""

    page = ctx.page_root()
    h1 = _first(iter_elements(page), lambda el: el.name == "h1")
    if h1 is not None:
        text = element_text(h1)
        if len(text) <= PAGE_NAME_MAX:
            found = _accept(text)
            if found:
                return found
    title = _first(iter_elements(page), lambda el: el.name == "title")
    if title is not None:
        head = _SITE_SUFFIX_RE.split(element_text(title))[0].strip()
        if len(head) <= PAGE_NAME_MAX:
            return _accept(head)
    return None


def url_segment(ctx: FilenameContext) -> Optional[str]:
    return _accept(filename_from_url(ctx.url))


DEFAULT_RULES: Tuple[FilenameRule, ...] = (
    title_attribute,
    name_attributes,
    anchor_text,
    aria_label,
    query_parameter,
    nearby_context,
    page_heading,
    url_segment,
)


class FilenameResolver:
    """Apply ``rules`` in order; the first useful name wins."""

    def __init__(self, rules: Sequence[FilenameRule] = DEFAULT_RULES, fallback: str = FALLBACK_FILENAME) -> None:
        self.rules = tuple(rules)
        self.fallback = fallback

    def resolve(self, anchor: Tag, url: str, page: Optional[Node] = None) -> str:
        ctx = FilenameContext(anchor=anchor, url=url, page=page)
        for rule in self.rules:
            found = rule(ctx)
            if found:
                return found
        return self.fallback


def resolve_filename(anchor: Tag, url: str, page: Optional[Node] = None) -> str:
    return FilenameResolver().resolve(anchor, url, page)


__all__ = [
    "DEFAULT_RULES",
    "FilenameContext",
    "FilenameResolver",
    "FilenameRule",
    "anchor_text",
    "aria_label",
    "name_attributes",
    "nearby_context",
    "page_heading",
    "query_parameter",
    "resolve_filename",
    "title_attribute",
    "url_segment",
]
