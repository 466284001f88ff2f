"""Live document tree accessor built on BeautifulSoup.

A ``LiveDocument`` wraps a parsed page and plays the role a browser DOM plays
for the scanner and change monitor:

- open shadow trees are declarative ``<template shadowrootmode="open">``
  children of their host element;
- same-origin frames are ``<iframe srcdoc>`` or an ``<iframe src>`` on the
  document's origin, loaded through an optional ``frame_loader``;
- mutations made through the document's helpers are delivered to observers
  as batches of ``MutationRecord``.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from bs4 import BeautifulSoup, Tag  # type: ignore

from .url_utils import resolve_url, url_origin

DEFAULT_PARSER = "lxml"
FRAGMENT_PARSER = "html.parser"

FrameLoader = Callable[[str], str]
MutationCallback = Callable[[Sequence["MutationRecord"]], None]
Node = Union[BeautifulSoup, Tag]


class FrameAccessDenied(PermissionError):
    """Raised when an embedded document's content is not reachable (cross-origin)."""


@dataclass(frozen=True, eq=False)
class ScanRoot:
    """A traversal origin: the document, an open shadow root, or a same-origin frame."""

    node: Node
    base_url: str
    kind: str = "document"
    depth: int = 0

    def elements(self) -> Iterator[Tag]:
        return iter_elements(self.node)

    def find_all(self, *names: str) -> List[Tag]:
        wanted = set(names)
        return [el for el in self.elements() if el.name in wanted]


@dataclass(frozen=True, eq=False)
class MutationRecord:
    type: str  # "childList" | "attributes"
    target: Tag
    added_nodes: Tuple[Tag, ...] = ()
    removed_nodes: Tuple[Tag, ...] = ()
    attribute_name: Optional[str] = None
    old_value: Optional[str] = None


@dataclass(eq=False)
class Observation:
    """Handle returned by ``LiveDocument.observe``; ``disconnect`` is idempotent."""

    document: "LiveDocument"
    callback: MutationCallback
    attribute_filter: Optional[Tuple[str, ...]] = None
    root: Optional[Node] = None
    active: bool = True

    def wants(self, record: MutationRecord) -> bool:
        if record.type == "attributes" and self.attribute_filter is not None:
            if record.attribute_name not in self.attribute_filter:
                return False
        if self.root is None:
            return True
        return record.target is self.root or any(parent is self.root for parent in record.target.parents)

    def disconnect(self) -> None:
        if not self.active:
            return
        self.active = False
        self.document._detach(self)


def iter_elements(node: Node) -> Iterator[Tag]:
    """Yield descendant elements in document order without entering ``<template>`` content.

    Template content belongs to a different root (shadow tree or inert
    fragment), mirroring how ``querySelectorAll`` does not pierce it.
    """

    stack: List[Tag] = [child for child in reversed(list(node.children)) if isinstance(child, Tag)]
    while stack:
        el = stack.pop()
        yield el
        if el.name == "template":
            continue
        stack.extend(child for child in reversed(list(el.children)) if isinstance(child, Tag))


def open_shadow_root(el: Tag) -> Optional[Tag]:
    """Return the declarative open shadow root template of a host element, if any."""

    for child in el.children:
        if not isinstance(child, Tag) or child.name != "template":
            continue
        mode = (child.get("shadowrootmode") or child.get("shadowroot") or "").strip().lower()
        if mode == "open":
            return child
    return None


def attr_text(el: Tag, name: str) -> Optional[str]:
    """Attribute value as a string (multi-valued attributes are space-joined)."""

    value = el.get(name)
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return " ".join(str(v) for v in value)
    return str(value)


def element_text(el: Tag) -> str:
    return (el.get_text() or "").strip()


class LiveDocument:
    """A parsed page that can be scanned, mutated and observed."""

    def __init__(
        self,
        html: str,
        url: str = "",
        *,
        frame_loader: Optional[FrameLoader] = None,
        parser: str = DEFAULT_PARSER,
    ) -> None:
        self.url = url or ""
        self.parser = parser
        self.soup = BeautifulSoup(html or "", parser)
        self._frame_loader = frame_loader
        self._frame_cache: Dict[str, BeautifulSoup] = {}
        self._observers: List[Observation] = []
        self._batch: Optional[List[MutationRecord]] = None

    # -- page context -----------------------------------------------------

    @property
    def base_url(self) -> str:
        base = self.soup.find("base", href=True)
        if base is not None:
            resolved = resolve_url(attr_text(base, "href"), self.url)
            if resolved:
                return resolved
        return self.url

    @property
    def title(self) -> str:
        title = self.soup.find("title")
        return element_text(title) if title is not None else ""

    @property
    def body(self) -> Node:
        return self.soup.body or self.soup

    def root(self) -> ScanRoot:
        return ScanRoot(node=self.soup, base_url=self.base_url, kind="document", depth=0)

    # -- frames -----------------------------------------------------------

    def load_frame(self, iframe: Tag, parent_base: str) -> Tuple[BeautifulSoup, str]:
        """Return ``(tree, base_url)`` for a same-origin frame.

        Raises ``FrameAccessDenied`` for cross-origin or unloadable frames;
        loader errors propagate unchanged. Callers treat both as "skip".
        """

        srcdoc = iframe.get("srcdoc")
        if srcdoc is not None:
            return BeautifulSoup(attr_text(iframe, "srcdoc") or "", self.parser), parent_base
        raw_src = (attr_text(iframe, "src") or "").strip()
        if not raw_src or raw_src.lower() == "about:blank":
            return BeautifulSoup("", self.parser), parent_base
        src = resolve_url(raw_src, parent_base)
        if src is None:
            raise FrameAccessDenied(f"unresolvable frame source: {raw_src}")
        if not url_origin(self.url) or url_origin(src) != url_origin(self.url):
            raise FrameAccessDenied(f"cross-origin frame: {src}")
        if self._frame_loader is None:
            raise FrameAccessDenied(f"no frame loader for: {src}")
        cached = self._frame_cache.get(src)
        if cached is None:
            cached = BeautifulSoup(self._frame_loader(src) or "", self.parser)
            self._frame_cache[src] = cached
        return cached, src

    def forget_frames(self) -> None:
        self._frame_cache.clear()

    # -- observation ------------------------------------------------------

    def observe(
        self,
        callback: MutationCallback,
        *,
        attribute_filter: Optional[Sequence[str]] = None,
        root: Optional[Node] = None,
    ) -> Observation:
        observation = Observation(
            document=self,
            callback=callback,
            attribute_filter=tuple(attribute_filter) if attribute_filter is not None else None,
            root=root if root is not None else self.body,
        )
        self._observers.append(observation)
        return observation

    def _detach(self, observation: Observation) -> None:
        self._observers = [o for o in self._observers if o is not observation]

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Group mutations into one delivered batch (like one observer callback)."""

        if self._batch is not None:
            yield
            return
        self._batch = []
        try:
            yield
        finally:
            records, self._batch = self._batch, None
            self._deliver(records)

    def _record(self, record: MutationRecord) -> None:
        if self._batch is not None:
            self._batch.append(record)
            return
        self._deliver([record])

    def _deliver(self, records: Sequence[MutationRecord]) -> None:
        if not records:
            return
        for observation in list(self._observers):
            if not observation.active:
                continue
            wanted = [r for r in records if observation.wants(r)]
            if wanted:
                observation.callback(wanted)

    # -- mutation helpers ---------------------------------------------------

    def append_html(self, parent: Optional[Tag], html: str) -> List[Tag]:
        """Parse an HTML fragment and append its top-level nodes to ``parent``."""

        target = parent if parent is not None else self.body
        fragment = BeautifulSoup(html or "", FRAGMENT_PARSER)
        added: List[Tag] = []
        for node in list(fragment.contents):
            target.append(node)
            if isinstance(node, Tag):
                added.append(node)
        if added:
            self._record(MutationRecord(type="childList", target=target, added_nodes=tuple(added)))
        return added

    def set_attribute(self, el: Tag, name: str, value: str) -> None:
        old = attr_text(el, name)
        el[name] = value
        self._record(MutationRecord(type="attributes", target=el, attribute_name=name, old_value=old))

    def remove_attribute(self, el: Tag, name: str) -> None:
        if el.get(name) is None:
            return
        old = attr_text(el, name)
        del el[name]
        self._record(MutationRecord(type="attributes", target=el, attribute_name=name, old_value=old))

    def remove(self, el: Tag) -> None:
        parent = el.parent
        el.extract()
        if isinstance(parent, Tag):
            self._record(MutationRecord(type="childList", target=parent, removed_nodes=(el,)))


__all__ = [
    "FrameAccessDenied",
    "FrameLoader",
    "LiveDocument",
    "MutationRecord",
    "Observation",
    "ScanRoot",
    "attr_text",
    "element_text",
    "iter_elements",
    "open_shadow_root",
]
