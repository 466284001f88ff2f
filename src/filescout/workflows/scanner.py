"""Discover downloadable resources across a document, its shadow roots and frames."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set
from urllib.parse import urlparse

from bs4 import Tag  # type: ignore

from .candidates import ResourceCandidate
from .dom import LiveDocument, Node, ScanRoot, attr_text, element_text, iter_elements, open_shadow_root
from .resolver import FilenameResolver
from .scout_config import (
    DOWNLOAD_PATH_PATTERNS,
    DOWNLOAD_TEXT_PATTERNS,
    DOWNLOAD_TOKEN,
)
from .url_utils import (
    clean_filename,
    extension_from_filename,
    extract_file_info,
    is_supported,
    parse_srcset,
    resolve_url,
)

logger = logging.getLogger(__name__)

_LINK_TAGS = frozenset({"a", "area"})
_MEDIA_TAGS = frozenset({"video", "audio"})
_FRAME_TAGS = frozenset({"iframe", "frame"})

CandidateMap = Dict[str, ResourceCandidate]


def _is_skippable_href(href: str) -> bool:
    return not href or href.startswith("#") or href.lower().startswith("javascript:")


class DocumentScanner:
    """Walk every reachable root and return one candidate per resolved URL.

    Passes run per root in a fixed order (links, images, media, embeds) and
    preserve document order within a pass. A later write for the same URL
    replaces an earlier one, except that an inferred download never
    replaces a candidate whose extension was recognized directly.
    """

    def __init__(self, resolver: Optional[FilenameResolver] = None, *, max_frame_depth: int = 3) -> None:
        self.resolver = resolver or FilenameResolver()
        self.max_frame_depth = max_frame_depth

    def scan(self, document: LiveDocument) -> List[ResourceCandidate]:
        found: CandidateMap = {}
        page = document.soup
        roots = self.collect_roots(document)
        for root in roots:
            self._scan_links(root, page, found)
            self._scan_images(root, found)
            self._scan_media(root, found)
            self._scan_embeds(root, found)
        logger.debug("Scanned %d roots of %s: %d candidates", len(roots), document.url or "<document>", len(found))
        return list(found.values())

    # -- roots --------------------------------------------------------------

    def collect_roots(self, document: LiveDocument) -> List[ScanRoot]:
        roots: List[ScanRoot] = []
        seen_frames: Set[str] = set()

        def visit(node: Node, base_url: str, kind: str, depth: int) -> None:
            roots.append(ScanRoot(node=node, base_url=base_url, kind=kind, depth=depth))
            for el in iter_elements(node):
                shadow = open_shadow_root(el)
                if shadow is not None:
                    visit(shadow, base_url, "shadow", depth)
                if el.name not in _FRAME_TAGS or depth >= self.max_frame_depth:
                    continue
                try:
                    tree, frame_base = document.load_frame(el, base_url)
                except Exception as exc:
                    # Cross-origin or unloadable frames are expected; their subtree is omitted.
                    logger.debug("Skipping embedded document in %s: %s", base_url or "<document>", exc)
                    continue
                if el.get("srcdoc") is None:
                    if frame_base in seen_frames:
                        continue
                    seen_frames.add(frame_base)
                visit(tree, frame_base, "frame", depth + 1)

        visit(document.soup, document.base_url, "document", 0)
        return roots

    # -- passes -------------------------------------------------------------

    @staticmethod
    def _record(found: CandidateMap, candidate: ResourceCandidate) -> None:
        existing = found.get(candidate.url)
        if existing is not None and candidate.is_inferred_download and not existing.is_inferred_download:
            return
        found[candidate.url] = candidate

    def _record_direct(self, found: CandidateMap, raw: Optional[str], base_url: str) -> None:
        info = extract_file_info(raw, base_url)
        if info is None or not is_supported(info.extension):
            return
        self._record(
            found,
            ResourceCandidate(url=info.url, filename=info.filename, extension=info.extension),
        )

    def _scan_links(self, root: ScanRoot, page: Node, found: CandidateMap) -> None:
        for el in root.elements():
            if el.name not in _LINK_TAGS:
                continue
            href = (attr_text(el, "href") or "").strip()
            if _is_skippable_href(href):
                continue
            info = extract_file_info(href, root.base_url)
            if info is not None and is_supported(info.extension):
                self._record(
                    found,
                    ResourceCandidate(url=info.url, filename=info.filename, extension=info.extension),
                )
                continue
            inferred = self.detect_download_link(el, href, root.base_url, page)
            if inferred is not None:
                self._record(found, inferred)

    def _scan_images(self, root: ScanRoot, found: CandidateMap) -> None:
        images = root.find_all("img")
        for img in images:
            src = (attr_text(img, "src") or "").strip()
            if not src or src.lower().startswith("data:"):
                continue
            self._record_direct(found, src, root.base_url)
        for img in images:
            srcset = attr_text(img, "srcset")
            if not srcset:
                continue
            for url in parse_srcset(srcset, root.base_url):
                self._record_direct(found, url, root.base_url)

    def _scan_media(self, root: ScanRoot, found: CandidateMap) -> None:
        for el in root.elements():
            if el.name in _MEDIA_TAGS:
                pass
            elif el.name == "source" and el.find_parent(list(_MEDIA_TAGS)) is not None:
                pass
            else:
                continue
            src = attr_text(el, "src")
            if src:
                self._record_direct(found, src, root.base_url)

    def _scan_embeds(self, root: ScanRoot, found: CandidateMap) -> None:
        for el in root.elements():
            if el.name == "object":
                src = attr_text(el, "data")
            elif el.name == "embed":
                src = attr_text(el, "src")
            else:
                continue
            if src:
                self._record_direct(found, src, root.base_url)

    # -- download intent ----------------------------------------------------

    def detect_download_link(
        self,
        anchor: Tag,
        href: str,
        base_url: str,
        page: Optional[Node] = None,
    ) -> Optional[ResourceCandidate]:
        """Recognize links that lead to a download without showing a file extension."""

        url = resolve_url(href, base_url)
        if url is None:
            return None

        if anchor.has_attr("download"):
            explicit = clean_filename(attr_text(anchor, "download") or "")
            filename = explicit or self.resolver.resolve(anchor, url, page)
            return self._inferred(url, filename)

        path = (urlparse(url).path or "").lower()
        text = element_text(anchor).lower()
        has_download_path = any(pattern in path for pattern in DOWNLOAD_PATH_PATTERNS)
        has_download_text = any(pattern in text for pattern in DOWNLOAD_TEXT_PATTERNS)
        has_download_class = DOWNLOAD_TOKEN in (attr_text(anchor, "class") or "").lower()
        has_download_data = any(
            name.startswith("data-") and DOWNLOAD_TOKEN in (attr_text(anchor, name) or "").lower()
            for name in anchor.attrs
        )
        if not (has_download_path or has_download_text or has_download_class or has_download_data):
            return None
        return self._inferred(url, self.resolver.resolve(anchor, url, page))

    @staticmethod
    def _inferred(url: str, filename: str) -> ResourceCandidate:
        return ResourceCandidate(
            url=url,
            filename=filename,
            extension=extension_from_filename(filename),
            is_inferred_download=True,
        )


def scan_document(document: LiveDocument) -> List[ResourceCandidate]:
    return DocumentScanner().scan(document)


__all__ = ["DocumentScanner", "scan_document"]
