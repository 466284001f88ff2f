from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

import requests

from .workflows.candidates import ResourceCandidate
from .workflows.dom import FrameLoader, LiveDocument
from .workflows.enrichment import Probe
from .workflows.scheduler import DiskSaver, DownloadOutcome, Saver
from .workflows.scout import ResourceScout
from .workflows.scout_config import FILE_TYPES, ScoutConfig, load_scout_config
from .workflows.url_utils import category_for_extension

logger = logging.getLogger(__name__)

CATEGORIES = tuple(FILE_TYPES.keys())


def is_remote(target: str) -> bool:
    return urlparse(target or "").scheme.lower() in {"http", "https"}


def _http_session(config: ScoutConfig) -> requests.Session:
    session = requests.Session()
    session.headers.update(config.request_headers())
    if config.cookies:
        session.cookies.update(config.cookies)
    return session


def requests_frame_loader(config: ScoutConfig, session: Optional[requests.Session] = None) -> FrameLoader:
    http = session or _http_session(config)

    def load(url: str) -> str:
        resp = http.get(url, timeout=config.page_timeout)
        resp.raise_for_status()
        return resp.text

    return load


def load_document(
    target: str,
    config: ScoutConfig,
    *,
    session: Optional[requests.Session] = None,
) -> LiveDocument:
    """Fetch a page over HTTP(S) or read a local HTML file into a LiveDocument.

    Raises ``FileNotFoundError`` for a missing local file and
    ``requests.RequestException`` for network failures.
    """

    if is_remote(target):
        http = session or _http_session(config)
        resp = http.get(target, timeout=config.page_timeout)
        resp.raise_for_status()
        return LiveDocument(resp.text, resp.url or target, frame_loader=requests_frame_loader(config, http))
    path = Path(target).expanduser()
    if not path.is_file():
        raise FileNotFoundError(f"Document not found: {path}")
    return LiveDocument(path.read_text(encoding="utf-8", errors="replace"), path.resolve().as_uri())


def validate_category(category: Optional[str]) -> Optional[str]:
    if category is None:
        return None
    value = category.strip().lower()
    if value not in FILE_TYPES:
        raise ValueError(f"Unknown category {category!r} (expected one of: {', '.join(CATEGORIES)})")
    return value


def filter_candidates(
    candidates: Iterable[ResourceCandidate],
    *,
    category: Optional[str] = None,
    match: Optional[str] = None,
) -> List[ResourceCandidate]:
    needle = (match or "").strip().lower()
    kept: List[ResourceCandidate] = []
    for candidate in candidates:
        if category and category_for_extension(candidate.extension) != category:
            continue
        if needle and needle not in candidate.filename.lower() and needle not in candidate.url.lower():
            continue
        kept.append(candidate)
    return kept


def _category_counts(candidates: Sequence[ResourceCandidate]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for candidate in candidates:
        key = category_for_extension(candidate.extension)
        counts[key] = counts.get(key, 0) + 1
    return counts


def build_scan_summary(
    target: str,
    document: LiveDocument,
    candidates: Sequence[ResourceCandidate],
    *,
    enriched: bool,
) -> Dict[str, Any]:
    return {
        "command": "scan",
        "target": target,
        "url": document.url,
        "title": document.title,
        "scanned_at": datetime.now(timezone.utc).isoformat(),
        "enriched": enriched,
        "counts": {"total": len(candidates), "by_category": _category_counts(candidates)},
        "items": [c.to_dict() for c in candidates],
    }


def build_download_summary(
    target: str,
    out_dir: Path,
    outcomes: Sequence[DownloadOutcome],
) -> Dict[str, Any]:
    failed = sum(1 for o in outcomes if not o.ok)
    return {
        "command": "download",
        "target": target,
        "out_dir": str(out_dir),
        "counts": {"total": len(outcomes), "ok": len(outcomes) - failed, "failed": failed},
        "items": [
            {
                "url": o.url,
                "filename": o.filename,
                "ok": o.ok,
                "path": o.identifier,
                "error": o.error,
            }
            for o in outcomes
        ],
    }


def run_scan(
    target: str,
    *,
    enrich: bool = False,
    category: Optional[str] = None,
    config: Optional[ScoutConfig] = None,
    probe: Optional[Probe] = None,
    document: Optional[LiveDocument] = None,
) -> Tuple[Dict[str, Any], int]:
    cfg = config or load_scout_config()
    doc = document or load_document(target, cfg)
    scout = ResourceScout(doc, config=cfg, probe=probe)
    candidates = scout.request_scan()
    if enrich:
        candidates = asyncio.run(scout.request_enrichment(candidates))
    candidates = filter_candidates(candidates, category=category)
    return build_scan_summary(target, doc, candidates, enriched=enrich), 0


def run_download(
    target: str,
    *,
    out_dir: Path,
    category: Optional[str] = None,
    match: Optional[str] = None,
    enrich: bool = False,
    soft_fail: bool = False,
    config: Optional[ScoutConfig] = None,
    probe: Optional[Probe] = None,
    saver: Optional[Saver] = None,
    document: Optional[LiveDocument] = None,
) -> Tuple[Dict[str, Any], int]:
    cfg = config or load_scout_config()
    doc = document or load_document(target, cfg)

    async def _run() -> List[DownloadOutcome]:
        if saver is not None:
            return await _download(saver)
        async with DiskSaver(out_dir, cfg) as disk:
            return await _download(disk)

    async def _download(active: Saver) -> List[DownloadOutcome]:
        scout = ResourceScout(doc, config=cfg, probe=probe, saver=active)
        candidates = scout.request_scan()
        if enrich:
            candidates = await scout.request_enrichment(candidates)
        wanted = {c.url for c in filter_candidates(candidates, category=category, match=match)}
        scout.select_where(lambda c: c.url in wanted)
        return await scout.request_download(scout.selected())

    outcomes = asyncio.run(_run())
    summary = build_download_summary(target, out_dir, outcomes)
    exit_code = 0
    if not soft_fail and summary["counts"]["failed"] > 0:
        exit_code = 1
    return summary, exit_code


__all__ = [
    "CATEGORIES",
    "build_download_summary",
    "build_scan_summary",
    "filter_candidates",
    "is_remote",
    "load_document",
    "requests_frame_loader",
    "run_download",
    "run_scan",
    "validate_category",
]
