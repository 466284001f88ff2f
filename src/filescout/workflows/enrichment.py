"""Metadata enrichment: HEAD-probe ambiguous candidates for their real name and type.

Only candidates whose local heuristics fell short are probed. Each probe is
bounded by ``head_timeout``; probes run concurrently under a semaphore and
settle independently, so one slow or failing host never affects the others.
Results are cached per URL for ``head_cache_ttl`` seconds.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Mapping, Optional
from urllib.parse import unquote

import aiohttp

from .candidates import Outcome, ProbeMetadata, ResourceCandidate
from .scout_config import MIME_TO_EXTENSION, UNKNOWN_EXTENSION, ScoutConfig
from .url_utils import filename_from_url, normalize_url, suffix_extension

logger = logging.getLogger(__name__)

_HASH_NAME_RE = re.compile(r"^[a-f0-9-]{32,}$", re.IGNORECASE)
_CD_EXTENDED_RE = re.compile(r"filename\*\s*=\s*(?:UTF-8|utf-8)?''(.+?)(?:;|$)", re.IGNORECASE)
_CD_QUOTED_RE = re.compile(r'filename\s*=\s*"([^"]+)"', re.IGNORECASE)
_CD_BARE_RE = re.compile(r"filename\s*=\s*([^;\s\"]+)", re.IGNORECASE)
_CD_NAME_RE = re.compile(r'name\s*=\s*"?([^";\s]+)"?', re.IGNORECASE)


@dataclass(frozen=True)
class ProbeResponse:
    """What a probe reports back: final status, headers and post-redirect URL."""

    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    url: str = ""

    def header(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


Probe = Callable[[str], Awaitable[ProbeResponse]]


@dataclass
class HeadCacheEntry:
    timestamp: float
    data: ProbeMetadata


class HeadCache:
    """Per-URL probe results with a TTL; stale entries are dropped lazily."""

    def __init__(
        self,
        ttl: float = 60.0,
        max_entries: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.max_entries = max_entries
        self.clock = clock
        self._entries: Dict[str, HeadCacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, url: object) -> bool:
        return url in self._entries

    def get(self, url: str) -> Optional[ProbeMetadata]:
        entry = self._entries.get(url)
        if entry is None:
            return None
        if self.clock() - entry.timestamp >= self.ttl:
            del self._entries[url]
            return None
        return entry.data

    def put(self, url: str, data: ProbeMetadata) -> None:
        self._entries[url] = HeadCacheEntry(timestamp=self.clock(), data=data)
        if len(self._entries) > self.max_entries:
            self.prune()

    def prune(self) -> int:
        now = self.clock()
        stale = [url for url, entry in self._entries.items() if now - entry.timestamp > self.ttl]
        for url in stale:
            del self._entries[url]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()


class AiohttpHeadProbe:
    """HEAD request that follows redirects and sends the session's cookies."""

    def __init__(self, session: aiohttp.ClientSession, config: Optional[ScoutConfig] = None) -> None:
        self.session = session
        self.config = config or ScoutConfig()

    async def __call__(self, url: str) -> ProbeResponse:
        timeout = aiohttp.ClientTimeout(total=self.config.head_timeout)
        async with self.session.head(url, allow_redirects=True, timeout=timeout) as resp:
            return ProbeResponse(status=resp.status, headers=dict(resp.headers), url=str(resp.url))


def needs_enrichment(candidate: ResourceCandidate) -> bool:
    """True unless the candidate already has a specific name and a recognized type."""

    if candidate.is_inferred_download:
        return True
    if not candidate.extension or candidate.extension == UNKNOWN_EXTENSION:
        return True
    if not candidate.filename or candidate.filename == "file":
        return True
    return bool(_HASH_NAME_RE.match(candidate.filename))


def _basename(name: str) -> str:
    return name.replace("\\", "/").rsplit("/", 1)[-1].strip()


def parse_content_disposition(header: Optional[str]) -> Optional[str]:
    """Extract a filename from a Content-Disposition value.

    Tries ``filename*=`` (RFC 5987), then quoted and bare ``filename=``,
    then any ``name=``. Directory components are dropped.
    """

    if not header:
        return None
    match = _CD_EXTENDED_RE.search(header)
    if match:
        try:
            decoded = _basename(unquote(match.group(1).strip(), errors="strict"))
        except UnicodeDecodeError:
            decoded = ""
        if decoded:
            return decoded
    for pattern in (_CD_QUOTED_RE, _CD_BARE_RE, _CD_NAME_RE):
        for match in pattern.finditer(header):
            name = _basename(match.group(1))
            if name:
                return name
    return None


def metadata_from_response(request_url: str, response: ProbeResponse) -> ProbeMetadata:
    meta = ProbeMetadata()

    filename = parse_content_disposition(response.header("Content-Disposition"))
    if filename:
        meta.filename = filename
        meta.extension = suffix_extension(filename) or None

    content_type = response.header("Content-Type")
    if content_type and not meta.extension:
        mime = content_type.split(";")[0].strip().lower()
        ext = MIME_TO_EXTENSION.get(mime)
        if ext:
            meta.extension = ext
            if not meta.filename:
                meta.filename = f"file.{ext}"

    length = response.header("Content-Length")
    if length:
        try:
            size = int(length.strip())
        except ValueError:
            size = -1
        if size >= 0:
            meta.size = size

    if response.url and normalize_url(response.url) != normalize_url(request_url):
        meta.final_url = response.url
        if not meta.filename:
            final_name = filename_from_url(response.url)
            if final_name and final_name != "download":
                meta.filename = final_name
                meta.extension = suffix_extension(final_name) or meta.extension
    return meta


class MetadataEnricher:
    """Probe candidates that need it and merge what the server reports."""

    def __init__(
        self,
        config: Optional[ScoutConfig] = None,
        probe: Optional[Probe] = None,
        *,
        cache: Optional[HeadCache] = None,
    ) -> None:
        self.config = config or ScoutConfig()
        self.probe = probe
        self.cache = cache or HeadCache(
            ttl=self.config.head_cache_ttl,
            max_entries=self.config.head_cache_max_entries,
        )

    async def enrich(self, candidates: Iterable[ResourceCandidate]) -> List[ResourceCandidate]:
        """Return one record per input, in input order; failures come back unchanged."""

        items = list(candidates)
        if not any(needs_enrichment(c) for c in items):
            return items
        if self.probe is not None:
            return await self._enrich_all(items, self.probe)
        async with aiohttp.ClientSession(
            headers=self.config.request_headers(),
            cookies=self.config.cookies or None,
        ) as session:
            return await self._enrich_all(items, AiohttpHeadProbe(session, self.config))

    async def _enrich_all(self, items: List[ResourceCandidate], probe: Probe) -> List[ResourceCandidate]:
        semaphore = asyncio.Semaphore(max(1, self.config.probe_concurrency))

        async def _task(candidate: ResourceCandidate) -> ResourceCandidate:
            async with semaphore:
                return await self.enrich_one(candidate, probe)

        settled = await asyncio.gather(*(_task(c) for c in items), return_exceptions=True)
        results: List[ResourceCandidate] = []
        for original, result in zip(items, settled):
            if isinstance(result, BaseException):
                logger.warning("Failed to enrich metadata for %s: %s", original.url, result)
                results.append(original)
            else:
                results.append(result)
        enriched = sum(1 for c in results if c.enriched)
        logger.debug("Enrichment finished: %d/%d enriched", enriched, len(results))
        return results

    async def enrich_one(self, candidate: ResourceCandidate, probe: Probe) -> ResourceCandidate:
        if not needs_enrichment(candidate):
            return candidate
        cached = self.cache.get(candidate.url)
        if cached is not None:
            return cached.apply_to(candidate)
        outcome = await self.probe_metadata(candidate.url, probe)
        if not outcome.ok or outcome.value is None:
            logger.warning("Failed to enrich metadata for %s: %s", candidate.url, outcome.reason)
            return candidate
        self.cache.put(candidate.url, outcome.value)
        return outcome.value.apply_to(candidate)

    async def probe_metadata(self, url: str, probe: Probe) -> Outcome[ProbeMetadata]:
        try:
            response = await asyncio.wait_for(probe(url), timeout=self.config.head_timeout)
        except asyncio.TimeoutError:
            return Outcome.failure(f"timed out after {self.config.head_timeout}s")
        except Exception as exc:
            return Outcome.failure(str(exc) or type(exc).__name__)
        if not response.ok:
            return Outcome.failure(f"HTTP {response.status}")
        return Outcome.success(metadata_from_response(url, response))


__all__ = [
    "AiohttpHeadProbe",
    "HeadCache",
    "HeadCacheEntry",
    "MetadataEnricher",
    "Probe",
    "ProbeResponse",
    "metadata_from_response",
    "needs_enrichment",
    "parse_content_disposition",
]
