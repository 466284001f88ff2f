"""Sequential download scheduling with deterministic collision suffixes."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set

import aiohttp

from .candidates import ResourceCandidate
from .scout_config import ScoutConfig
from .url_utils import add_filename_counter, sanitize_filename

logger = logging.getLogger(__name__)

Saver = Callable[[str, str], Awaitable[str]]

_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class PlannedDownload:
    candidate: ResourceCandidate
    url: str
    filename: str


@dataclass(frozen=True)
class DownloadOutcome:
    url: str
    filename: str
    ok: bool
    identifier: Optional[str] = None
    error: Optional[str] = None


def plan_downloads(candidates: Iterable[ResourceCandidate]) -> List[PlannedDownload]:
    """Assign each candidate a sanitized, batch-unique filename and a target URL.

    The first ``report.pdf`` keeps its name; repeats become ``report (1).pdf``,
    ``report (2).pdf`` and so on. The target prefers the post-redirect URL.
    """

    counts: Dict[str, int] = {}
    issued: Set[str] = set()
    planned: List[PlannedDownload] = []
    for candidate in candidates:
        base = sanitize_filename(candidate.filename)
        count = counts.get(base, 0)
        name = base if count == 0 else add_filename_counter(base, count)
        while name in issued:
            count += 1
            name = add_filename_counter(base, count)
        counts[base] = count + 1
        issued.add(name)
        planned.append(PlannedDownload(candidate=candidate, url=candidate.download_url, filename=name))
    return planned


class DownloadScheduler:
    """Hand planned downloads to ``saver`` one at a time, pausing between items."""

    def __init__(self, saver: Saver, config: Optional[ScoutConfig] = None) -> None:
        self.saver = saver
        self.config = config or ScoutConfig()

    def plan(self, candidates: Iterable[ResourceCandidate]) -> List[PlannedDownload]:
        return plan_downloads(candidates)

    async def schedule(self, candidates: Iterable[ResourceCandidate]) -> List[DownloadOutcome]:
        planned = self.plan(candidates)
        outcomes: List[DownloadOutcome] = []
        for index, item in enumerate(planned):
            if index and self.config.download_pause > 0:
                await asyncio.sleep(self.config.download_pause)
            try:
                identifier = await self.saver(item.url, item.filename)
            except Exception as exc:
                logger.error("Failed to download %s: %s", item.filename, exc)
                outcomes.append(
                    DownloadOutcome(url=item.url, filename=item.filename, ok=False, error=str(exc) or type(exc).__name__)
                )
                continue
            logger.info("Saved %s -> %s", item.url, identifier)
            outcomes.append(DownloadOutcome(url=item.url, filename=item.filename, ok=True, identifier=identifier))
        return outcomes


def unique_path(directory: Path, filename: str) -> Path:
    """First ``directory/filename`` variant that does not exist yet."""

    target = directory / filename
    count = 0
    while target.exists():
        count += 1
        target = directory / add_filename_counter(filename, count)
    return target


class DiskSaver:
    """Stream a URL into ``out_dir`` without ever overwriting an existing file.

    Use as an async context manager so the aiohttp session is closed, or
    pass an existing ``session``.
    """

    def __init__(
        self,
        out_dir: Path,
        config: Optional[ScoutConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.out_dir = Path(out_dir)
        self.config = config or ScoutConfig()
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "DiskSaver":
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers=self.config.request_headers(),
                cookies=self.config.cookies or None,
            )
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def __call__(self, url: str, filename: str) -> str:
        if self._session is None:
            raise RuntimeError("DiskSaver used outside of its context")
        self.out_dir.mkdir(parents=True, exist_ok=True)
        timeout = aiohttp.ClientTimeout(total=self.config.download_timeout)
        async with self._session.get(url, timeout=timeout) as resp:
            resp.raise_for_status()
            target = unique_path(self.out_dir, filename)
            partial = target.with_name(target.name + ".part")
            try:
                with partial.open("wb") as fh:
                    async for chunk in resp.content.iter_chunked(_CHUNK_SIZE):
                        fh.write(chunk)
            except BaseException:
                partial.unlink(missing_ok=True)
                raise
        target = unique_path(self.out_dir, filename)
        partial.replace(target)
        return str(target)


__all__ = [
    "DiskSaver",
    "DownloadOutcome",
    "DownloadScheduler",
    "PlannedDownload",
    "Saver",
    "plan_downloads",
    "unique_path",
]
