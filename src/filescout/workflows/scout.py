"""ResourceScout: one object wiring scanner, monitor, enricher and scheduler together."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional

from .candidates import ResourceCandidate, merge_enriched, merge_selection
from .dom import LiveDocument
from .enrichment import MetadataEnricher, Probe
from .monitor import ChangeCallback, ChangeMonitor
from .resolver import FilenameResolver
from .scanner import DocumentScanner
from .scheduler import DownloadOutcome, DownloadScheduler, Saver
from .scout_config import ScoutConfig

logger = logging.getLogger(__name__)


class ResourceScout:
    """Inbound interface for a presentation layer.

    Keeps the current candidate list so selection survives re-scans and
    enrichment passes.
    """

    def __init__(
        self,
        document: LiveDocument,
        *,
        config: Optional[ScoutConfig] = None,
        probe: Optional[Probe] = None,
        saver: Optional[Saver] = None,
        resolver: Optional[FilenameResolver] = None,
        monitor_clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.document = document
        self.config = config or ScoutConfig()
        self.scanner = DocumentScanner(resolver, max_frame_depth=self.config.max_frame_depth)
        self.enricher = MetadataEnricher(self.config, probe)
        self.saver = saver
        monitor_kwargs = {"debounce": self.config.debounce_seconds}
        if monitor_clock is not None:
            monitor_kwargs["clock"] = monitor_clock
        self.monitor = ChangeMonitor(self._rescan, **monitor_kwargs)
        self.candidates: List[ResourceCandidate] = []

    # -- scanning -----------------------------------------------------------

    def request_scan(self) -> List[ResourceCandidate]:
        self.candidates = merge_selection(self.candidates, self.scanner.scan(self.document))
        return list(self.candidates)

    def _rescan(self) -> List[ResourceCandidate]:
        self.document.forget_frames()
        return self.request_scan()

    def enable_change_monitor(self) -> None:
        self.monitor.enable(self.document)

    def disable_change_monitor(self) -> None:
        self.monitor.disable()

    def subscribe_to_changes(self, callback: ChangeCallback) -> Callable[[], None]:
        return self.monitor.subscribe(callback)

    # -- selection ----------------------------------------------------------

    def set_selected(self, url: str, selected: bool = True) -> bool:
        for candidate in self.candidates:
            if candidate.url == url:
                candidate.selected = selected
                return True
        return False

    def select_where(self, predicate: Callable[[ResourceCandidate], bool]) -> int:
        count = 0
        for candidate in self.candidates:
            candidate.selected = bool(predicate(candidate))
            count += int(candidate.selected)
        return count

    def selected(self) -> List[ResourceCandidate]:
        return [c for c in self.candidates if c.selected]

    # -- enrichment and download --------------------------------------------

    async def request_enrichment(self, candidates: Iterable[ResourceCandidate]) -> List[ResourceCandidate]:
        items = list(candidates)
        enriched = await self.enricher.enrich(items)
        self.candidates = merge_enriched(self.candidates, enriched)
        return enriched

    async def request_download(self, selected: Iterable[ResourceCandidate]) -> List[DownloadOutcome]:
        if self.saver is None:
            raise RuntimeError("ResourceScout has no saver configured")
        scheduler = DownloadScheduler(self.saver, self.config)
        outcomes = await scheduler.schedule(selected)
        failed = sum(1 for o in outcomes if not o.ok)
        logger.info("Downloads finished: %d ok, %d failed", len(outcomes) - failed, failed)
        return outcomes


__all__ = ["ResourceScout"]
