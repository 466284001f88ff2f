"""High-level exports for the filescout workflows."""

from .candidates import Outcome, ResourceCandidate, merge_enriched, merge_selection
from .dom import FrameAccessDenied, LiveDocument, MutationRecord, ScanRoot
from .enrichment import AiohttpHeadProbe, HeadCache, MetadataEnricher, ProbeResponse, parse_content_disposition
from .monitor import ChangeMonitor
from .resolver import FilenameResolver, resolve_filename
from .scanner import DocumentScanner, scan_document
from .scheduler import DiskSaver, DownloadOutcome, DownloadScheduler, plan_downloads
from .scout import ResourceScout
from .scout_config import ScoutConfig, load_scout_config

__all__ = [
    "AiohttpHeadProbe",
    "ChangeMonitor",
    "DiskSaver",
    "DocumentScanner",
    "DownloadOutcome",
    "DownloadScheduler",
    "FilenameResolver",
    "FrameAccessDenied",
    "HeadCache",
    "LiveDocument",
    "MetadataEnricher",
    "MutationRecord",
    "Outcome",
    "ProbeResponse",
    "ResourceCandidate",
    "ResourceScout",
    "ScanRoot",
    "ScoutConfig",
    "load_scout_config",
    "merge_enriched",
    "merge_selection",
    "parse_content_disposition",
    "plan_downloads",
    "resolve_filename",
    "scan_document",
]
