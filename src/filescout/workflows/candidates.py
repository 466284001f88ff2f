"""Candidate records, the success/failure result type, and merge helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import Any, Dict, Generic, Iterable, List, Mapping, Optional, TypeVar

from ..core.keys import (
    K_ENRICHED,
    K_EXTENSION,
    K_FILENAME,
    K_FINAL_URL,
    K_IS_INFERRED_DOWNLOAD,
    K_SELECTED,
    K_SIZE,
    K_URL,
)
from .scout_config import FALLBACK_FILENAME

T = TypeVar("T")


@dataclass
class ResourceCandidate:
    """One discovered or inferred downloadable item, keyed by ``url``."""

    url: str
    filename: str
    extension: str
    is_inferred_download: bool = False
    enriched: bool = False
    size: Optional[int] = None
    final_url: Optional[str] = None
    selected: bool = False

    def __post_init__(self) -> None:
        self.extension = (self.extension or "").lower()
        if not self.filename:
            self.filename = FALLBACK_FILENAME

    @property
    def download_url(self) -> str:
        return self.final_url or self.url

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            K_URL: self.url,
            K_FILENAME: self.filename,
            K_EXTENSION: self.extension,
            K_IS_INFERRED_DOWNLOAD: self.is_inferred_download,
            K_SELECTED: self.selected,
        }
        if self.enriched:
            payload[K_ENRICHED] = True
        if self.size is not None:
            payload[K_SIZE] = self.size
        if self.final_url:
            payload[K_FINAL_URL] = self.final_url
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResourceCandidate":
        size = data.get(K_SIZE)
        try:
            size = int(size) if size is not None else None
        except (TypeError, ValueError):
            size = None
        return cls(
            url=str(data.get(K_URL) or ""),
            filename=str(data.get(K_FILENAME) or ""),
            extension=str(data.get(K_EXTENSION) or ""),
            is_inferred_download=bool(data.get(K_IS_INFERRED_DOWNLOAD, False)),
            enriched=bool(data.get(K_ENRICHED, False)),
            size=size,
            final_url=data.get(K_FINAL_URL) or None,
            selected=bool(data.get(K_SELECTED, False)),
        )


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Success-with-value or failure-with-reason, returned instead of raising."""

    ok: bool
    value: Optional[T] = None
    reason: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, reason: str) -> "Outcome[T]":
        return cls(ok=False, reason=reason)


@dataclass
class ProbeMetadata:
    """Fields a header probe can contribute to a candidate."""

    filename: Optional[str] = None
    extension: Optional[str] = None
    size: Optional[int] = None
    final_url: Optional[str] = None

    def apply_to(self, candidate: ResourceCandidate) -> ResourceCandidate:
        """Return a copy of ``candidate`` with probe data merged in (``selected`` untouched)."""

        updates: Dict[str, Any] = {"enriched": True}
        if self.filename:
            updates["filename"] = self.filename
        if self.extension:
            updates["extension"] = self.extension
        if self.size is not None:
            updates["size"] = self.size
        if self.final_url:
            updates["final_url"] = self.final_url
        return replace(candidate, **updates)


def merge_selection(
    previous: Iterable[ResourceCandidate],
    current: Iterable[ResourceCandidate],
) -> List[ResourceCandidate]:
    """Carry ``selected`` from a prior result onto a fresh scan, matched by URL."""

    selection = {c.url: c.selected for c in previous}
    merged: List[ResourceCandidate] = []
    for candidate in current:
        merged.append(replace(candidate, selected=selection.get(candidate.url, candidate.selected)))
    return merged


def merge_enriched(
    existing: Iterable[ResourceCandidate],
    enriched: Iterable[ResourceCandidate],
) -> List[ResourceCandidate]:
    """Overlay enriched records onto ``existing`` by URL, keeping each one's ``selected``."""

    by_url = {c.url: c for c in enriched}
    merged: List[ResourceCandidate] = []
    for candidate in existing:
        update = by_url.get(candidate.url)
        if update is None:
            merged.append(candidate)
            continue
        merged.append(replace(update, selected=candidate.selected))
    return merged


__all__ = [
    "Outcome",
    "ProbeMetadata",
    "ResourceCandidate",
    "merge_enriched",
    "merge_selection",
]
