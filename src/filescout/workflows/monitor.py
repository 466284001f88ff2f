"""Debounced change monitor: re-scan the document when relevant mutations settle."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional, Sequence

from bs4 import Tag  # type: ignore

from .candidates import ResourceCandidate
from .dom import LiveDocument, MutationRecord, Observation
from .scout_config import CANDIDATE_TAGS, WATCHED_ATTRIBUTES

logger = logging.getLogger(__name__)

DISABLED = "disabled"
ENABLED = "enabled"

# Descendants of an added subtree that carry a resource reference
_RELEVANT_DESCENDANTS = "a[href], img[src], video[src], audio[src], source[src], object[data], embed[src]"

RescanFn = Callable[[], List[ResourceCandidate]]
ChangeCallback = Callable[[List[ResourceCandidate]], None]


def is_relevant_batch(records: Sequence[MutationRecord]) -> bool:
    for record in records:
        if record.type == "attributes":
            if record.attribute_name in WATCHED_ATTRIBUTES:
                return True
            continue
        for node in record.added_nodes:
            if not isinstance(node, Tag):
                continue
            if node.name in CANDIDATE_TAGS:
                return True
            if node.select_one(_RELEVANT_DESCENDANTS) is not None:
                return True
    return False


class ChangeMonitor:
    """Watch a ``LiveDocument`` and publish fresh scan results after a quiet period.

    Each relevant batch pushes the deadline out by ``debounce`` seconds.
    With a running asyncio loop the rescan fires from a ``call_later``
    timer; otherwise callers drive it with ``poll()``.
    """

    def __init__(
        self,
        rescan: RescanFn,
        *,
        debounce: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rescan = rescan
        self.debounce = debounce
        self.clock = clock
        self.state = DISABLED
        self.pending = False
        self.deadline: Optional[float] = None
        self._observation: Optional[Observation] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._subscribers: Dict[int, ChangeCallback] = {}
        self._next_token = 0

    @property
    def enabled(self) -> bool:
        return self.state == ENABLED

    def enable(self, document: LiveDocument) -> None:
        if self.enabled:
            return
        self._observation = document.observe(self.handle_mutations, attribute_filter=WATCHED_ATTRIBUTES)
        self.state = ENABLED
        logger.debug("Change monitor enabled for %s", document.url or "<document>")

    def disable(self) -> None:
        if not self.enabled:
            return
        if self._observation is not None:
            self._observation.disconnect()
            self._observation = None
        self._cancel_timer()
        self.pending = False
        self.deadline = None
        self.state = DISABLED
        logger.debug("Change monitor disabled")

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        token = self._next_token
        self._next_token += 1
        self._subscribers[token] = callback

        def unsubscribe() -> None:
            self._subscribers.pop(token, None)

        return unsubscribe

    # -- mutation handling --------------------------------------------------

    def handle_mutations(self, records: Sequence[MutationRecord]) -> None:
        if not self.enabled or not is_relevant_batch(records):
            return
        self.pending = True
        self.deadline = self.clock() + self.debounce
        self._arm_timer()

    def _arm_timer(self) -> None:
        self._cancel_timer()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._timer = loop.call_later(self.debounce, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        if self.poll() or not self.pending or self.deadline is None:
            return
        # Loop clock resolution can fire the handle slightly before the deadline.
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(max(0.0, self.deadline - self.clock()), self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def poll(self) -> bool:
        """Fire the rescan if a change is pending and the quiet period elapsed.

        Returns True when a rescan ran.
        """

        if not self.enabled or not self.pending:
            return False
        if self.deadline is not None and self.clock() < self.deadline:
            return False
        self.pending = False
        self.deadline = None
        self._cancel_timer()
        candidates = self.rescan()
        self._publish(candidates)
        return True

    def _publish(self, candidates: List[ResourceCandidate]) -> None:
        for callback in list(self._subscribers.values()):
            try:
                callback(list(candidates))
            except Exception as exc:
                logger.debug("Change subscriber failed: %s", exc)


__all__ = ["ChangeMonitor", "DISABLED", "ENABLED", "is_relevant_batch"]
