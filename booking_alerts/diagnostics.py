"""Reconciliation of backend state into diagnostics snapshots.

Every refresh re-derives the counts from scratch: the pending and the
delivered enumerations are awaited together, delivered alerts are
classified as current or obsolete, obsolete ones are purged, the badge is
set to the number of current alerts and the resulting snapshot is handed
to the single registered observer.

Snapshots are published on the event loop that runs the reconciler, so an
observer never has to worry about being called from a backend worker
thread.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional, Set, Tuple

from .backend import NotificationBackend
from .codec import decode
from .currency import is_current, utcnow
from .models import AlertRequest, DeliveredAlert, DiagnosticsSnapshot

logger = logging.getLogger(__name__)

Observer = Callable[[DiagnosticsSnapshot], None]


def classify(
    delivered: List[DeliveredAlert], now: datetime, tolerance: Optional[float] = None
) -> Tuple[List[str], List[str]]:
    """Split delivered alerts into (current, obsolete) identifiers.

    Identifiers that do not decode are obsolete.
    """
    current: List[str] = []
    obsolete: List[str] = []
    for alert in delivered:
        span = decode(alert.identifier)
        if span is not None and is_current(span, now, tolerance):
            current.append(alert.identifier)
        else:
            obsolete.append(alert.identifier)
    return current, obsolete


class DiagnosticsReconciler:
    """Joins the pending and delivered enumerations into one snapshot."""

    def __init__(
        self,
        backend: NotificationBackend,
        *,
        clock: Callable[[], datetime] = utcnow,
        tolerance: Optional[float] = None,
    ) -> None:
        self._backend = backend
        self._clock = clock
        self._tolerance = tolerance
        self._observer: Optional[Observer] = None
        self._tasks: Set[asyncio.Task] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._started = 0
        self._published = 0
        self.last_snapshot: Optional[DiagnosticsSnapshot] = None

    @property
    def observer(self) -> Optional[Observer]:
        return self._observer

    def set_observer(self, observer: Optional[Observer]) -> None:
        """Replace the observer and give it an initial snapshot."""
        self._observer = observer
        if observer is not None:
            self.request_refresh()

    def attach_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Remember the loop that background refreshes are started on."""
        self._loop = loop

    def request_refresh(self) -> None:
        """Start a refresh in the background; the caller does not wait.

        Outside a running loop the refresh is handed to the attached loop;
        without one it is skipped and logged.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            loop = self._loop
            if loop is None or loop.is_closed():
                logger.warning("No event loop running, diagnostics refresh skipped")
                return
            loop.call_soon_threadsafe(self._spawn_refresh)
            return
        self._spawn_refresh()

    def _spawn_refresh(self) -> None:
        loop = asyncio.get_running_loop()
        self._loop = loop
        task = loop.create_task(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        """Wait until every background refresh has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def refresh(self) -> Optional[DiagnosticsSnapshot]:
        """Query the backend and publish a fresh snapshot.

        Returns the snapshot, or None when the backend could not be
        enumerated or a newer refresh has already published.
        """
        self._started += 1
        generation = self._started
        try:
            pending, delivered = await asyncio.gather(
                self._backend.enumerate_pending(),
                self._backend.enumerate_delivered(),
            )
        except Exception:
            logger.exception("Failed to enumerate notifications, snapshot not updated")
            return None

        snapshot, obsolete = self._reconcile(pending, delivered)

        if obsolete:
            try:
                self._backend.remove_delivered(obsolete)
            except Exception as exc:
                logger.warning("Failed to purge %d obsolete alerts: %s", len(obsolete), exc)

        if generation < self._published:
            logger.debug("Dropping snapshot %s from superseded refresh #%s", snapshot, generation)
            return None
        self._published = generation

        try:
            self._backend.set_badge_count(snapshot.current)
        except Exception as exc:
            logger.warning("Failed to set badge count to %d: %s", snapshot.current, exc)
        self.last_snapshot = snapshot
        logger.info("Diagnostics %s", snapshot)
        self._publish(snapshot)
        return snapshot

    def _reconcile(
        self, pending: List[AlertRequest], delivered: List[DeliveredAlert]
    ) -> Tuple[DiagnosticsSnapshot, List[str]]:
        current, obsolete = classify(delivered, self._clock(), self._tolerance)
        snapshot = DiagnosticsSnapshot(
            pending=len(pending),
            delivered=len(delivered),
            current=len(current),
        )
        return snapshot, obsolete

    def _publish(self, snapshot: DiagnosticsSnapshot) -> None:
        observer = self._observer
        if observer is None:
            return
        try:
            observer(snapshot)
        except Exception:
            logger.exception("Diagnostics observer failed")
