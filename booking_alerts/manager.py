"""The scheduling authority for booking alerts.

``NotificationManager`` owns the notification backend. It turns bookings
into alert requests keyed by their encoded ``TimeSpan``, schedules the
chained end-of-booking alert when a start alert is delivered and keeps the
diagnostics observer up to date.

None of the public methods raise because of the backend: authorization
denial, submission failures and undecodable identifiers are logged and the
affected booking simply goes without its alert.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from .backend import NotificationBackend
from .codec import decode, encode
from .config import settings
from .currency import utcnow
from .diagnostics import DiagnosticsReconciler, Observer
from .extender import ChainedAlertExtender
from .models import (
    AlertContent,
    AlertRequest,
    DiagnosticsSnapshot,
    Interval,
    TimeSpan,
    whole_seconds,
)

logger = logging.getLogger(__name__)


class NotificationManager:
    """Schedules, cancels and counts booking alerts on an injected backend."""

    def __init__(
        self,
        backend: NotificationBackend,
        *,
        clock: Callable[[], datetime] = utcnow,
        tolerance: Optional[float] = None,
        category: Optional[str] = None,
    ) -> None:
        self.backend = backend
        self.diagnostics = DiagnosticsReconciler(backend, clock=clock, tolerance=tolerance)
        self.extender = ChainedAlertExtender(self)
        self.category = category or settings.alert_category
        self.authorized = False
        self.received: List[TimeSpan] = []

    async def initialize(self) -> None:
        """Subscribe to alert events and ask the backend for authorization.

        A denial leaves every scheduling call a no-op; it is only logged.
        """
        self.backend.events.subscribe(self.extender)
        self.diagnostics.attach_loop(asyncio.get_running_loop())
        try:
            granted = await self.backend.request_authorization()
        except Exception as exc:
            logger.error("Authorization request failed: %s", exc)
            return
        if granted:
            self.authorized = True
        logger.info("Notifications allowed" if granted else "Notifications NOT allowed")

    # -- scheduling ---------------------------------------------------------

    async def schedule(self, title: str, message: str, interval: Interval) -> Optional[str]:
        """Schedule the start alert of a booking.

        Returns the identifier of the submitted request, or None when nothing
        was scheduled.
        """
        if not self.authorized:
            logger.debug("Not authorized, booking alert not scheduled")
            return None
        span = TimeSpan.for_interval(title, message, interval)
        logger.info("Scheduling %s", span)
        identifier = encode(span)
        content = AlertContent(title=title, body=message, category=self.category)
        request = AlertRequest(identifier=identifier, content=content, fire_at=whole_seconds(span.start))
        if await self._submit(request):
            return identifier
        return None

    async def schedule_follow_up(self, identifier: str, content: Optional[AlertContent] = None) -> bool:
        """Schedule the end-of-booking alert for a delivered start alert.

        The follow-up reuses ``identifier`` and fires at the end of the
        encoded time span. Returns True if it was submitted.
        """
        if not self.authorized:
            return False
        span = decode(identifier)
        if span is None:
            logger.error("*** failed to get a time span from %s", identifier)
            return False
        if content is None:
            content = AlertContent(title=span.title, body=span.message, category=self.category)
        request = AlertRequest(
            identifier=identifier,
            content=content.end_of_booking_copy(),
            fire_at=whole_seconds(span.end),
        )
        return await self._submit(request)

    async def _submit(self, request: AlertRequest) -> bool:
        try:
            await self.backend.submit(request)
        except Exception as exc:
            logger.error("Failed to add alert request %s: %s", request.identifier, exc)
            return False
        self.diagnostics.request_refresh()
        return True

    # -- removal ------------------------------------------------------------

    def cancel_pending(self, identifier: str) -> None:
        """Cancel a pending request.

        The backend applies cancellations asynchronously, so the refresh
        started here may still count the request; the next one will not.
        """
        logger.info("Cancelling pending request %s", identifier)
        try:
            self.backend.cancel([identifier])
        except Exception as exc:
            logger.error("Failed to cancel %s: %s", identifier, exc)
        self.diagnostics.request_refresh()

    def clear_all_pending(self) -> None:
        try:
            self.backend.remove_all_pending()
        except Exception as exc:
            logger.error("Failed to remove pending requests: %s", exc)

    def clear_all_delivered(self) -> None:
        logger.info("Clearing delivered alerts")
        try:
            self.backend.remove_all_delivered()
        except Exception as exc:
            logger.error("Failed to remove delivered alerts: %s", exc)
        self.diagnostics.request_refresh()

    def clear_badge(self) -> None:
        logger.info("Clearing badge")
        try:
            self.backend.set_badge_count(0)
        except Exception as exc:
            logger.error("Failed to clear badge: %s", exc)

    # -- diagnostics --------------------------------------------------------

    @property
    def observer(self) -> Optional[Observer]:
        return self.diagnostics.observer

    def set_observer(self, observer: Optional[Observer]) -> None:
        """Register the single diagnostics observer, replacing any previous one."""
        self.diagnostics.set_observer(observer)

    async def refresh(self) -> Optional[DiagnosticsSnapshot]:
        return await self.diagnostics.refresh()

    async def wait_idle(self) -> None:
        await self.diagnostics.wait_idle()
