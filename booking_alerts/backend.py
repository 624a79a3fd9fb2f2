"""Notification backend interface and an in-process implementation.

The engine talks to the notification subsystem only through the
``NotificationBackend`` protocol defined here, which is injected into the
``NotificationManager``. Deliveries and user responses flow back through an
explicit ``AlertEventChannel`` that holds exactly one handler at a time.

``LocalNotificationCenter`` implements the protocol on top of the running
asyncio loop. It is what the demo service runs against and what the tests
drive by hand with ``fire`` and ``respond``.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Dict, Iterable, List, Optional, Protocol, Set

from .config import settings
from .currency import utcnow
from .models import AlertRequest, DeliveredAlert, Presentation

logger = logging.getLogger(__name__)

DEFAULT_PRESENTATION = Presentation.ALERT | Presentation.BADGE | Presentation.SOUND


class BackendError(Exception):
    """Raised when the backend rejects or cannot complete an operation."""


class AlertEventHandler(Protocol):
    """Receiver of backend-driven alert events."""

    async def will_present(self, alert: DeliveredAlert, foreground: bool) -> Presentation:
        ...

    async def did_receive_response(self, alert: DeliveredAlert) -> None:
        ...


class AlertEventChannel:
    """Dispatches delivery and response events to a single subscriber.

    Subscribing replaces any previous handler. Without a handler every
    delivery is presented with the default options and responses are
    dropped.
    """

    def __init__(self) -> None:
        self._handler: Optional[AlertEventHandler] = None

    @property
    def handler(self) -> Optional[AlertEventHandler]:
        return self._handler

    def subscribe(self, handler: AlertEventHandler) -> None:
        if self._handler is not None and self._handler is not handler:
            logger.info("Replacing alert event handler %r with %r", self._handler, handler)
        self._handler = handler

    def unsubscribe(self, handler: AlertEventHandler) -> None:
        if self._handler is handler:
            self._handler = None

    async def deliver(self, alert: DeliveredAlert, foreground: bool = True) -> Presentation:
        handler = self._handler
        if handler is None:
            return DEFAULT_PRESENTATION
        return await handler.will_present(alert, foreground)

    async def respond(self, alert: DeliveredAlert) -> None:
        handler = self._handler
        if handler is not None:
            await handler.did_receive_response(alert)


class NotificationBackend(Protocol):
    """Operations the engine consumes from the notification subsystem."""

    events: AlertEventChannel

    async def request_authorization(self) -> bool:
        ...

    async def submit(self, request: AlertRequest) -> None:
        ...

    def cancel(self, identifiers: Iterable[str]) -> None:
        ...

    async def enumerate_pending(self) -> List[AlertRequest]:
        ...

    async def enumerate_delivered(self) -> List[DeliveredAlert]:
        ...

    def remove_delivered(self, identifiers: Iterable[str]) -> None:
        ...

    def remove_all_pending(self) -> None:
        ...

    def remove_all_delivered(self) -> None:
        ...

    def set_badge_count(self, count: int) -> None:
        ...


class LocalNotificationCenter:
    """In-process notification center running on the asyncio event loop.

    Pending requests are keyed by identifier; submitting a request with an
    identifier that is already pending replaces it. When ``auto_fire`` is
    enabled each submission arms a loop timer at its fire time, offset by a
    random jitter of up to ``jitter_seconds`` in either direction.
    """

    def __init__(
        self,
        *,
        grant_authorization: Optional[bool] = None,
        auto_fire: bool = True,
        jitter_seconds: Optional[float] = None,
        foreground: bool = True,
        clock=utcnow,
    ) -> None:
        if grant_authorization is None:
            grant_authorization = settings.authorize_notifications
        if jitter_seconds is None:
            jitter_seconds = settings.delivery_jitter_seconds
        self.events = AlertEventChannel()
        self.grant_authorization = grant_authorization
        self.auto_fire = auto_fire
        self.jitter_seconds = jitter_seconds
        self.foreground = foreground
        self.badge_count = 0
        self._clock = clock
        self._pending: Dict[str, AlertRequest] = {}
        self._delivered: Dict[str, DeliveredAlert] = {}
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._tasks: Set[asyncio.Task] = set()

    # -- authorization ------------------------------------------------------

    async def request_authorization(self) -> bool:
        await asyncio.sleep(0)
        return self.grant_authorization

    # -- scheduling ---------------------------------------------------------

    async def submit(self, request: AlertRequest) -> None:
        if not request.identifier:
            raise BackendError("request identifier must not be empty")
        await asyncio.sleep(0)
        self._disarm(request.identifier)
        self._pending[request.identifier] = request
        if self.auto_fire:
            self._arm(request)
        logger.debug("Pending request added for %s", request.fire_at.isoformat())

    def cancel(self, identifiers: Iterable[str]) -> None:
        for identifier in identifiers:
            self._disarm(identifier)
            self._pending.pop(identifier, None)

    def remove_all_pending(self) -> None:
        for identifier in list(self._pending):
            self._disarm(identifier)
        self._pending.clear()

    # -- enumeration --------------------------------------------------------

    async def enumerate_pending(self) -> List[AlertRequest]:
        await asyncio.sleep(0)
        return list(self._pending.values())

    async def enumerate_delivered(self) -> List[DeliveredAlert]:
        await asyncio.sleep(0)
        return list(self._delivered.values())

    def remove_delivered(self, identifiers: Iterable[str]) -> None:
        for identifier in identifiers:
            self._delivered.pop(identifier, None)

    def remove_all_delivered(self) -> None:
        self._delivered.clear()

    def set_badge_count(self, count: int) -> None:
        self.badge_count = count

    # -- delivery -----------------------------------------------------------

    async def fire(self, identifier: str) -> Presentation:
        """Deliver the pending request ``identifier`` now.

        Raises:
            KeyError: if no request with that identifier is pending.
        """
        self._disarm(identifier)
        request = self._pending.pop(identifier)
        alert = DeliveredAlert(request=request, delivered_at=self._clock())
        self._delivered[identifier] = alert
        presentation = await self.events.deliver(alert, self.foreground)
        logger.debug("Delivered %s with presentation %s", identifier, presentation)
        return presentation

    async def respond(self, identifier: str) -> None:
        """Simulate the user tapping the delivered alert ``identifier``."""
        alert = self._delivered.get(identifier)
        if alert is None:
            logger.warning("No delivered alert to respond to for %s", identifier)
            return
        await self.events.respond(alert)

    async def close(self) -> None:
        """Cancel timers and wait for deliveries already in flight."""
        for identifier in list(self._timers):
            self._disarm(identifier)
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _arm(self, request: AlertRequest) -> None:
        loop = asyncio.get_running_loop()
        delay = (request.fire_at - self._clock()).total_seconds()
        if self.jitter_seconds:
            delay += random.uniform(-self.jitter_seconds, self.jitter_seconds)
        self._timers[request.identifier] = loop.call_at(
            loop.time() + max(delay, 0.0), self._on_timer, request.identifier
        )

    def _disarm(self, identifier: str) -> None:
        handle = self._timers.pop(identifier, None)
        if handle is not None:
            handle.cancel()

    def _on_timer(self, identifier: str) -> None:
        self._timers.pop(identifier, None)
        if identifier not in self._pending:
            return
        task = asyncio.get_running_loop().create_task(self._fire_logged(identifier))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _fire_logged(self, identifier: str) -> None:
        try:
            await self.fire(identifier)
        except Exception:
            logger.exception("Delivery of %s failed", identifier)
