"""Delivery handling that chains an end-of-booking alert to every start alert."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .backend import DEFAULT_PRESENTATION
from .codec import decode
from .models import DeliveredAlert, Presentation

if TYPE_CHECKING:
    from .manager import NotificationManager

logger = logging.getLogger(__name__)


class ChainedAlertExtender:
    """Subscriber of the backend event channel for a ``NotificationManager``.

    A start alert is presented and followed by exactly one end alert that
    reuses its identifier. An end alert is silent, is removed from the
    delivered set right away and never chains further.
    """

    def __init__(self, manager: "NotificationManager") -> None:
        self._manager = manager

    async def will_present(self, alert: DeliveredAlert, foreground: bool) -> Presentation:
        logger.info(
            "Alert delivered (foreground=%s, end_of_booking=%s)", foreground, alert.is_end_of_booking
        )
        if alert.is_end_of_booking:
            presentation = Presentation.NONE
            self._manager.backend.remove_delivered([alert.identifier])
        else:
            presentation = DEFAULT_PRESENTATION
            await self._manager.schedule_follow_up(alert.identifier, alert.request.content)
        self._manager.diagnostics.request_refresh()
        return presentation

    async def did_receive_response(self, alert: DeliveredAlert) -> None:
        span = decode(alert.identifier)
        if span is None:
            logger.warning("Response for an alert with a foreign identifier: %s", alert.identifier)
            return
        self._manager.received.append(span)
        logger.info("Response received for %s, received count=%s", span, len(self._manager.received))
