"""
Pytest configuration and shared fixtures.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from booking_alerts.backend import BackendError, LocalNotificationCenter
from booking_alerts.codec import encode
from booking_alerts.manager import NotificationManager
from booking_alerts.models import AlertContent, AlertRequest, TimeSpan

T0 = datetime(2020, 10, 25, 14, 42, 5, 286747, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock; calling it returns the current fake time."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingCenter(LocalNotificationCenter):
    """Local center that remembers every submitted request."""

    def __init__(self, **kwargs):
        kwargs.setdefault("auto_fire", False)
        kwargs.setdefault("jitter_seconds", 0.0)
        kwargs.setdefault("grant_authorization", True)
        super().__init__(**kwargs)
        self.submitted = []
        self.reject = False

    async def submit(self, request):
        if self.reject:
            raise BackendError("rejected")
        await super().submit(request)
        self.submitted.append(request)


class ScriptedCenter(RecordingCenter):
    """Center whose enumerations wait for scripted delays, one per call."""

    def __init__(self, pending_delays=(), delivered_delays=(), **kwargs):
        super().__init__(**kwargs)
        self.pending_delays = list(pending_delays)
        self.delivered_delays = list(delivered_delays)

    async def enumerate_pending(self):
        if self.pending_delays:
            await asyncio.sleep(self.pending_delays.pop(0))
        return await super().enumerate_pending()

    async def enumerate_delivered(self):
        if self.delivered_delays:
            await asyncio.sleep(self.delivered_delays.pop(0))
        return await super().enumerate_delivered()


def make_request(span: TimeSpan) -> AlertRequest:
    content = AlertContent(title=span.title, body=span.message)
    return AlertRequest(identifier=encode(span), content=content, fire_at=span.start)


def make_span(start: datetime, seconds: float, title: str = "R", message: str = "booked") -> TimeSpan:
    return TimeSpan(title=title, message=message, start=start, end=start + timedelta(seconds=seconds))


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def clock():
    return FakeClock(T0)


@pytest.fixture
def center(clock):
    return RecordingCenter(clock=clock)


@pytest.fixture
def manager(center, clock):
    return NotificationManager(center, clock=clock, tolerance=2.0)


@pytest.fixture
def snapshots():
    """List collecting every snapshot delivered to an observer."""
    return []
