import asyncio
from datetime import timedelta

import pytest

from booking_alerts.backend import (
    DEFAULT_PRESENTATION,
    AlertEventChannel,
    BackendError,
    LocalNotificationCenter,
)
from booking_alerts.currency import utcnow
from booking_alerts.models import AlertContent, AlertRequest, Presentation

from .conftest import make_request, make_span


class _Handler:
    def __init__(self, presentation):
        self.presentation = presentation
        self.delivered = []
        self.responses = []

    async def will_present(self, alert, foreground):
        self.delivered.append((alert.identifier, foreground))
        return self.presentation

    async def did_receive_response(self, alert):
        self.responses.append(alert.identifier)


@pytest.mark.asyncio
async def test_channel_holds_a_single_handler(t0):
    channel = AlertEventChannel()
    first, second = _Handler(Presentation.NONE), _Handler(Presentation.SOUND)
    center = LocalNotificationCenter(auto_fire=False, clock=lambda: t0)
    center.events = channel
    request = make_request(make_span(t0, 60))
    await center.submit(request)

    channel.subscribe(first)
    channel.subscribe(second)
    presentation = await center.fire(request.identifier)
    await center.respond(request.identifier)

    assert presentation == Presentation.SOUND
    assert first.delivered == []
    assert second.delivered == [(request.identifier, True)]
    assert second.responses == [request.identifier]

    channel.unsubscribe(first)
    assert channel.handler is second
    channel.unsubscribe(second)
    assert channel.handler is None


@pytest.mark.asyncio
async def test_delivery_without_handler_uses_default_presentation(t0):
    center = LocalNotificationCenter(auto_fire=False, clock=lambda: t0)
    request = make_request(make_span(t0, 60))
    await center.submit(request)

    assert await center.fire(request.identifier) == DEFAULT_PRESENTATION
    delivered = await center.enumerate_delivered()
    assert [a.identifier for a in delivered] == [request.identifier]
    assert delivered[0].delivered_at == t0
    assert await center.enumerate_pending() == []


@pytest.mark.asyncio
async def test_submitting_the_same_identifier_replaces_the_request(t0):
    center = LocalNotificationCenter(auto_fire=False)
    request = make_request(make_span(t0, 60))
    later = request.model_copy(update={"fire_at": t0 + timedelta(seconds=60)})

    await center.submit(request)
    await center.submit(later)

    assert await center.enumerate_pending() == [later]


@pytest.mark.asyncio
async def test_empty_identifier_is_rejected(t0):
    center = LocalNotificationCenter(auto_fire=False)
    request = AlertRequest(identifier="", content=AlertContent(title="R", body="booked"), fire_at=t0)

    with pytest.raises(BackendError):
        await center.submit(request)


@pytest.mark.asyncio
async def test_firing_an_unknown_identifier_raises(t0):
    center = LocalNotificationCenter(auto_fire=False)

    with pytest.raises(KeyError):
        await center.fire("missing")


@pytest.mark.asyncio
async def test_auto_fire_delivers_due_requests():
    center = LocalNotificationCenter(auto_fire=True, jitter_seconds=0.0)
    request = make_request(make_span(utcnow() - timedelta(seconds=1), 60))

    await center.submit(request)
    await asyncio.sleep(0.05)

    assert [a.identifier for a in await center.enumerate_delivered()] == [request.identifier]
    await center.close()


@pytest.mark.asyncio
async def test_cancel_disarms_the_timer():
    center = LocalNotificationCenter(auto_fire=True, jitter_seconds=0.0)
    request = make_request(make_span(utcnow() + timedelta(milliseconds=20), 60))

    await center.submit(request)
    center.cancel([request.identifier])
    await asyncio.sleep(0.1)

    assert await center.enumerate_pending() == []
    assert await center.enumerate_delivered() == []


@pytest.mark.asyncio
async def test_close_stops_future_deliveries():
    center = LocalNotificationCenter(auto_fire=True, jitter_seconds=0.0)
    request = make_request(make_span(utcnow() + timedelta(milliseconds=20), 60))
    await center.submit(request)

    await center.close()
    await asyncio.sleep(0.1)

    assert await center.enumerate_delivered() == []
    assert len(await center.enumerate_pending()) == 1


@pytest.mark.asyncio
async def test_authorization_grant_is_configurable():
    assert await LocalNotificationCenter(grant_authorization=True).request_authorization() is True
    assert await LocalNotificationCenter(grant_authorization=False).request_authorization() is False
