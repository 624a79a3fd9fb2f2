"""Demo service for the booking alert engine.

This module defines a small FastAPI application that plays the part of the
booking list screen: bookings are added a few seconds in the future, the
engine schedules their start and end alerts on an in-process notification
center, and the latest diagnostics snapshot is kept in memory for the API.

Endpoints:
  - ``GET /api/bookings``: list the bookings made so far.
  - ``POST /api/bookings``: add a booking starting after N seconds.
  - ``DELETE /api/bookings/{row}``: remove one booking and cancel its alert.
  - ``DELETE /api/bookings``: remove everything, pending and delivered.
  - ``GET /api/counts``: latest pending/delivered/current counts.
  - ``POST /api/badge/clear``: reset the badge.
  - ``/healthz``: simple health check endpoint.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException

from .backend import LocalNotificationCenter
from .config import settings
from .currency import utcnow
from .manager import NotificationManager
from .models import Booking, BookingCreate, BookingOut, CountsOut, DiagnosticsSnapshot, Interval

logger = logging.getLogger("booking_alerts")
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

_state: Dict[str, Any] = {
    "center": None,
    "manager": None,
    "bookings": [],
    "snapshot": DiagnosticsSnapshot(),
}


def _iso_z(value) -> str:
    return value.isoformat().replace("+00:00", "Z")


def _update_counts(snapshot: DiagnosticsSnapshot) -> None:
    """Observer registered with the manager; keeps the latest snapshot."""
    _state["snapshot"] = snapshot


def _manager() -> NotificationManager:
    manager: Optional[NotificationManager] = _state["manager"]
    if manager is None:
        raise HTTPException(status_code=503, detail="Notification manager not started")
    return manager


def _booking_out(row: int, booking: Booking) -> BookingOut:
    return BookingOut(
        row=row,
        id=booking.id,
        startIso=_iso_z(booking.interval.start),
        endIso=_iso_z(booking.interval.end),
        identifier=booking.identifier,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the notification center and the manager for the app's lifetime."""
    center = LocalNotificationCenter()
    manager = NotificationManager(center)
    await manager.initialize()
    manager.set_observer(_update_counts)
    _state.update(center=center, manager=manager, bookings=[], snapshot=DiagnosticsSnapshot())

    yield

    await manager.wait_idle()
    await center.close()
    _state.update(center=None, manager=None)


app = FastAPI(title="Booking Alerts Demo", lifespan=lifespan)


@app.get("/api/bookings")
async def api_bookings() -> Dict[str, Any]:
    """Return the bookings made so far."""
    bookings: List[Booking] = _state["bookings"]
    items = [_booking_out(row, b).model_dump() for row, b in enumerate(bookings)]
    return {"count": len(items), "items": items}


@app.post("/api/bookings", status_code=201)
async def api_add_booking(body: Optional[BookingCreate] = None) -> Dict[str, Any]:
    """Add a booking and schedule its start alert."""
    body = body or BookingCreate()
    start_after = body.startAfterSeconds if body.startAfterSeconds is not None else settings.start_after_seconds
    duration = body.durationSeconds if body.durationSeconds is not None else settings.duration_seconds
    if start_after < 0 or duration < 0:
        raise HTTPException(status_code=422, detail="startAfterSeconds and durationSeconds must not be negative")

    interval = Interval.from_duration(utcnow() + timedelta(seconds=start_after), duration)
    booking = Booking(interval=interval)
    bookings: List[Booking] = _state["bookings"]
    bookings.append(booking)

    booking.identifier = await _manager().schedule(
        body.title or settings.booking_title,
        body.message or settings.booking_message,
        interval,
    )
    if booking.identifier is None:
        logger.warning("Booking %s has no alert scheduled", booking.id)
    return _booking_out(len(bookings) - 1, booking).model_dump()


@app.delete("/api/bookings/{row}")
async def api_remove_booking(row: int) -> Dict[str, Any]:
    """Remove one booking and cancel its pending alert."""
    bookings: List[Booking] = _state["bookings"]
    if row < 0 or row >= len(bookings):
        raise HTTPException(status_code=404, detail=f"No booking at row {row}")
    removed = bookings.pop(row)
    if removed.identifier is not None:
        _manager().cancel_pending(removed.identifier)
    return {"removed": removed.id, "count": len(bookings)}


@app.delete("/api/bookings")
async def api_remove_all() -> Dict[str, Any]:
    """Remove every booking along with all pending and delivered alerts."""
    manager = _manager()
    manager.clear_all_pending()
    manager.clear_all_delivered()
    _state["bookings"] = []
    # re-registering the observer refreshes the counts
    manager.set_observer(_update_counts)
    return {"count": 0}


@app.get("/api/counts")
async def api_counts() -> Dict[str, Any]:
    """Return the latest diagnostics snapshot."""
    snapshot: DiagnosticsSnapshot = _state["snapshot"]
    bookings: List[Booking] = _state["bookings"]
    return CountsOut(
        pending=snapshot.pending,
        delivered=snapshot.delivered,
        current=snapshot.current,
        description=str(snapshot),
        bookings=[_booking_out(row, b) for row, b in enumerate(bookings)],
    ).model_dump()


@app.post("/api/badge/clear")
async def api_clear_badge() -> Dict[str, Any]:
    """Reset the badge shown for current alerts."""
    _manager().clear_badge()
    return {"ok": True}


@app.get("/healthz")
def healthz() -> Dict[str, Any]:
    """Health check endpoint for monitoring."""
    manager: Optional[NotificationManager] = _state["manager"]
    return {
        "ok": True,
        "authorized": bool(manager and manager.authorized),
        "time": _iso_z(utcnow()),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("booking_alerts.main:app", host=settings.api_host, port=settings.api_port)
