"""Pydantic data models for bookings, alerts and diagnostics.

These models describe the values that flow between the scheduling engine,
the notification backend and the demo service. They are immutable where
their identity matters (a ``TimeSpan`` *is* its encoded identifier) and
carry timezone-aware UTC datetimes throughout.
"""

from __future__ import annotations

import enum
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

BRIEF_FORMAT = "%d.%m.%Y %H:%M:%S"
MICROSECOND_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def whole_seconds(value: datetime) -> datetime:
    """Drop the sub-second part; triggers only have one-second resolution."""
    return value.replace(microsecond=0)


class Presentation(enum.Flag):
    """How a delivered alert should be shown while the client is active."""

    NONE = 0
    ALERT = enum.auto()
    BADGE = enum.auto()
    SOUND = enum.auto()


class Interval(BaseModel):
    """A closed time interval ``[start, end]``."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def normalize_timezone(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def check_order(self) -> "Interval":
        if self.start > self.end:
            raise ValueError("interval start must not be after its end")
        return self

    @classmethod
    def from_duration(cls, start: datetime, seconds: float) -> "Interval":
        return cls(start=start, end=as_utc(start) + timedelta(seconds=seconds))

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def brief(self) -> str:
        """Human readable form, e.g. ``25.10.2020 15:42:05 to 25.10.2020 17:42:05``."""
        return f"{self.start.strftime(BRIEF_FORMAT)} to {self.end.strftime(BRIEF_FORMAT)}"


class TimeSpan(BaseModel):
    """The (title, message, start, end) record identifying one alert.

    Its encoded form (see ``booking_alerts.codec``) is used as the backend
    request identifier, so instances are frozen and compare by value.
    """

    model_config = ConfigDict(frozen=True)

    title: str
    message: str
    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def normalize_timezone(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def check_order(self) -> "TimeSpan":
        if self.start > self.end:
            raise ValueError("time span start must not be after its end")
        return self

    @classmethod
    def for_interval(cls, title: str, message: str, interval: Interval) -> "TimeSpan":
        return cls(title=title, message=message, start=interval.start, end=interval.end)

    @property
    def interval(self) -> Interval:
        return Interval(start=self.start, end=self.end)

    def __str__(self) -> str:
        return (
            f"title= {self.title}, message= {self.message}, "
            f"start= {self.start.strftime(MICROSECOND_FORMAT)}, "
            f"end= {self.end.strftime(MICROSECOND_FORMAT)}"
        )


class Booking(BaseModel):
    """A client-level reservation; ``identifier`` is set once its alert is scheduled."""

    interval: Interval
    identifier: Optional[str] = None

    @property
    def id(self) -> str:
        return self.interval.brief


class AlertContent(BaseModel):
    """What the user sees when an alert fires."""

    model_config = ConfigDict(frozen=True)

    title: str
    subtitle: str = ""
    body: str
    category: str = "alarm"
    badge: Optional[int] = 1
    sound: Optional[str] = "default"
    end_of_booking: bool = False

    def end_of_booking_copy(self) -> "AlertContent":
        """Silent copy of this content marking the end of the booking."""
        return self.model_copy(update={"badge": None, "sound": None, "end_of_booking": True})


class AlertRequest(BaseModel):
    """A scheduled alert as submitted to the backend."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    content: AlertContent
    fire_at: datetime

    @field_validator("fire_at")
    @classmethod
    def normalize_timezone(cls, value: datetime) -> datetime:
        return as_utc(value)


class DeliveredAlert(BaseModel):
    """An alert the backend has fired."""

    model_config = ConfigDict(frozen=True)

    request: AlertRequest
    delivered_at: datetime

    @property
    def identifier(self) -> str:
        return self.request.identifier

    @property
    def is_end_of_booking(self) -> bool:
        return self.request.content.end_of_booking


class DiagnosticsSnapshot(BaseModel):
    """Counts of pending, delivered and current alerts at one point in time."""

    model_config = ConfigDict(frozen=True)

    pending: int = 0
    delivered: int = 0
    current: int = 0

    def __str__(self) -> str:
        return f"pending: {self.pending}, delivered: {self.delivered}, current: {self.current}"


class BookingCreate(BaseModel):
    """Request body for creating a booking through the demo service."""

    startAfterSeconds: Optional[int] = None
    durationSeconds: Optional[int] = None
    title: Optional[str] = None
    message: Optional[str] = None


class BookingOut(BaseModel):
    """Represents a booking in API responses."""

    row: int
    id: str
    startIso: str
    endIso: str
    identifier: Optional[str] = None


class CountsOut(BaseModel):
    """Represents the latest diagnostics snapshot in API responses."""

    pending: int
    delivered: int
    current: int
    description: str
    bookings: List[BookingOut] = []
