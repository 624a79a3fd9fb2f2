"""Classification of delivered alerts as current or obsolete.

Observed on real devices: the clock reads a few hundredths of a second past
a full second, and alerts are delivered up to ~0.7s *before* their
scheduled time. A span therefore becomes current a little before its start
(``settings.currency_tolerance_seconds``) and stays current up to and
including its end.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from .config import settings
from .models import TimeSpan, as_utc


def utcnow() -> datetime:
    """Return the current time in UTC."""
    return datetime.now(timezone.utc)


def is_current(span: TimeSpan, now: Optional[datetime] = None, tolerance: Optional[float] = None) -> bool:
    """Return True if ``now`` lies within ``[start - tolerance, end]``.

    Spans that have not started yet and spans that have ended are both
    simply "not current".
    """
    if now is None:
        now = utcnow()
    if tolerance is None:
        tolerance = settings.currency_tolerance_seconds
    now = as_utc(now)
    return span.start - timedelta(seconds=tolerance) <= now <= span.end
