"""Encoding of a ``TimeSpan`` into the identifier string and back.

The identifier is a compact JSON object whose timestamps are POSIX seconds
with a six digit fractional part, e.g.::

    {"title":"R","message":"booked","start":1603636925.286747,"end":1603644125.286747}

Timestamps are written from the exact microsecond count and read back as
``Decimal``, so every datetime a ``TimeSpan`` can hold survives the trip
unchanged. The key order is fixed, which makes equal spans produce equal
identifiers.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import ValidationError

from .models import TimeSpan

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_FIELDS = ("title", "message", "start", "end")
_MICROSECOND = timedelta(microseconds=1)
# datetime cannot represent anything outside year 1..9999
_MAX_ABS_SECONDS = 253402300800


def _seconds(value: datetime) -> str:
    micros = (value - EPOCH) // _MICROSECOND
    return format(Decimal(micros).scaleb(-6), "f")


def _datetime(value) -> Optional[datetime]:
    # bool is an int subclass, reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, Decimal)):
        return None
    if abs(value) > _MAX_ABS_SECONDS:
        return None
    micros = int((Decimal(value) * 1_000_000).to_integral_value())
    return EPOCH + timedelta(microseconds=micros)


def encode(span: TimeSpan) -> str:
    """Return the identifier string for ``span``."""
    return '{"title":%s,"message":%s,"start":%s,"end":%s}' % (
        json.dumps(span.title, ensure_ascii=False),
        json.dumps(span.message, ensure_ascii=False),
        _seconds(span.start),
        _seconds(span.end),
    )


def decode(identifier: str) -> Optional[TimeSpan]:
    """Recover the ``TimeSpan`` encoded in ``identifier``.

    Returns ``None`` for anything that is not an identifier produced by
    :func:`encode`; foreign or corrupted identifiers are never fatal.
    """
    if not isinstance(identifier, str) or not identifier.lstrip().startswith("{"):
        return None
    try:
        payload = json.loads(identifier, parse_float=Decimal)
    except (ValueError, RecursionError):
        return None
    if not isinstance(payload, dict) or set(payload) != set(_FIELDS):
        return None
    try:
        start = _datetime(payload["start"])
        end = _datetime(payload["end"])
        if start is None or end is None:
            return None
        return TimeSpan(title=payload["title"], message=payload["message"], start=start, end=end)
    except (ValidationError, OverflowError, InvalidOperation, ValueError) as exc:
        logger.debug("Identifier does not decode to a time span: %s", exc)
        return None
