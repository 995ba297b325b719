"""
Value types for data crossing the trip store boundary.

Locations, time windows and vehicle references are coerced here once, so
services never re-derive them from raw strings.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional

from tickto.app.core.exceptions import ReferenceCoercionError, ValidationError
from tickto.app.domain.trips.status import classify
from tickto.app.models.trip_enums import TripStatus

# Everything that is not a word character or whitespace
_NON_SEARCH_CHARS = re.compile(r"[^\w\s]", re.UNICODE)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def coerce_timestamp(raw: Any) -> datetime:
    """
    Turn a stored or submitted timestamp into an aware UTC datetime.
    
    Accepts datetimes, dates (midnight UTC) and ISO-8601 strings, including a
    trailing ``Z``. Naive values are taken as UTC.
    
    Raises:
        ValueError: If the value cannot be read as a timestamp
    """
    if isinstance(raw, datetime):
        value = raw
    elif isinstance(raw, date):
        value = datetime.combine(raw, time.min)
    elif isinstance(raw, str) and raw.strip():
        text = raw.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Not a timestamp: {raw!r}")
    
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_departure_date(raw: Optional[str]) -> Optional[date]:
    """
    Read the ``departure`` query parameter as a calendar date.
    
    A time-of-day component is dropped after converting to UTC. Blank values
    mean "no date filter".
    
    Raises:
        ValidationError: If the value is not an ISO date or datetime
    """
    if raw is None or not raw.strip():
        return None
    try:
        return coerce_timestamp(raw).date()
    except ValueError:
        raise ValidationError(
            "departure must be an ISO-8601 date such as 2024-05-01",
            details={"departure": raw},
        )


def utc_day_bounds(day: date) -> tuple:
    """Half-open [start, end) UTC interval covering one calendar date."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def coerce_reference(raw: Any, target: str = "vehicle id") -> int:
    """
    Convert a loosely-typed identifier into an integer primary key.
    
    Raises:
        ReferenceCoercionError: For anything that is not a positive integer
    """
    if isinstance(raw, bool):
        raise ReferenceCoercionError(raw, target)
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str) and raw.strip().isascii() and raw.strip().isdigit():
        # isdigit alone accepts superscripts and other non-decimal digits
        value = int(raw.strip())
    else:
        raise ReferenceCoercionError(raw, target)
    if value <= 0:
        raise ReferenceCoercionError(raw, target)
    return value


@dataclass(frozen=True)
class LocationText:
    """A location as typed by a user, compared trimmed and case-folded."""
    value: str

    @classmethod
    def from_param(cls, raw: Optional[str]) -> Optional["LocationText"]:
        if raw is None:
            return None
        text = raw.strip()
        return cls(text) if text else None

    @property
    def folded(self) -> str:
        return self.value.lower()


def sanitize_search_text(raw: Optional[str]) -> str:
    """Keep word characters and whitespace, then trim."""
    if not raw:
        return ""
    return _NON_SEARCH_CHARS.sub("", raw).strip()


@dataclass(frozen=True)
class TimeWindow:
    """Departure/arrival pair of a trip, both aware UTC datetimes."""
    departure: datetime
    arrival: datetime

    @classmethod
    def of(cls, departure: Any, arrival: Any) -> "TimeWindow":
        return cls(coerce_timestamp(departure), coerce_timestamp(arrival))

    @property
    def is_well_formed(self) -> bool:
        return self.departure <= self.arrival

    def classify(self, now: Optional[datetime] = None) -> TripStatus:
        return classify(self.departure, self.arrival, now or utc_now())
