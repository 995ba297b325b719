"""
Trip lifecycle classification.

``classify`` is the single definition of a trip's status. ``status_window``
states the same windows as SQL criteria so the reconciler and the
availability planner filter with exactly the rules used in Python.

    arrival < departure            -> invalid
    departure <= now <= arrival    -> active
    arrival < now                  -> completed
    departure > now                -> upcoming

The four windows are disjoint, so rule order never decides the outcome.
"""

from datetime import datetime, timezone
from typing import List

from sqlalchemy import and_

from tickto.app.models.trip import Trip
from tickto.app.models.trip_enums import TripStatus

# Order in which the reconciler applies the rules; any order gives the same result
RECONCILIATION_ORDER = (
    TripStatus.INVALID,
    TripStatus.ACTIVE,
    TripStatus.COMPLETED,
    TripStatus.UPCOMING,
)


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def classify(departure: datetime, arrival: datetime, now: datetime) -> TripStatus:
    """Status of a trip with the given window at instant ``now``."""
    departure, arrival, now = _utc(departure), _utc(arrival), _utc(now)
    if arrival < departure:
        return TripStatus.INVALID
    if departure <= now <= arrival:
        return TripStatus.ACTIVE
    if arrival < now:
        return TripStatus.COMPLETED
    return TripStatus.UPCOMING


def status_window(status: TripStatus, now: datetime) -> List:
    """SQL criteria selecting trips whose window classifies as ``status`` at ``now``."""
    now = _utc(now)
    well_formed = Trip.departure_time <= Trip.arrival_time
    
    if status == TripStatus.INVALID:
        return [Trip.arrival_time < Trip.departure_time]
    if status == TripStatus.ACTIVE:
        return [well_formed, Trip.departure_time <= now, Trip.arrival_time >= now]
    if status == TripStatus.COMPLETED:
        return [well_formed, Trip.arrival_time < now]
    if status == TripStatus.UPCOMING:
        return [well_formed, Trip.departure_time > now]
    raise ValueError(f"Unknown trip status: {status!r}")


def stale_rows_for(status: TripStatus, now: datetime):
    """Criteria for rows that belong to ``status`` but are not recorded as such."""
    return and_(*status_window(status, now), Trip.status != status)
