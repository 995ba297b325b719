"""
Trip availability search.

Turns optional origin/destination/date parameters into a pipeline over
bookable trips, joins each trip to its vehicle and returns the rows ordered
by departure time. Status is reconciled (or confirmed fresh) first.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession

from tickto.app.db.pipeline import Lookup, Match, Sort
from tickto.app.db.repository import TripRepository
from tickto.app.domain.trips.values import (
    LocationText, parse_departure_date, utc_day_bounds, utc_now,
)
from tickto.app.models.trip import Trip
from tickto.app.models.trip_enums import TripStatus
from tickto.app.models.vehicle import Vehicle
from tickto.app.services.status_reconciler import StatusReconciler

logger = logging.getLogger("tickto.availability")

VEHICLE_FIELD = "bus_details"


@dataclass(frozen=True)
class AvailabilityQuery:
    origin: Optional[LocationText] = None
    destination: Optional[LocationText] = None
    departure_date: Optional[date] = None

    @classmethod
    def from_params(
        cls,
        origin: Optional[str] = None,
        destination: Optional[str] = None,
        departure: Optional[str] = None,
    ) -> "AvailabilityQuery":
        """Build a query from raw request parameters; blank values are ignored."""
        return cls(
            origin=LocationText.from_param(origin),
            destination=LocationText.from_param(destination),
            departure_date=parse_departure_date(departure),
        )


@dataclass
class AvailabilityResult:
    trips: List[dict] = field(default_factory=list)
    # Set when status could not be fully reconciled before the read
    stale: bool = False


def location_equals(column, location: LocationText):
    """Whole-value, case-insensitive match ignoring surrounding whitespace."""
    return func.lower(func.trim(column)) == location.folded


def build_availability_pipeline(query: AvailabilityQuery, now: datetime) -> list:
    """Pipeline selecting bookable trips for ``query`` as of ``now``."""
    criteria = [
        Trip.status == TripStatus.UPCOMING,
        # Re-check against the clock in case the cached status lags
        Trip.departure_time > now,
    ]
    if query.origin is not None:
        criteria.append(location_equals(Trip.origin, query.origin))
    if query.destination is not None:
        criteria.append(location_equals(Trip.destination, query.destination))
    if query.departure_date is not None:
        day_start, day_end = utc_day_bounds(query.departure_date)
        criteria.append(Trip.departure_time >= day_start)
        criteria.append(Trip.departure_time < day_end)
    
    return [
        Match(*criteria),
        Sort("departure_time", then_by=("id",)),
        Lookup(Vehicle, local_field="vehicle_id", as_field=VEHICLE_FIELD),
    ]


class AvailabilityPlanner:
    """Answers availability queries against reconciled trips."""

    def __init__(
        self,
        db: AsyncSession,
        reconciler: Optional[StatusReconciler] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = TripRepository(db)
        self.reconciler = reconciler or StatusReconciler(db, clock=clock)
        self.clock = clock

    async def search(self, query: AvailabilityQuery) -> AvailabilityResult:
        report = await self.reconciler.ensure_fresh()
        now = self.clock()
        trips = await self.repository.aggregate(build_availability_pipeline(query, now))
        
        if report.stale:
            logger.warning(
                "Serving %d trips on partially reconciled status (failed rules: %s)",
                len(trips), [f.rule for f in report.failures],
            )
        return AvailabilityResult(trips=trips, stale=report.stale)
