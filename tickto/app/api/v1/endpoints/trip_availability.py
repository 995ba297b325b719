"""
Trip Availability API Endpoints.

Public search over bookable trips. Status is reconciled (or confirmed fresh)
before each read; when reconciliation only partly succeeded the response
carries ``X-Trip-Status-Stale: true``.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from tickto.app.core.redis_client import get_redis
from tickto.app.db.session import get_db
from tickto.app.schemas.trip import AvailableTripResponse
from tickto.app.services.availability import AvailabilityPlanner, AvailabilityQuery
from tickto.app.services.status_reconciler import StatusReconciler

router = APIRouter(prefix="/trips", tags=["Trips - Availability"])

STALE_HEADER = "X-Trip-Status-Stale"


async def get_status_reconciler(
    db: AsyncSession = Depends(get_db),
    redis_client=Depends(get_redis),
) -> StatusReconciler:
    return StatusReconciler(db, redis_client=redis_client)


@router.get("/available", response_model=List[AvailableTripResponse])
async def list_available_trips(
    response: Response,
    origin: Optional[str] = Query(None, description="Origin, matched whole and case-insensitively"),
    destination: Optional[str] = Query(None, description="Destination, matched whole and case-insensitively"),
    departure: Optional[str] = Query(None, description="Departure date (YYYY-MM-DD, UTC)"),
    db: AsyncSession = Depends(get_db),
    reconciler: StatusReconciler = Depends(get_status_reconciler),
):
    """
    List upcoming trips, earliest departure first.
    
    Each trip includes its vehicle under ``bus_details``; trips whose vehicle
    cannot be resolved are left out.
    """
    query = AvailabilityQuery.from_params(origin, destination, departure)
    result = await AvailabilityPlanner(db, reconciler=reconciler).search(query)
    
    if result.stale:
        response.headers[STALE_HEADER] = "true"
    
    return result.trips
