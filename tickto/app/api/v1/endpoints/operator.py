"""
Operator API Endpoints.

Operators register vehicles and post trips. Trip status is derived from the
schedule at write time and afterwards kept current by the reconciler.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status, Path
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tickto.app.db.session import get_db
from tickto.app.db.repository import TripRepository
from tickto.app.core.exceptions import ResourceNotFoundError
from tickto.app.core.guards import require_role, OwnershipGuard
from tickto.app.core.reliability import bounded_store_call
from tickto.app.domain.trips.status import classify
from tickto.app.domain.trips.values import coerce_reference, utc_now
from tickto.app.models.enums import UserRole
from tickto.app.models.trip import Trip
from tickto.app.models.vehicle import Vehicle
from tickto.app.schemas.trip import TripCreate, TripUpdate, TripResponse
from tickto.app.schemas.vehicle import VehicleCreate, VehicleResponse

logger = logging.getLogger("tickto.operator")

router = APIRouter(prefix="/operator", tags=["Operator - Trips & Vehicles"])
ownership_guard = OwnershipGuard()
operator_only = require_role([UserRole.OPERATOR, UserRole.ADMIN])


async def _load_vehicle(db: AsyncSession, raw_vehicle_id, current_user: dict) -> Vehicle:
    """Resolve a submitted vehicle reference to one of the caller's vehicles."""
    vehicle_id = coerce_reference(raw_vehicle_id)
    result = await bounded_store_call(
        lambda: db.execute(select(Vehicle).where(Vehicle.id == vehicle_id))
    )
    vehicle = result.scalar_one_or_none()
    if not vehicle:
        raise ResourceNotFoundError("Vehicle", vehicle_id)
    ownership_guard.enforce(vehicle.operator_id, current_user, "vehicle")
    return vehicle


async def _load_trip(repo: TripRepository, trip_id: int, current_user: dict) -> Trip:
    trip = await repo.get(trip_id)
    if not trip:
        raise ResourceNotFoundError("Trip", trip_id)
    ownership_guard.enforce(trip.organizer_id, current_user, "trip")
    return trip


@router.post("/vehicles", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
async def register_vehicle(
    vehicle_data: VehicleCreate,
    current_user: dict = Depends(operator_only),
    db: AsyncSession = Depends(get_db)
):
    """Register a vehicle owned by the authenticated operator."""
    vehicle = Vehicle(
        operator_id=current_user["user_id"],
        registration_number=vehicle_data.registration_number,
        name=vehicle_data.name,
        vehicle_type=vehicle_data.vehicle_type,
        seat_count=vehicle_data.seat_count,
        is_active=True,
    )
    db.add(vehicle)
    try:
        await bounded_store_call(db.commit)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Vehicle registration number already exists"
        )
    await bounded_store_call(lambda: db.refresh(vehicle))
    
    return VehicleResponse.model_validate(vehicle)


@router.get("/vehicles/{vehicle_id}", response_model=VehicleResponse)
async def get_vehicle(
    vehicle_id: int = Path(..., description="Vehicle ID"),
    current_user: dict = Depends(operator_only),
    db: AsyncSession = Depends(get_db)
):
    """Get one of the operator's vehicles."""
    vehicle = await _load_vehicle(db, vehicle_id, current_user)
    return VehicleResponse.model_validate(vehicle)


@router.post("/trips", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    trip_data: TripCreate,
    current_user: dict = Depends(operator_only),
    db: AsyncSession = Depends(get_db)
):
    """
    Post a trip on one of the operator's vehicles.
    
    The initial status is classified from the schedule; a window whose
    arrival precedes its departure is stored as ``invalid``.
    """
    await _load_vehicle(db, trip_data.vehicle_id, current_user)
    
    trip = Trip(
        organizer_id=current_user["user_id"],
        vehicle_id=str(trip_data.vehicle_id),
        origin=trip_data.origin,
        destination=trip_data.destination,
        departure_time=trip_data.departure_time,
        arrival_time=trip_data.arrival_time,
        status=classify(trip_data.departure_time, trip_data.arrival_time, utc_now()),
        fare=trip_data.fare,
        seats_total=trip_data.seats_total,
    )
    trip = await TripRepository(db).insert(trip)
    logger.info("Trip %s posted by operator %s", trip.id, trip.organizer_id)
    
    return TripResponse.model_validate(trip)


@router.get("/trips", response_model=List[TripResponse])
async def list_own_trips(
    current_user: dict = Depends(operator_only),
    db: AsyncSession = Depends(get_db)
):
    """List the caller's trips by departure time (admins see all trips)."""
    criteria = []
    owner_filter = ownership_guard.filter_by_ownership(current_user)
    if owner_filter is not None:
        criteria.append(Trip.organizer_id == owner_filter)
    
    trips = await TripRepository(db).find_many(criteria, order_by=[Trip.departure_time])
    return [TripResponse.model_validate(t) for t in trips]


@router.get("/trips/{trip_id}", response_model=TripResponse)
async def get_trip(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(operator_only),
    db: AsyncSession = Depends(get_db)
):
    trip = await _load_trip(TripRepository(db), trip_id, current_user)
    return TripResponse.model_validate(trip)


@router.patch("/trips/{trip_id}", response_model=TripResponse)
async def update_trip(
    trip_data: TripUpdate,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(operator_only),
    db: AsyncSession = Depends(get_db)
):
    """
    Partially update a trip.
    
    Status is re-derived only when the schedule changes; other edits leave it
    for the reconciler.
    """
    repo = TripRepository(db)
    trip = await _load_trip(repo, trip_id, current_user)
    
    fields = trip_data.model_dump(exclude_unset=True, exclude_none=True)
    if not fields:
        return TripResponse.model_validate(trip)
    
    if "vehicle_id" in fields:
        await _load_vehicle(db, fields["vehicle_id"], current_user)
        fields["vehicle_id"] = str(fields["vehicle_id"])
    
    if "departure_time" in fields or "arrival_time" in fields:
        fields["status"] = classify(
            fields.get("departure_time", trip.departure_time),
            fields.get("arrival_time", trip.arrival_time),
            utc_now(),
        )
    
    trip = await repo.patch(trip, fields)
    logger.info("Trip %s updated fields %s", trip.id, sorted(fields))
    
    return TripResponse.model_validate(trip)
