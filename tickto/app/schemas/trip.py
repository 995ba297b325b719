"""
Trip schemas.

Schemas for operator trip management and availability results.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, Union
from datetime import datetime

from tickto.app.domain.trips.values import coerce_timestamp
from tickto.app.schemas.vehicle import VehicleResponse


def _timestamp(value):
    if value is None:
        return None
    try:
        return coerce_timestamp(value)
    except ValueError as e:
        raise ValueError(f"invalid timestamp: {e}")


def _vehicle_ref(value):
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("vehicle_id must be an identifier")
    text = str(value).strip()
    if not text:
        raise ValueError("vehicle_id must not be blank")
    return text


class TripCreate(BaseModel):
    """Schema for an operator posting a trip."""
    vehicle_id: Union[str, int] = Field(..., description="Identifier of one of the operator's vehicles")
    origin: str = Field(..., min_length=1, max_length=255)
    destination: str = Field(..., min_length=1, max_length=255)
    departure_time: datetime
    arrival_time: datetime
    fare: Optional[int] = Field(None, ge=0)
    seats_total: Optional[int] = Field(None, gt=0)

    @field_validator("departure_time", "arrival_time", mode="before")
    @classmethod
    def coerce_times(cls, value):
        return _timestamp(value)

    @field_validator("vehicle_id", mode="before")
    @classmethod
    def coerce_vehicle(cls, value):
        return _vehicle_ref(value)

    @field_validator("origin", "destination")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class TripUpdate(BaseModel):
    """Partial update; only fields present in the request are written."""
    vehicle_id: Optional[Union[str, int]] = None
    origin: Optional[str] = Field(None, min_length=1, max_length=255)
    destination: Optional[str] = Field(None, min_length=1, max_length=255)
    departure_time: Optional[datetime] = None
    arrival_time: Optional[datetime] = None
    fare: Optional[int] = Field(None, ge=0)
    seats_total: Optional[int] = Field(None, gt=0)

    @field_validator("departure_time", "arrival_time", mode="before")
    @classmethod
    def coerce_times(cls, value):
        return _timestamp(value)

    @field_validator("vehicle_id", mode="before")
    @classmethod
    def coerce_vehicle(cls, value):
        return _vehicle_ref(value)


class TripResponse(BaseModel):
    """Schema for trip response."""
    id: int
    organizer_id: int
    vehicle_id: str
    origin: str
    destination: str
    departure_time: datetime
    arrival_time: datetime
    status: str
    fare: Optional[int] = None
    seats_total: Optional[int] = None

    @field_validator("status", mode="before")
    @classmethod
    def status_value(cls, value):
        return getattr(value, "value", value)
    
    class Config:
        from_attributes = True


class AvailableTripResponse(TripResponse):
    """Bookable trip joined with its vehicle."""
    bus_details: VehicleResponse
