"""
Vehicle Pydantic schemas.

Defines request and response models for operator vehicles.
"""

from pydantic import BaseModel, Field
from typing import Optional


class VehicleCreate(BaseModel):
    """Schema for registering a vehicle."""
    registration_number: str = Field(..., min_length=1, max_length=100, description="Unique registration number")
    name: Optional[str] = Field(None, max_length=255, description="Display name, e.g. 'Green Line 12'")
    vehicle_type: Optional[str] = Field(None, max_length=100, description="e.g. AC Sleeper")
    seat_count: Optional[int] = Field(None, gt=0)


class VehicleResponse(BaseModel):
    """Schema for vehicle response."""
    id: int
    operator_id: int
    registration_number: str
    name: Optional[str] = None
    vehicle_type: Optional[str] = None
    seat_count: Optional[int] = None
    is_active: bool = True
    
    class Config:
        from_attributes = True
