"""
Trip database model.

Trips are posted by operators and link one of their vehicles to an
origin, a destination and a departure/arrival window.
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, Index
from sqlalchemy.sql import func
from tickto.app.db.session import Base
from tickto.app.db.types import UTCDateTime
from tickto.app.models.trip_enums import TripStatus


class Trip(Base):
    """
    Trip model.
    
    ``vehicle_id`` is kept as the loosely-typed identifier the operator sent;
    it is coerced into a vehicle primary key only when trips are joined to
    vehicles. ``status`` is a cache of ``classify(departure, arrival, now)``.
    """
    __tablename__ = "trips"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Ownership - Trip belongs to an operator account
    organizer_id = Column(Integer, nullable=False, index=True)
    
    # Vehicle reference (external identifier, no foreign key)
    vehicle_id = Column(String(64), nullable=False, index=True)
    
    # Free-text locations, stored as entered
    origin = Column(String(255), nullable=False, index=True)
    destination = Column(String(255), nullable=False, index=True)
    
    # Schedule window
    departure_time = Column(UTCDateTime, nullable=False, index=True)
    arrival_time = Column(UTCDateTime, nullable=False, index=True)
    
    # Derived status
    status = Column(
        Enum(TripStatus, values_callable=lambda e: [m.value for m in e], native_enum=False, length=16),
        default=TripStatus.UPCOMING,
        nullable=False,
        index=True,
    )
    
    # Optional booking details
    fare = Column(Integer, nullable=True)
    seats_total = Column(Integer, nullable=True)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    __table_args__ = (
        Index("ix_trips_status_departure", "status", "departure_time"),
    )
    
    def to_dict(self) -> dict:
        """Plain record used by the aggregation pipeline and API responses."""
        return {
            "id": self.id,
            "organizer_id": self.organizer_id,
            "vehicle_id": self.vehicle_id,
            "origin": self.origin,
            "destination": self.destination,
            "departure_time": self.departure_time,
            "arrival_time": self.arrival_time,
            "status": self.status.value if self.status else None,
            "fare": self.fare,
            "seats_total": self.seats_total,
        }
    
    def __repr__(self):
        status = self.status.value if self.status else None
        return f"<Trip(id={self.id}, {self.origin!r}->{self.destination!r}, status='{status}')>"
