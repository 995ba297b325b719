"""
Vehicle database model.

Operators register the buses they run trips with. Beyond identity the
availability engine treats these attributes as opaque display details.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from tickto.app.db.session import Base


class Vehicle(Base):
    """Vehicle model; the join target for trip results."""
    __tablename__ = "vehicles"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Ownership - Vehicle belongs to an operator
    operator_id = Column(Integer, nullable=False, index=True)
    
    # Identification
    registration_number = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    vehicle_type = Column(String(100), nullable=True)  # e.g., "AC Sleeper", "Non-AC Seater"
    seat_count = Column(Integer, nullable=True)
    
    is_active = Column(Boolean, default=True, nullable=False)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "operator_id": self.operator_id,
            "registration_number": self.registration_number,
            "name": self.name,
            "vehicle_type": self.vehicle_type,
            "seat_count": self.seat_count,
            "is_active": self.is_active,
        }
    
    def __repr__(self):
        return f"<Vehicle(id={self.id}, number='{self.registration_number}', operator_id={self.operator_id})>"
