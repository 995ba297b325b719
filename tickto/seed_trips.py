"""
Database seeding script for demo vehicles and trips.

Creates two operator buses and a spread of past, running and upcoming trips
so the availability search and location autocomplete have data to show.
Prints an operator token for trying the operator endpoints.
"""

import asyncio
import sys
from datetime import timedelta
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from tickto.app.db.session import AsyncSessionLocal, engine, Base
from tickto.app.core.jwt import create_access_token
from tickto.app.domain.trips.status import classify
from tickto.app.domain.trips.values import utc_now
from tickto.app.models.trip import Trip
from tickto.app.models.vehicle import Vehicle

OPERATOR_ID = 1

ROUTES = [
    ("Dhaka", "Sylhet", 6),
    ("Dhaka", "Chattogram", 7),
    ("Dhaka", "Cox's Bazar", 10),
    ("Sylhet", "Habiganj", 2),
    ("Chattogram", "Hatiya", 5),
    ("Rajshahi", "Dhaka", 6),
]

# Hours from now; negative offsets produce completed/active trips
DEPARTURE_OFFSETS = [-12, -2, 3, 26, 50]


async def seed_trips():
    """Seed vehicles and trips unless vehicles already exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    async with AsyncSessionLocal() as db:
        print("🌱 Starting trip seeding...")
        
        existing = await db.execute(select(Vehicle).limit(1))
        if existing.scalar_one_or_none():
            print("ℹ️  Vehicles already exist, skipping seeding")
            return
        
        buses = [
            Vehicle(operator_id=OPERATOR_ID, registration_number="DHA-METRO-BA-11-2233",
                    name="Green Line 12", vehicle_type="AC Sleeper", seat_count=30),
            Vehicle(operator_id=OPERATOR_ID, registration_number="DHA-METRO-BA-15-7781",
                    name="Shyamoli 4", vehicle_type="Non-AC Seater", seat_count=40),
        ]
        db.add_all(buses)
        await db.flush()
        print(f"✅ Created {len(buses)} vehicles")
        
        now = utc_now().replace(minute=0, second=0, microsecond=0)
        count = 0
        for index, (origin, destination, duration) in enumerate(ROUTES):
            bus = buses[index % len(buses)]
            for offset in DEPARTURE_OFFSETS:
                departure = now + timedelta(hours=offset + index)
                arrival = departure + timedelta(hours=duration)
                db.add(Trip(
                    organizer_id=OPERATOR_ID,
                    vehicle_id=str(bus.id),
                    origin=origin,
                    destination=destination,
                    departure_time=departure,
                    arrival_time=arrival,
                    status=classify(departure, arrival, now),
                    fare=150 * duration,
                    seats_total=bus.seat_count,
                ))
                count += 1
        
        await db.commit()
        print(f"✅ Created {count} trips across {len(ROUTES)} routes")
        
        token = create_access_token({"sub": "demo-operator", "user_id": OPERATOR_ID, "role": "OPERATOR"})
        print("\n🎉 Trip seeding completed successfully!")
        print(f"\nOperator token (user_id={OPERATOR_ID}):\n  {token}")


if __name__ == "__main__":
    asyncio.run(seed_trips())
