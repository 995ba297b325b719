"""
Centralized Test Configuration.
"""

import pytest
from datetime import datetime, timezone
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from tickto.app.main import app
from tickto.app.db.session import get_db, Base
from tickto.app.core.jwt import create_access_token
from tickto.app.core.redis_client import get_redis
from tickto.app.core.reliability import store_circuit_breaker
from tickto.app.models.trip import Trip
from tickto.app.models.trip_enums import TripStatus
from tickto.app.models.vehicle import Vehicle
import tickto.app.core.redis_client as redis_client_module

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False
    
    async def ping(self):
        if self._closed:
            return False
        return True
    
    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)
        
    async def set(self, key, value, ex=None, nx=False):
        if self._closed:
            return False
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True
    
    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0
    
    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0
        
    async def flushdb(self):
        if not self._closed:
            self.store = {}
        
    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture
def redis_client():
    return MockRedis()


@pytest.fixture(autouse=True)
def apply_overrides(redis_client):
    """Point the app at the in-memory database and Redis double."""
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client
    
    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return redis_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    store_circuit_breaker.reset_state()
    yield
    
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client
    store_circuit_breaker.reset_state()


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    yield
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def now():
    return datetime.now(timezone.utc).replace(microsecond=0)


@pytest.fixture
def operator_token():
    token = create_access_token({"sub": "operator1", "user_id": 1, "role": "OPERATOR"})
    return token, 1


@pytest.fixture
def operator2_token():
    token = create_access_token({"sub": "operator2", "user_id": 2, "role": "OPERATOR"})
    return token, 2


@pytest.fixture
def admin_token():
    return create_access_token({"sub": "admin", "user_id": 99, "role": "ADMIN"})


@pytest.fixture
async def vehicle(db_session):
    bus = Vehicle(
        operator_id=1,
        registration_number="DHA-METRO-11-2233",
        name="Green Line 12",
        vehicle_type="AC Sleeper",
        seat_count=36,
        is_active=True,
    )
    db_session.add(bus)
    await db_session.commit()
    await db_session.refresh(bus)
    return bus


@pytest.fixture
def make_trip(db_session, vehicle):
    """Factory inserting a trip row directly, bypassing the API."""
    async def _make_trip(
        departure,
        arrival,
        origin="Dhaka",
        destination="Sylhet",
        status=TripStatus.UPCOMING,
        vehicle_id=None,
        organizer_id=1,
    ):
        trip = Trip(
            organizer_id=organizer_id,
            vehicle_id=str(vehicle.id) if vehicle_id is None else vehicle_id,
            origin=origin,
            destination=destination,
            departure_time=departure,
            arrival_time=arrival,
            status=status,
        )
        db_session.add(trip)
        await db_session.commit()
        await db_session.refresh(trip)
        return trip
    return _make_trip


async def fetch_status(session_factory, trip_id):
    async with session_factory() as session:
        trip = await session.get(Trip, trip_id)
        return trip.status


@pytest.fixture
def status_of():
    async def _status_of(trip_id):
        return await fetch_status(TestingSessionLocal, trip_id)
    return _status_of


@pytest.fixture
def session_factory():
    """Session factory bound to the test database, for code that opens its own sessions."""
    return TestingSessionLocal
