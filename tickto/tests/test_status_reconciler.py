"""
Tests for trip status reconciliation.
"""

import asyncio
import pytest
from contextlib import asynccontextmanager
from datetime import timedelta

from sqlalchemy.exc import OperationalError

from tickto.app.core.exceptions import StoreUnavailable
from tickto.app.db.repository import TripRepository
from tickto.app.models.trip_enums import TripStatus
from tickto.app.services.status_reconciler import (
    LAST_RUN_KEY, LOCK_KEY, StatusReconciler, run_periodic_reconciliation,
)


@pytest.fixture
async def seeded(make_trip, now):
    """One trip per window, all recorded with a wrong status."""
    completed = await make_trip(now - timedelta(hours=2), now - timedelta(hours=1), status=TripStatus.UPCOMING)
    active = await make_trip(now - timedelta(minutes=30), now + timedelta(minutes=30), status=TripStatus.COMPLETED)
    upcoming = await make_trip(now + timedelta(hours=1), now + timedelta(hours=2), status=TripStatus.ACTIVE)
    corrupted = await make_trip(now + timedelta(hours=3), now + timedelta(hours=1), status=TripStatus.UPCOMING)
    return completed, active, upcoming, corrupted


@pytest.mark.asyncio
async def test_reconcile_sets_status_from_window(db_session, seeded, now, status_of):
    completed, active, upcoming, corrupted = seeded
    
    report = await StatusReconciler(db_session, clock=lambda: now).reconcile()
    
    assert not report.stale
    assert await status_of(completed.id) == TripStatus.COMPLETED
    assert await status_of(active.id) == TripStatus.ACTIVE
    assert await status_of(upcoming.id) == TripStatus.UPCOMING
    assert await status_of(corrupted.id) == TripStatus.INVALID
    assert report.modified == {"invalid": 1, "active": 1, "completed": 1, "upcoming": 1}


@pytest.mark.asyncio
async def test_reconcile_is_idempotent(db_session, seeded, now):
    reconciler = StatusReconciler(db_session, clock=lambda: now)
    
    first = await reconciler.reconcile()
    second = await reconciler.reconcile()
    
    assert first.total_modified == 4
    assert second.total_modified == 0


@pytest.mark.asyncio
async def test_reconcile_corrects_trip_that_crossed_a_boundary(db_session, make_trip, now, status_of):
    trip = await make_trip(now + timedelta(minutes=10), now + timedelta(hours=1))
    reconciler = StatusReconciler(db_session)
    
    await reconciler.reconcile(now)
    assert await status_of(trip.id) == TripStatus.UPCOMING
    
    await reconciler.reconcile(now + timedelta(minutes=20))
    assert await status_of(trip.id) == TripStatus.ACTIVE
    
    await reconciler.reconcile(now + timedelta(hours=2))
    assert await status_of(trip.id) == TripStatus.COMPLETED


@pytest.mark.asyncio
async def test_failed_rule_does_not_stop_the_others(db_session, seeded, now, status_of, mocker):
    completed, active, upcoming, _ = seeded
    original = TripRepository.update_many
    
    async def flaky_update_many(self, criteria, values):
        if values["status"] == TripStatus.ACTIVE:
            raise StoreUnavailable("simulated outage")
        return await original(self, criteria, values)
    
    mocker.patch.object(TripRepository, "update_many", flaky_update_many)
    
    report = await StatusReconciler(db_session, clock=lambda: now).reconcile()
    
    assert report.stale
    assert [f.rule for f in report.failures] == ["active"]
    assert "active" not in report.modified
    assert await status_of(completed.id) == TripStatus.COMPLETED
    assert await status_of(upcoming.id) == TripStatus.UPCOMING
    # The failed rule left the active trip's old value in place
    assert await status_of(active.id) == TripStatus.COMPLETED


@pytest.mark.asyncio
async def test_database_errors_are_contained(db_session, seeded, now, mocker):
    mocker.patch.object(
        TripRepository, "update_many",
        side_effect=OperationalError("UPDATE trips", {}, Exception("disk I/O error")),
    )
    
    report = await StatusReconciler(db_session, clock=lambda: now).reconcile()
    
    assert report.stale
    assert len(report.failures) == 4
    assert report.modified == {}


@pytest.mark.asyncio
async def test_ensure_fresh_skips_within_staleness_bound(db_session, seeded, now, redis_client):
    reconciler = StatusReconciler(db_session, redis_client=redis_client, staleness_seconds=60, clock=lambda: now)
    
    first = await reconciler.ensure_fresh()
    assert not first.skipped
    assert redis_client.store[LAST_RUN_KEY] == now.isoformat()
    
    second = await reconciler.ensure_fresh()
    assert second.skipped
    
    later = StatusReconciler(
        db_session, redis_client=redis_client, staleness_seconds=60,
        clock=lambda: now + timedelta(seconds=61),
    )
    assert not (await later.ensure_fresh()).skipped


@pytest.mark.asyncio
async def test_ensure_fresh_with_zero_staleness_always_runs(db_session, seeded, now, redis_client):
    reconciler = StatusReconciler(db_session, redis_client=redis_client, staleness_seconds=0, clock=lambda: now)
    
    assert not (await reconciler.ensure_fresh()).skipped
    assert not (await reconciler.ensure_fresh()).skipped
    assert LOCK_KEY not in redis_client.store


@pytest.mark.asyncio
async def test_ensure_fresh_yields_to_running_pass(db_session, seeded, now, redis_client, status_of):
    _, active, _, _ = seeded
    await redis_client.set(LOCK_KEY, "another-worker")
    
    report = await StatusReconciler(db_session, redis_client=redis_client, clock=lambda: now).ensure_fresh()
    
    assert report.skipped
    assert await status_of(active.id) == TripStatus.COMPLETED
    assert redis_client.store[LOCK_KEY] == "another-worker"


@pytest.mark.asyncio
async def test_stale_pass_is_not_recorded(db_session, seeded, now, redis_client, mocker):
    mocker.patch.object(TripRepository, "update_many", side_effect=StoreUnavailable("down"))
    reconciler = StatusReconciler(db_session, redis_client=redis_client, staleness_seconds=60, clock=lambda: now)
    
    report = await reconciler.ensure_fresh()
    
    assert report.stale
    assert LAST_RUN_KEY not in redis_client.store


@pytest.mark.asyncio
async def test_periodic_job_survives_failed_pass_and_stops_on_cancel(make_trip, now, redis_client, status_of, session_factory, caplog):
    trip = await make_trip(now - timedelta(minutes=30), now + timedelta(hours=1), status=TripStatus.UPCOMING)
    sessions = []
    
    @asynccontextmanager
    async def scripted_sessions():
        sessions.append(None)
        if len(sessions) == 1:
            raise OSError("connection refused")
        if len(sessions) > 2:
            # Park the third pass so the task is cancelled outside the store
            await asyncio.Event().wait()
        async with session_factory() as db:
            sessions[-1] = db
            yield db
    
    async def redis_provider():
        return redis_client
    
    task = asyncio.create_task(run_periodic_reconciliation(scripted_sessions, redis_provider, 0))
    for _ in range(200):
        if len(sessions) >= 3:
            break
        await asyncio.sleep(0.01)
    task.cancel()
    
    with pytest.raises(asyncio.CancelledError):
        await task
    
    assert len(sessions) == 3
    assert sessions[1] is not None
    assert "Periodic reconciliation pass failed" in caplog.text
    assert await status_of(trip.id) == TripStatus.ACTIVE
    assert LAST_RUN_KEY in redis_client.store
    assert LOCK_KEY not in redis_client.store
