"""
Trip status reconciliation.

Brings the cached ``status`` column in line with the current time. Each
status rule is a bulk update in its own transaction; a failing rule is
recorded on the report and the remaining rules still run.

Passes are coordinated through Redis: the time of the last successful pass
lets the read path skip reconciliation while the cache is fresh enough, and
a short lock keeps concurrent requests from repeating the same pass.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

import redis.asyncio as redis
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tickto.app.core.config import settings
from tickto.app.core.exceptions import PartialReconciliationFailure, StoreUnavailable
from tickto.app.db.repository import TripRepository
from tickto.app.domain.trips.status import RECONCILIATION_ORDER, stale_rows_for
from tickto.app.domain.trips.values import coerce_timestamp, utc_now

logger = logging.getLogger("tickto.reconciler")

# Redis keys
LAST_RUN_KEY = "reconcile:trips:last_run"
LOCK_KEY = "reconcile:trips:lock"

REDIS_ERRORS = (redis.RedisError, OSError)


@dataclass
class ReconciliationReport:
    """Outcome of one reconciliation attempt."""
    ran_at: datetime
    modified: Dict[str, int] = field(default_factory=dict)
    failures: List[PartialReconciliationFailure] = field(default_factory=list)
    skipped: bool = False

    @property
    def stale(self) -> bool:
        """True when some status rule could not be applied."""
        return bool(self.failures)

    @property
    def total_modified(self) -> int:
        return sum(self.modified.values())

    def to_dict(self) -> dict:
        return {
            "ran_at": self.ran_at.isoformat(),
            "skipped": self.skipped,
            "stale": self.stale,
            "modified": dict(self.modified),
            "failed_rules": [f.rule for f in self.failures],
        }


class StatusReconciler:
    """
    Recompute every trip's status against ``now`` and persist the changes.
    
    Stateless apart from the injected session and Redis client.
    """

    def __init__(
        self,
        db: AsyncSession,
        redis_client=None,
        staleness_seconds: Optional[int] = None,
        lock_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = TripRepository(db)
        self.redis = redis_client
        self.staleness_seconds = (
            settings.reconcile_staleness_seconds if staleness_seconds is None else staleness_seconds
        )
        self.lock_seconds = settings.reconcile_lock_seconds if lock_seconds is None else lock_seconds
        self.clock = clock

    async def reconcile(self, now: Optional[datetime] = None) -> ReconciliationReport:
        """Apply every status rule once; never raises for store failures."""
        now = now or self.clock()
        report = ReconciliationReport(ran_at=now)
        
        for status in RECONCILIATION_ORDER:
            try:
                count = await self.repository.update_many(
                    [stale_rows_for(status, now)], {"status": status}
                )
                await self.repository.commit()
            except (StoreUnavailable, SQLAlchemyError) as exc:
                await self._rollback_quietly()
                failure = PartialReconciliationFailure(status.value, exc)
                report.failures.append(failure)
                logger.warning("Partial reconciliation: %s", failure.message)
                continue
            report.modified[status.value] = count
        
        logger.info(
            "Reconciled trip statuses at %s: %s%s",
            now.isoformat(),
            report.modified,
            " (stale)" if report.stale else "",
        )
        return report

    async def ensure_fresh(self, force: bool = False) -> ReconciliationReport:
        """
        Reconcile unless a recent enough pass exists or one is already running.
        
        Args:
            force: Ignore the staleness bound (still honors the lock)
        """
        now = self.clock()
        
        if not force and self.staleness_seconds > 0:
            last_run = await self._last_run()
            if last_run is not None and (now - last_run).total_seconds() < self.staleness_seconds:
                return ReconciliationReport(ran_at=last_run, skipped=True)
        
        token = uuid.uuid4().hex
        if not await self._acquire_lock(token):
            logger.debug("Reconciliation already in progress, reading current status")
            return ReconciliationReport(ran_at=now, skipped=True)
        
        try:
            report = await self.reconcile(now)
            if not report.stale:
                await self._record_run(now)
            return report
        finally:
            await self._release_lock(token)

    async def _rollback_quietly(self) -> None:
        try:
            await self.repository.rollback()
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Rollback after failed status rule also failed: %s", exc)

    # Redis bookkeeping; Redis trouble degrades to reconciling locally

    async def _last_run(self) -> Optional[datetime]:
        if self.redis is None:
            return None
        try:
            raw = await self.redis.get(LAST_RUN_KEY)
        except REDIS_ERRORS as exc:
            logger.warning("Could not read last reconciliation time: %s", exc)
            return None
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        try:
            return coerce_timestamp(raw)
        except ValueError:
            return None

    async def _record_run(self, now: datetime) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.set(LAST_RUN_KEY, now.isoformat())
        except REDIS_ERRORS as exc:
            logger.warning("Could not record reconciliation time: %s", exc)

    async def _acquire_lock(self, token: str) -> bool:
        if self.redis is None:
            return True
        try:
            return bool(await self.redis.set(LOCK_KEY, token, ex=self.lock_seconds, nx=True))
        except REDIS_ERRORS as exc:
            logger.warning("Reconciliation lock unavailable, running unlocked: %s", exc)
            return True

    async def _release_lock(self, token: str) -> None:
        if self.redis is None:
            return
        try:
            holder = await self.redis.get(LOCK_KEY)
            if isinstance(holder, bytes):
                holder = holder.decode()
            if holder == token:
                await self.redis.delete(LOCK_KEY)
        except REDIS_ERRORS as exc:
            logger.warning("Could not release reconciliation lock: %s", exc)


async def run_periodic_reconciliation(session_factory, redis_provider, interval_seconds: int) -> None:
    """
    Background job reconciling every ``interval_seconds`` until cancelled.
    
    Started from the application lifespan when an interval is configured.
    """
    logger.info("Periodic reconciliation every %ss", interval_seconds)
    while True:
        try:
            async with session_factory() as db:
                reconciler = StatusReconciler(db, redis_client=await redis_provider())
                await reconciler.ensure_fresh(force=True)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Periodic reconciliation pass failed")
        await asyncio.sleep(interval_seconds)
