"""
Trip repository.

The only component that talks to the trip store. Offers filtered reads,
filtered bulk updates and the small aggregation pipeline used by the
availability planner and the location index. Every call is bounded by the
store timeout and the store circuit breaker.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tickto.app.core.reliability import bounded_store_call
from tickto.app.db.pipeline import (
    Limit, Lookup, Project, Sort, PipelineError,
    compile_stages, coerce_references, join_records, sort_records, split_pipeline,
)
from tickto.app.models.trip import Trip

logger = logging.getLogger("tickto.repository")


class TripRepository:
    """Durable store of trip records."""

    def __init__(self, db: AsyncSession, timeout: Optional[float] = None):
        self.db = db
        self.timeout = timeout

    async def _execute(self, stmt):
        return await bounded_store_call(lambda: self.db.execute(stmt), self.timeout)

    async def commit(self) -> None:
        await bounded_store_call(self.db.commit, self.timeout)

    async def rollback(self) -> None:
        await self.db.rollback()

    # Filtered access

    async def find_many(
        self,
        criteria: Iterable = (),
        order_by: Optional[Sequence] = None,
        limit: Optional[int] = None,
    ) -> List[Trip]:
        """All trips matching every criterion; unordered unless ``order_by`` is given."""
        stmt = select(Trip).where(*criteria)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._execute(stmt)
        return list(result.scalars().all())

    async def update_many(self, criteria: Iterable, values: Mapping[str, Any]) -> int:
        """
        Overwrite fields on every matching trip.
        
        Does not commit; the caller owns the transaction.
        
        Returns:
            Number of rows modified
        """
        stmt = (
            update(Trip)
            .where(*criteria)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(stmt)
        return result.rowcount or 0

    async def aggregate(self, stages: Sequence) -> List[Dict[str, Any]]:
        """
        Run a pipeline and return the records produced by its last stage.
        
        Raises:
            PipelineError: For stage sequences that cannot be executed
            StoreUnavailable: If the store cannot be reached
        """
        sql_stages, record_stages = split_pipeline(stages)
        stmt, group_key = compile_stages(Trip, sql_stages)
        result = await self._execute(stmt)
        
        if group_key is None:
            records = [trip.to_dict() for trip in result.scalars().all()]
        else:
            records = [{group_key: row[0], "count": row[1]} for row in result.all()]
        
        for stage in record_stages:
            if isinstance(stage, Lookup):
                records = await self._lookup(records, stage)
            elif isinstance(stage, Project):
                records = [stage.apply(record) for record in records]
            elif isinstance(stage, Sort):
                records = sort_records(records, stage)
            elif isinstance(stage, Limit):
                records = records[:stage.count]
            else:
                raise PipelineError(f"{type(stage).__name__} must precede Lookup and Project")
        
        return records

    async def _lookup(self, records: List[dict], stage: Lookup) -> List[dict]:
        keys = coerce_references(records, stage)
        wanted = {key for key in keys if key is not None}
        targets = {}
        if wanted:
            column = getattr(stage.model, stage.foreign_field)
            result = await self._execute(select(stage.model).where(column.in_(wanted)))
            targets = {
                getattr(row, stage.foreign_field): row.to_dict()
                for row in result.scalars().all()
            }
        joined = join_records(records, keys, targets, stage)
        if len(joined) < len(records):
            logger.debug("Lookup %s dropped %d unresolved records", stage.as_field, len(records) - len(joined))
        return joined

    # Single-trip access used by operator endpoints

    async def get(self, trip_id: int) -> Optional[Trip]:
        result = await self._execute(select(Trip).where(Trip.id == trip_id))
        return result.scalar_one_or_none()

    async def insert(self, trip: Trip) -> Trip:
        self.db.add(trip)
        await self.commit()
        await bounded_store_call(lambda: self.db.refresh(trip), self.timeout)
        return trip

    async def patch(self, trip: Trip, fields: Mapping[str, Any]) -> Trip:
        """Apply a partial update to one trip (last write wins per field)."""
        for name, value in fields.items():
            setattr(trip, name, value)
        await self.commit()
        await bounded_store_call(lambda: self.db.refresh(trip), self.timeout)
        return trip
