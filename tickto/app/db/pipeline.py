"""
Aggregation pipeline stages for the trip store.

A pipeline is an ordered list of stages. Stages before the first ``Lookup``
or ``Project`` compile into a single SELECT; the rest run over the fetched
records, with each ``Lookup`` resolving all of its references in one batched
query. Execution lives in ``TripRepository.aggregate``.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import Select, func, select

from tickto.app.core.exceptions import ReferenceCoercionError
from tickto.app.domain.trips.values import coerce_reference

logger = logging.getLogger("tickto.pipeline")


class PipelineError(ValueError):
    """Raised for stage sequences the store cannot execute."""


class Match:
    """Keep rows satisfying every SQL criterion."""

    def __init__(self, *criteria):
        self.criteria = tuple(criteria)

    def __repr__(self):
        return f"Match({len(self.criteria)} criteria)"


@dataclass(frozen=True)
class Group:
    """
    Group rows by one field; each output record is ``{key: value, "count": n}``.
    
    ``expression`` groups on a derived value (e.g. the trimmed column) that is
    still reported under ``key``.
    """
    key: str
    expression: Any = field(default=None, compare=False)


@dataclass(frozen=True)
class Sort:
    """Order by ``field``; ties are broken by ``then_by``, always ascending."""
    field: str
    descending: bool = False
    then_by: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Limit:
    count: int


class Project:
    """Keep only the named fields, optionally renaming some of them."""

    def __init__(self, *fields: str, rename: Optional[Mapping[str, str]] = None):
        self.fields = tuple(fields)
        self.rename = dict(rename or {})

    def apply(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return {self.rename.get(name, name): record.get(name) for name in self.fields}

    def __repr__(self):
        return f"Project({', '.join(self.fields)})"


@dataclass(frozen=True)
class Lookup:
    """
    Join each record to a row of ``model`` through ``local_field``.
    
    ``coerce`` turns the stored value into the target key type; records whose
    value cannot be coerced or does not resolve are dropped when ``unwind``
    is set, otherwise they carry ``None`` under ``as_field``.
    """
    model: Any
    local_field: str
    as_field: str
    foreign_field: str = "id"
    coerce: Callable[[Any], Any] = coerce_reference
    unwind: bool = True


def split_pipeline(stages: Sequence) -> Tuple[list, list]:
    """Split into the SQL-compiled prefix and the record-level remainder."""
    for index, stage in enumerate(stages):
        if isinstance(stage, (Lookup, Project)):
            return list(stages[:index]), list(stages[index:])
    return list(stages), []


def compile_stages(model, stages: Sequence) -> Tuple[Select, Optional[str]]:
    """
    Compile SQL-side stages into one SELECT.
    
    Returns the statement and the group key (None when rows are entities).
    """
    stmt = select(model)
    group_key = None
    grouped = None
    limited = False
    
    def order_expression(name):
        if group_key is not None and name == "count":
            return func.count()
        if group_key is not None and name == group_key:
            return grouped
        return getattr(model, name)
    
    for stage in stages:
        if isinstance(stage, Match):
            if group_key is not None or limited:
                raise PipelineError("Match must precede Group and Limit")
            stmt = stmt.where(*stage.criteria)
        elif isinstance(stage, Group):
            if group_key is not None or limited:
                raise PipelineError("Group must precede Limit and appear once")
            grouped = stage.expression if stage.expression is not None else getattr(model, stage.key)
            stmt = stmt.with_only_columns(
                grouped.label(stage.key), func.count().label("count")
            ).group_by(grouped)
            group_key = stage.key
        elif isinstance(stage, Sort):
            expression = order_expression(stage.field)
            stmt = stmt.order_by(
                expression.desc() if stage.descending else expression.asc(),
                *[order_expression(name).asc() for name in stage.then_by],
            )
        elif isinstance(stage, Limit):
            stmt = stmt.limit(stage.count)
            limited = True
        else:
            raise PipelineError(f"Unsupported SQL stage: {stage!r}")
    
    return stmt, group_key


def sort_records(records: List[dict], stage: Sort) -> List[dict]:
    ordered = list(records)
    # Stable sorts, least significant key first
    for name in reversed(stage.then_by):
        ordered.sort(key=lambda r: (r.get(name) is None, r.get(name)))
    # None sorts last in both directions
    present = [r for r in ordered if r.get(stage.field) is not None]
    missing = [r for r in ordered if r.get(stage.field) is None]
    present.sort(key=lambda r: r[stage.field], reverse=stage.descending)
    return present + missing


def coerce_references(records: List[dict], stage: Lookup) -> List[Optional[Any]]:
    """Coerced key per record, ``None`` where the stored value is unusable."""
    keys = []
    for record in records:
        raw = record.get(stage.local_field)
        try:
            keys.append(stage.coerce(raw))
        except ReferenceCoercionError:
            logger.debug("Dropping record %s: unusable %s %r", record.get("id"), stage.local_field, raw)
            keys.append(None)
    return keys


def join_records(records: List[dict], keys: List[Optional[Any]], targets: Dict[Any, dict], stage: Lookup) -> List[dict]:
    joined = []
    for record, key in zip(records, keys):
        target = targets.get(key) if key is not None else None
        if target is None and stage.unwind:
            continue
        joined.append({**record, stage.as_field: target})
    return joined
