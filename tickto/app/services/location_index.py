"""
Location autocomplete.

Prefix lookup over the free-text ``origin`` and ``destination`` fields,
returning a bounded list of distinct values.
"""

from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession

from tickto.app.core.config import settings
from tickto.app.core.exceptions import ValidationError
from tickto.app.db.pipeline import Group, Limit, Match, Project, Sort
from tickto.app.db.repository import TripRepository
from tickto.app.domain.trips.values import sanitize_search_text
from tickto.app.models.trip import Trip
from tickto.app.models.trip_enums import LocationDirection

DIRECTION_FIELDS = {
    LocationDirection.FROM: "origin",
    LocationDirection.TO: "destination",
}


def resolve_search(
    from_text: Optional[str],
    to_text: Optional[str],
    min_length: int,
) -> Tuple[LocationDirection, str]:
    """
    Validate autocomplete parameters before any store access.
    
    Exactly one of ``from_text``/``to_text`` must be given, and it must keep at
    least ``min_length`` characters after sanitizing.
    
    Raises:
        ValidationError: On missing, duplicated or too-short input
    """
    has_from = bool(from_text)
    has_to = bool(to_text)
    if has_from == has_to:
        raise ValidationError(
            "Provide exactly one of 'from' or 'to'",
            details={"from": from_text, "to": to_text},
        )
    
    direction = LocationDirection.FROM if has_from else LocationDirection.TO
    text = sanitize_search_text(from_text if has_from else to_text)
    if len(text) < min_length:
        raise ValidationError(
            f"Search text must be at least {min_length} characters",
            details={direction.value: from_text if has_from else to_text},
        )
    return direction, text


def build_location_pipeline(direction: LocationDirection, text: str, limit: int) -> list:
    field_name = DIRECTION_FIELDS[direction]
    # Stored values may carry padding; match and dedupe on the trimmed text
    trimmed = func.trim(getattr(Trip, field_name))
    return [
        # Literal prefix: LIKE wildcards in the text are escaped
        Match(trimmed.istartswith(text, autoescape=True)),
        Group(field_name, expression=trimmed),
        Sort(field_name),
        Limit(limit),
        Project(field_name),
    ]


class LocationIndex:
    def __init__(self, db: AsyncSession, limit: Optional[int] = None, min_length: Optional[int] = None):
        self.repository = TripRepository(db)
        self.limit = limit or settings.autocomplete_limit
        self.min_length = min_length or settings.autocomplete_min_length

    async def suggest(self, from_text: Optional[str] = None, to_text: Optional[str] = None) -> List[str]:
        direction, text = resolve_search(from_text, to_text, self.min_length)
        records = await self.repository.aggregate(
            build_location_pipeline(direction, text, self.limit)
        )
        field_name = DIRECTION_FIELDS[direction]
        return [record[field_name] for record in records]
