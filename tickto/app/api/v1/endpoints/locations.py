"""
Location Autocomplete API Endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tickto.app.db.session import get_db
from tickto.app.services.location_index import LocationIndex

router = APIRouter(tags=["Locations"])


@router.get("/locations", response_model=List[str])
async def suggest_locations(
    from_: Optional[str] = Query(None, alias="from", description="Origin prefix"),
    to: Optional[str] = Query(None, description="Destination prefix"),
    db: AsyncSession = Depends(get_db),
):
    """
    Suggest up to 10 distinct origins (``from``) or destinations (``to``)
    starting with the given text. Exactly one parameter must be supplied.
    """
    return await LocationIndex(db).suggest(from_text=from_, to_text=to)
