"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from tickto.app.api.v1.endpoints import (
    trip_availability, locations, operator, admin_ops
)

router = APIRouter()

# Public search endpoints
router.include_router(trip_availability.router)
router.include_router(locations.router)

# Operator trip and vehicle management
router.include_router(operator.router)

# Maintenance
router.include_router(admin_ops.router)
