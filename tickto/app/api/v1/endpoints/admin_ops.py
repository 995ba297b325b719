"""
Admin Operations API Endpoints.

Maintenance endpoints for the trip status cache.
"""

from fastapi import APIRouter, Depends

from tickto.app.core.guards import require_role
from tickto.app.models.enums import UserRole
from tickto.app.api.v1.endpoints.trip_availability import get_status_reconciler
from tickto.app.services.status_reconciler import StatusReconciler

router = APIRouter(prefix="/admin/ops", tags=["Admin - Ops"])


@router.post("/reconcile")
async def trigger_reconciliation(
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    reconciler: StatusReconciler = Depends(get_status_reconciler),
):
    """
    Force a status reconciliation pass.
    
    Returns per-status modified counts; a pass already running elsewhere is
    reported as skipped.
    """
    report = await reconciler.ensure_fresh(force=True)
    return report.to_dict()
