"""
Admin Operations API Endpoints.

Manual triggers and counters for location history maintenance.
"""

from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query

from bus_relay.app.models.enums import UserRole
from bus_relay.app.core.guards import require_role
from bus_relay.app.realtime.sessions import iso_utc
from bus_relay.app.schemas.ops import LocationCountResponse, PruneResponse
from bus_relay.app.services.history_pruner import HistoryPruner, get_history_pruner
from bus_relay.app.services.trip_store import TripStore, get_trip_store

router = APIRouter(prefix="/admin/ops", tags=["Admin - Ops"])


@router.post("/prune", response_model=PruneResponse)
async def trigger_history_prune(
    grace_hours: Optional[float] = Query(None, ge=0, description="Override the configured grace period"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    pruner: HistoryPruner = Depends(get_history_pruner)
):
    """
    Run one history pruning sweep now.

    Ended trips older than the grace period keep only their latest sample.
    Returns 503 (ERR_STORE_001) when the candidate trips cannot be listed.
    """
    grace_period = timedelta(hours=grace_hours) if grace_hours is not None else None
    result = await pruner.sweep(grace_period=grace_period)

    return PruneResponse(
        trips_scanned=result.trips_scanned,
        rows_deleted=result.rows_deleted,
        failed_trip_ids=result.failed_trip_ids,
        cutoff=iso_utc(result.cutoff)
    )


@router.get("/location-count", response_model=LocationCountResponse)
async def get_location_count(
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    store: TripStore = Depends(get_trip_store)
):
    """Count stored location samples across all trips."""
    return LocationCountResponse(count=await store.count_locations())
