"""
Trip Location History Endpoints.

Stored breadcrumb trails, as opposed to the live snapshots of live_buses.
Store outages surface as 503 through the global AppException handler.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Path, Query

from bus_relay.app.core.config import settings
from bus_relay.app.models.trip import Trip
from bus_relay.app.schemas.trip import (
    BusLatestLocationResponse, TripLocationHistoryResponse, TripLocationResponse, TripResponse
)
from bus_relay.app.services.trip_store import TripStore, get_trip_store

router = APIRouter(tags=["Trip Location History"])


async def _get_trip_or_404(store: TripStore, trip_id: int) -> Trip:
    trip = await store.get_trip(trip_id)
    if not trip:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Trip not found"
        )
    return trip


@router.get("/trips/{trip_id}/locations", response_model=TripLocationHistoryResponse)
async def get_trip_locations(
    trip_id: int = Path(..., description="Trip ID"),
    limit: int = Query(settings.location_history_limit, ge=1, le=1000),
    store: TripStore = Depends(get_trip_store)
):
    """
    Get the stored location history of a trip, newest first.
    """
    trip = await _get_trip_or_404(store, trip_id)
    locations = await store.location_history(trip_id, limit=limit)

    return TripLocationHistoryResponse(
        trip=TripResponse.model_validate(trip),
        locations=[TripLocationResponse.model_validate(loc) for loc in locations],
        total_locations=len(locations)
    )


@router.get("/trips/{trip_id}/locations/latest", response_model=TripLocationResponse)
async def get_trip_latest_location(
    trip_id: int = Path(..., description="Trip ID"),
    store: TripStore = Depends(get_trip_store)
):
    """Get the most recent stored location of a trip."""
    await _get_trip_or_404(store, trip_id)

    location = await store.latest_location(trip_id)
    if not location:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No locations recorded for this trip"
        )
    return TripLocationResponse.model_validate(location)


@router.get("/buses/{bus_number}/latest-location", response_model=BusLatestLocationResponse)
async def get_bus_latest_location(
    bus_number: str = Path(..., description="Bus number"),
    store: TripStore = Depends(get_trip_store)
):
    """
    Get the most recent stored location of a bus, whatever the trip status.

    Useful when no driver is connected and the live snapshot is empty.
    """
    location = await store.latest_location_for_bus(bus_number)
    if not location:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No locations recorded for this bus"
        )
    return BusLatestLocationResponse(
        bus_number=bus_number,
        trip_id=location.trip_id,
        location=TripLocationResponse.model_validate(location)
    )
