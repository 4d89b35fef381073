"""
Live Bus Endpoints.

Read-only snapshots of the relay's in-memory driver sessions.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status, Path

from bus_relay.app.realtime.hub import RelayHub, get_relay_hub
from bus_relay.app.schemas.bus import LiveBusResponse

router = APIRouter(tags=["Live Buses"])


@router.get("/buses", response_model=List[LiveBusResponse])
async def list_live_buses(hub: RelayHub = Depends(get_relay_hub)):
    """
    List every bus with a connected driver.

    Includes the last relayed location when one has been received.
    """
    return hub.list_buses()


@router.get("/bus/{bus_id}", response_model=LiveBusResponse)
async def get_live_bus(
    bus_id: str = Path(..., description="Bus ID"),
    hub: RelayHub = Depends(get_relay_hub)
):
    """Get one live bus, 404 when no driver is connected for it."""
    bus = hub.get_bus(bus_id)
    if bus is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Bus not found"
        )
    return bus
