"""
Live bus projections served from the relay's in-memory session table.
"""

from pydantic import BaseModel, Field
from typing import Optional


class LiveLocation(BaseModel):
    """Last accepted location of a bus."""
    lat: float
    lng: float
    timestamp: str
    accuracy: Optional[float] = None


class LiveBusResponse(BaseModel):
    """Public projection of a DriverSession."""
    bus_id: str = Field(..., alias="busId")
    driver_id: str = Field(..., alias="driverId")
    route: Optional[str] = None
    is_active: bool = Field(..., alias="isActive")
    trip_id: Optional[int] = Field(None, alias="tripId")
    last_location: Optional[LiveLocation] = Field(None, alias="lastLocation")
    last_update: Optional[str] = Field(None, alias="lastUpdate")

    class Config:
        populate_by_name = True
