"""
Trip and location history schemas for the inspection API.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional

from bus_relay.app.models.trip_enums import TripStatus


class TripResponse(BaseModel):
    """Schema for trip response."""
    id: int
    driver_id: str
    bus_number: str
    route_id: Optional[str]
    status: TripStatus
    start_time: datetime
    end_time: Optional[datetime]

    class Config:
        from_attributes = True


class TripLocationResponse(BaseModel):
    """GPS location response."""
    id: int
    trip_id: int
    latitude: float
    longitude: float
    accuracy_meters: Optional[float]
    recorded_at: datetime

    class Config:
        from_attributes = True


class TripLocationHistoryResponse(BaseModel):
    """Location history of one trip, newest first."""
    trip: TripResponse
    locations: List[TripLocationResponse]
    total_locations: int


class BusLatestLocationResponse(BaseModel):
    """Most recent stored sample for a bus, whatever the trip status."""
    bus_number: str
    trip_id: int
    location: TripLocationResponse
