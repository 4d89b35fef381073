"""
Real-time event schemas.

Every socket frame is an envelope {"event": ..., "data": ...}. The envelope is
validated first, then the payload is validated against the model for that
event before any relay state is touched.
"""

from pydantic import BaseModel, Field, AliasChoices
from datetime import datetime
from typing import Any, Literal, Optional


class RelayEvent:
    """Event names on the wire."""
    # Inbound
    DRIVER_REGISTER = "driver-register"
    LOCATION_UPDATE = "location-update"
    START_TRIP = "start-trip"
    END_TRIP = "end-trip"
    SUBSCRIBE_TO_BUS = "subscribe-to-bus"
    UNSUBSCRIBE_FROM_BUS = "unsubscribe-from-bus"

    # Outbound
    DRIVER_REGISTERED = "driver-registered"
    BUS_LOCATION_UPDATE = "bus-location-update"
    BUS_STATUS_UPDATE = "bus-status-update"
    TRIP_STARTED = "trip-started"
    TRIP_ENDED = "trip-ended"
    LOCATION_REJECTED = "location-rejected"
    ERROR = "error"


InboundEventName = Literal[
    "driver-register",
    "location-update",
    "start-trip",
    "end-trip",
    "subscribe-to-bus",
    "unsubscribe-from-bus",
]


class EventEnvelope(BaseModel):
    """Inbound socket frame."""
    event: InboundEventName
    data: Any = None


class DriverRegistration(BaseModel):
    """Payload of driver-register."""
    driver_id: str = Field(..., alias="driverId", min_length=1)
    bus_id: str = Field(..., alias="busId", min_length=1)
    route_id: Optional[str] = Field(None, validation_alias=AliasChoices("routeId", "route"))
    trip_id: Optional[int] = Field(None, alias="tripId")
    token: Optional[str] = None

    class Config:
        populate_by_name = True
        coerce_numbers_to_str = True


class LocationReport(BaseModel):
    """Payload of location-update."""
    latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False)
    accuracy: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    timestamp: Optional[datetime] = None  # ISO-8601 or epoch; receipt time when absent


class BusSubscription(BaseModel):
    """Payload of subscribe-to-bus / unsubscribe-from-bus."""
    bus_id: str = Field(..., alias="busId", min_length=1)

    class Config:
        populate_by_name = True
        coerce_numbers_to_str = True
