"""
Location Ingest.

Turns a raw location-update payload from a registered driver into a
LocationSample, records it as the session's last location and appends it to
the trip history when a trip is bound.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Tuple

from pydantic import ValidationError

from bus_relay.app.core.exceptions import (
    InvalidCoordinate, StoreUnavailable, TripNotActive, UnregisteredSender
)
from bus_relay.app.realtime.sessions import DriverSession, DriverSessionTable, LocationSample
from bus_relay.app.schemas.events import LocationReport, RelayEvent
from bus_relay.app.services.trip_store import TripStore

logger = logging.getLogger("bus_relay.realtime.ingest")


def parse_location_report(payload: Any, received_at: Optional[datetime] = None) -> LocationSample:
    """
    Validate a raw report.

    Raises:
        InvalidCoordinate: payload is not an object, or a coordinate is missing,
            non-finite or out of range, or accuracy is negative
    """
    if not isinstance(payload, dict):
        raise InvalidCoordinate(
            "Location report must be an object",
            details={"type": type(payload).__name__}
        )
    try:
        report = LocationReport.model_validate(payload)
    except ValidationError as exc:
        raise InvalidCoordinate(
            details={"errors": exc.errors(include_url=False, include_context=False, include_input=False)}
        ) from exc

    received_at = received_at or datetime.now(timezone.utc)
    timestamp = report.timestamp or received_at
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    # Stored as UTC; SQLite drops offsets instead of converting them
    timestamp = timestamp.astimezone(timezone.utc)

    return LocationSample(
        latitude=report.latitude,
        longitude=report.longitude,
        accuracy=report.accuracy,
        timestamp=timestamp,
        received_at=received_at,
    )


class LocationIngest:
    """
    Validation and recording of driver location reports.

    No deduplication, rate limiting or accuracy filtering happens here.
    """

    def __init__(
        self,
        sessions: DriverSessionTable,
        trip_store: Optional[TripStore] = None,
        reject_inactive_updates: bool = False
    ):
        self.sessions = sessions
        self.trip_store = trip_store
        self.reject_inactive_updates = reject_inactive_updates

    def accept(
        self,
        connection_id: str,
        payload: Any,
        received_at: Optional[datetime] = None
    ) -> Tuple[DriverSession, LocationSample]:
        """
        Validate a report and make it the session's last location.

        Nothing is mutated when this raises.

        Raises:
            UnregisteredSender: no driver session on this connection
            InvalidCoordinate: malformed report
            TripNotActive: inactive session while inactive updates are rejected
        """
        session = self.sessions.get(connection_id)
        if session is None:
            raise UnregisteredSender(connection_id, RelayEvent.LOCATION_UPDATE)

        sample = parse_location_report(payload, received_at)

        if self.reject_inactive_updates and not session.is_active:
            raise TripNotActive(session.bus_id)

        self.sessions.update_location(connection_id, sample)
        return session, sample

    async def persist(self, session: DriverSession, sample: LocationSample) -> bool:
        """
        Append the sample to the session's trip, if any.

        Store failures are logged and reported as False; live relaying goes on.
        """
        if self.trip_store is None or session.trip_id is None:
            return False
        try:
            await self.trip_store.append_location(
                trip_id=session.trip_id,
                latitude=sample.latitude,
                longitude=sample.longitude,
                accuracy_meters=sample.accuracy,
                recorded_at=sample.timestamp,
            )
        except StoreUnavailable as exc:
            logger.error(
                "Location for trip %s not persisted: %s", session.trip_id, exc.message
            )
            return False
        return True
