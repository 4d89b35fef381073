"""
Driver sessions.

A DriverSession lives exactly as long as the driver's socket. The table is
process-local and rebuilt from live connections after a restart.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def iso_utc(value: datetime) -> str:
    """ISO-8601 in UTC with a Z suffix. Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class LocationSample:
    """A validated, timestamped location report."""
    latitude: float
    longitude: float
    timestamp: datetime
    received_at: datetime
    accuracy: Optional[float] = None

    def to_wire(self) -> Dict[str, Any]:
        return {
            "lat": self.latitude,
            "lng": self.longitude,
            "timestamp": iso_utc(self.timestamp),
            "accuracy": self.accuracy,
        }


@dataclass
class DriverSession:
    connection_id: str
    driver_id: str
    bus_id: str
    route_id: Optional[str] = None
    trip_id: Optional[int] = None
    is_active: bool = False
    last_location: Optional[LocationSample] = None
    registered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_public(self) -> Dict[str, Any]:
        """Projection served by the inspection API."""
        location = self.last_location.to_wire() if self.last_location else None
        return {
            "busId": self.bus_id,
            "driverId": self.driver_id,
            "route": self.route_id,
            "isActive": self.is_active,
            "tripId": self.trip_id,
            "lastLocation": location,
            "lastUpdate": location["timestamp"] if location else None,
        }


class DriverSessionTable:
    """Driver sessions keyed by connection id. Every mutation holds the lock."""

    def __init__(self):
        self._sessions: Dict[str, DriverSession] = {}
        self._lock = threading.Lock()

    def register(self, session: DriverSession) -> Optional[DriverSession]:
        """Insert or replace the session of a connection. Returns the replaced one."""
        with self._lock:
            previous = self._sessions.get(session.connection_id)
            self._sessions[session.connection_id] = session
            return previous

    def get(self, connection_id: str) -> Optional[DriverSession]:
        with self._lock:
            return self._sessions.get(connection_id)

    def remove(self, connection_id: str) -> Optional[DriverSession]:
        with self._lock:
            return self._sessions.pop(connection_id, None)

    def update_location(self, connection_id: str, sample: LocationSample) -> Optional[DriverSession]:
        """Last write wins."""
        with self._lock:
            session = self._sessions.get(connection_id)
            if session is not None:
                session.last_location = sample
            return session

    def set_active(self, connection_id: str, is_active: bool, trip_id: Optional[int] = None) -> Optional[DriverSession]:
        with self._lock:
            session = self._sessions.get(connection_id)
            if session is not None:
                session.is_active = is_active
                session.trip_id = trip_id
            return session

    def find_by_bus(self, bus_id: str) -> Optional[DriverSession]:
        """Most recently registered session for a bus."""
        with self._lock:
            matches = [s for s in self._sessions.values() if s.bus_id == str(bus_id)]
        if not matches:
            return None
        return max(matches, key=lambda s: s.registered_at)

    def all(self) -> List[DriverSession]:
        with self._lock:
            return list(self._sessions.values())

    def __len__(self):
        with self._lock:
            return len(self._sessions)
