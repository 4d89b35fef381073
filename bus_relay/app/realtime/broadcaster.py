"""
Fan-out Broadcaster.

Delivers relay events to connection outboxes. Delivery is a non-blocking
enqueue per recipient; a full or closed outbox loses that one frame and
nobody else is affected.
"""

import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

from bus_relay.app.realtime.connection import Connection
from bus_relay.app.realtime.registry import SubscriptionRegistry
from bus_relay.app.realtime.sessions import DriverSession, LocationSample
from bus_relay.app.schemas.events import RelayEvent

logger = logging.getLogger("bus_relay.realtime.broadcast")


class Broadcaster:
    """Owns the table of open connections and pushes frames into them."""

    def __init__(self, registry: SubscriptionRegistry):
        self.registry = registry
        self._connections: Dict[str, Connection] = {}
        self._lock = threading.Lock()

    def attach(self, connection: Connection) -> None:
        with self._lock:
            self._connections[connection.id] = connection

    def detach(self, connection_id: str) -> Optional[Connection]:
        with self._lock:
            return self._connections.pop(connection_id, None)

    def get(self, connection_id: str) -> Optional[Connection]:
        with self._lock:
            return self._connections.get(connection_id)

    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    def _deliver(self, targets: List[Connection], event: str, data: Dict[str, Any]) -> int:
        delivered = 0
        for connection in targets:
            if connection.push(event, data):
                delivered += 1
            else:
                logger.warning("Dropped %s for connection %s (outbox full or closed)", event, connection.id)
        return delivered

    def send_to(self, connection_ids: Iterable[str], event: str, data: Dict[str, Any]) -> int:
        """Deliver to the given connections that are still open. Returns the delivered count."""
        with self._lock:
            targets = [self._connections[cid] for cid in connection_ids if cid in self._connections]
        return self._deliver(targets, event, data)

    def publish_location(self, session: DriverSession, sample: LocationSample) -> int:
        """Send bus-location-update to the bus's subscribers and to "all" subscribers."""
        data = {
            "busId": session.bus_id,
            "driverId": session.driver_id,
            "route": session.route_id,
            "location": sample.to_wire(),
        }
        return self.send_to(self.registry.recipients_for(session.bus_id), RelayEvent.BUS_LOCATION_UPDATE, data)

    def announce(self, event: str, data: Dict[str, Any]) -> int:
        """Send a status event to every open connection, subscribed or not."""
        with self._lock:
            targets = list(self._connections.values())
        return self._deliver(targets, event, data)
