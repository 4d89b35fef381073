"""
Subscription Registry.

Maps bus id -> viewer connection ids, with "all" as the wildcard topic.
"""

import threading
from typing import Dict, Set

ALL_BUSES = "all"


class SubscriptionRegistry:
    """
    Viewer subscriptions keyed by bus id.

    A reverse index per connection makes disconnect cleanup proportional to
    the connection's own subscriptions. Both maps change under one lock.
    """

    def __init__(self):
        self._by_bus: Dict[str, Set[str]] = {}
        self._by_connection: Dict[str, Set[str]] = {}
        self._lock = threading.Lock()

    def subscribe(self, connection_id: str, bus_id: str) -> bool:
        """Add (connection, bus). Returns False if it was already there."""
        bus_id = str(bus_id)
        with self._lock:
            members = self._by_bus.setdefault(bus_id, set())
            if connection_id in members:
                return False
            members.add(connection_id)
            self._by_connection.setdefault(connection_id, set()).add(bus_id)
            return True

    def unsubscribe(self, connection_id: str, bus_id: str) -> bool:
        bus_id = str(bus_id)
        with self._lock:
            members = self._by_bus.get(bus_id)
            if not members or connection_id not in members:
                return False
            members.discard(connection_id)
            if not members:
                del self._by_bus[bus_id]
            buses = self._by_connection.get(connection_id)
            if buses is not None:
                buses.discard(bus_id)
                if not buses:
                    del self._by_connection[connection_id]
            return True

    def unsubscribe_all(self, connection_id: str) -> Set[str]:
        """Drop every subscription of a connection. Returns the bus ids it had."""
        with self._lock:
            buses = self._by_connection.pop(connection_id, set())
            for bus_id in buses:
                members = self._by_bus.get(bus_id)
                if members is None:
                    continue
                members.discard(connection_id)
                if not members:
                    del self._by_bus[bus_id]
            return buses

    def subscribers_of(self, bus_id: str) -> Set[str]:
        """Snapshot of the connections subscribed to one bus id."""
        with self._lock:
            return set(self._by_bus.get(str(bus_id), ()))

    def all_subscribers(self) -> Set[str]:
        return self.subscribers_of(ALL_BUSES)

    def recipients_for(self, bus_id: str) -> Set[str]:
        """Subscribers of the bus plus subscribers of "all", without duplicates."""
        with self._lock:
            return set(self._by_bus.get(str(bus_id), ())) | set(self._by_bus.get(ALL_BUSES, ()))

    def subscriptions_of(self, connection_id: str) -> Set[str]:
        with self._lock:
            return set(self._by_connection.get(connection_id, ()))

    def viewer_count(self) -> int:
        with self._lock:
            return len(self._by_connection)
