"""
Relay Hub.

Single owner of the real-time state: driver sessions, viewer subscriptions
and open connections. Socket handlers feed frames to `dispatch`; every event
is handled as one step and its errors stay inside that step.

Driver session states:
    Unregistered -> Registered(inactive) -> Registered(active) on start-trip
    -> Registered(inactive) on end-trip; disconnect ends the session from any state.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from bus_relay.app.core.config import settings
from bus_relay.app.core.dependencies import verify_driver_token
from bus_relay.app.core.exceptions import (
    DriverAuthError, InvalidCoordinate, InvalidEvent, StoreUnavailable,
    TripNotActive, UnregisteredSender
)
from bus_relay.app.realtime.broadcaster import Broadcaster
from bus_relay.app.realtime.connection import Connection
from bus_relay.app.realtime.ingest import LocationIngest
from bus_relay.app.realtime.registry import SubscriptionRegistry
from bus_relay.app.realtime.sessions import DriverSession, DriverSessionTable, LocationSample, iso_utc
from bus_relay.app.schemas.events import (
    BusSubscription, DriverRegistration, EventEnvelope, RelayEvent
)
from bus_relay.app.services.trip_store import TripStore, trip_store

logger = logging.getLogger("bus_relay.realtime")


def _now_iso() -> str:
    return iso_utc(datetime.now(timezone.utc))


def _errors(exc: ValidationError) -> List[Dict[str, Any]]:
    return exc.errors(include_url=False, include_context=False, include_input=False)


class RelayHub:
    """Accepts driver and viewer events and fans location updates out."""

    def __init__(
        self,
        trip_store: Optional[TripStore] = None,
        queue_size: Optional[int] = None,
        reject_inactive_updates: Optional[bool] = None,
        require_driver_token: Optional[bool] = None
    ):
        self.trip_store = trip_store
        self.queue_size = queue_size if queue_size is not None else settings.outbound_queue_size
        self.require_driver_token = (
            require_driver_token if require_driver_token is not None else settings.require_driver_token
        )
        if reject_inactive_updates is None:
            reject_inactive_updates = settings.reject_inactive_updates

        self.sessions = DriverSessionTable()
        self.registry = SubscriptionRegistry()
        self.broadcaster = Broadcaster(self.registry)
        self.ingest = LocationIngest(self.sessions, trip_store, reject_inactive_updates)

        self._handlers = {
            RelayEvent.DRIVER_REGISTER: self.register_driver,
            RelayEvent.LOCATION_UPDATE: self.handle_location_update,
            RelayEvent.START_TRIP: self.start_trip,
            RelayEvent.END_TRIP: self.end_trip,
            RelayEvent.SUBSCRIBE_TO_BUS: self.subscribe,
            RelayEvent.UNSUBSCRIBE_FROM_BUS: self.unsubscribe,
        }

    # Connection lifecycle

    def connect(self, connection_id: Optional[str] = None) -> Connection:
        connection = Connection(queue_size=self.queue_size, connection_id=connection_id)
        self.broadcaster.attach(connection)
        logger.info("Client connected: %s", connection.id)
        return connection

    def disconnect(self, connection: Connection) -> Optional[DriverSession]:
        """
        Tear down everything owned by a connection.

        The connection stops receiving immediately, its subscriptions are
        dropped and, if it was a driver, its bus is announced offline.
        """
        connection.close()
        self.broadcaster.detach(connection.id)
        self.registry.unsubscribe_all(connection.id)
        session = self.sessions.remove(connection.id)

        if session is None:
            logger.info("Client disconnected: %s", connection.id)
            return None

        logger.info("Driver disconnected: %s (Bus: %s)", session.driver_id, session.bus_id)
        self._announce_offline(session)
        return session

    def _announce_offline(self, session: DriverSession) -> None:
        self.broadcaster.announce(RelayEvent.BUS_STATUS_UPDATE, {
            "busId": session.bus_id,
            "driverId": session.driver_id,
            "route": session.route_id,
            "status": "offline",
            "timestamp": _now_iso(),
        })

    async def _close_trip(self, trip_id: Optional[int]) -> None:
        if self.trip_store is None or trip_id is None:
            return
        try:
            await self.trip_store.close_trip(trip_id)
        except StoreUnavailable as exc:
            logger.error("Trip %s not closed in store: %s", trip_id, exc.message)

    # Event dispatch

    async def dispatch(self, connection: Connection, frame: Any) -> None:
        """Route one inbound frame. Never raises for bad input."""
        try:
            try:
                envelope = EventEnvelope.model_validate(frame)
            except ValidationError as exc:
                raise InvalidEvent("Unknown event or malformed frame", details={"errors": _errors(exc)}) from exc
            await self._handlers[envelope.event](connection, envelope.data)
        except UnregisteredSender as exc:
            logger.warning("Dropped %s from unregistered connection %s", exc.details.get("event"), connection.id)
        except (InvalidCoordinate, TripNotActive) as exc:
            logger.warning("Rejected location from connection %s: %s", connection.id, exc.message)
            connection.push(RelayEvent.LOCATION_REJECTED, exc.to_payload())
        except InvalidEvent as exc:
            logger.warning("Invalid frame from connection %s: %s", connection.id, exc.message)
            connection.push(RelayEvent.ERROR, exc.to_payload())
        except Exception:
            logger.exception("Unhandled error in event from connection %s", connection.id)
            connection.push(RelayEvent.ERROR, {
                "error_code": "ERR_INTERNAL_SERVER",
                "message": "An internal server error occurred",
                "details": {}
            })

    def _require_session(self, connection: Connection, event: str) -> DriverSession:
        session = self.sessions.get(connection.id)
        if session is None:
            raise UnregisteredSender(connection.id, event)
        return session

    # Driver events

    async def register_driver(self, connection: Connection, data: Any) -> Optional[DriverSession]:
        """
        Create the driver session of a connection; malformed data gets a negative ack.

        Registering again as the same driver and bus keeps the running trip.
        Registering as another driver or bus ends the previous session: its
        trip is closed and its bus is announced offline.
        """
        try:
            registration = DriverRegistration.model_validate(data)
            if self.require_driver_token:
                await verify_driver_token(registration.token, registration.driver_id)
        except ValidationError as exc:
            logger.warning("Rejected driver registration on %s: invalid data", connection.id)
            connection.push(RelayEvent.DRIVER_REGISTERED, {
                "success": False,
                "error": "Invalid registration data",
                "details": _errors(exc),
            })
            return None
        except DriverAuthError as exc:
            logger.warning("Rejected driver registration on %s: %s", connection.id, exc.message)
            connection.push(RelayEvent.DRIVER_REGISTERED, {"success": False, "error": exc.message})
            return None

        session = DriverSession(
            connection_id=connection.id,
            driver_id=registration.driver_id,
            bus_id=registration.bus_id,
            route_id=registration.route_id,
            trip_id=registration.trip_id,
        )

        previous = self.sessions.get(connection.id)
        if previous is not None:
            if (previous.driver_id, previous.bus_id) == (session.driver_id, session.bus_id):
                if session.trip_id is None:
                    session.trip_id = previous.trip_id
                    session.is_active = previous.is_active
                session.last_location = previous.last_location
            else:
                logger.info(
                    "Connection %s re-registered, ending session of driver %s (Bus: %s)",
                    connection.id, previous.driver_id, previous.bus_id
                )
                await self._close_trip(previous.trip_id)
                self._announce_offline(previous)

        self.sessions.register(session)
        logger.info("Driver registered: %s (Bus: %s)", session.driver_id, session.bus_id)

        connection.push(RelayEvent.DRIVER_REGISTERED, {
            "success": True,
            "driverId": session.driver_id,
            "busId": session.bus_id,
        })
        self.broadcaster.announce(RelayEvent.BUS_STATUS_UPDATE, {
            "busId": session.bus_id,
            "driverId": session.driver_id,
            "route": session.route_id,
            "status": "active",
            "timestamp": _now_iso(),
        })
        return session

    async def handle_location_update(self, connection: Connection, data: Any) -> LocationSample:
        """
        Ingest, fan out, then persist.

        Viewers are served before the store write so a slow or failing
        store never delays live updates.
        """
        session, sample = self.ingest.accept(connection.id, data)
        self.broadcaster.publish_location(session, sample)
        await self.ingest.persist(session, sample)
        return sample

    async def start_trip(self, connection: Connection, data: Any = None) -> DriverSession:
        session = self._require_session(connection, RelayEvent.START_TRIP)

        trip_id = session.trip_id
        if self.trip_store is not None and trip_id is None:
            try:
                trip = await self.trip_store.open_trip(session.driver_id, session.bus_id, session.route_id)
                trip_id = trip.id
            except StoreUnavailable as exc:
                logger.error("Trip for bus %s not recorded: %s", session.bus_id, exc.message)

        self.sessions.set_active(connection.id, True, trip_id)
        logger.info("Trip started: driver %s, bus %s, trip %s", session.driver_id, session.bus_id, trip_id)
        self.broadcaster.announce(RelayEvent.TRIP_STARTED, {
            "busId": session.bus_id,
            "driverId": session.driver_id,
            "route": session.route_id,
            "timestamp": _now_iso(),
        })
        return session

    async def end_trip(self, connection: Connection, data: Any = None) -> DriverSession:
        session = self._require_session(connection, RelayEvent.END_TRIP)

        trip_id = session.trip_id
        self.sessions.set_active(connection.id, False, None)
        await self._close_trip(trip_id)

        logger.info("Trip ended: driver %s, bus %s, trip %s", session.driver_id, session.bus_id, trip_id)
        self.broadcaster.announce(RelayEvent.TRIP_ENDED, {
            "busId": session.bus_id,
            "driverId": session.driver_id,
            "timestamp": _now_iso(),
        })
        return session

    # Viewer events

    @staticmethod
    def _parse_subscription(data: Any) -> BusSubscription:
        if isinstance(data, (str, int)) and not isinstance(data, bool):
            data = {"busId": data}
        try:
            return BusSubscription.model_validate(data)
        except ValidationError as exc:
            raise InvalidEvent("Invalid bus subscription", details={"errors": _errors(exc)}) from exc

    async def subscribe(self, connection: Connection, data: Any) -> str:
        subscription = self._parse_subscription(data)
        self.registry.subscribe(connection.id, subscription.bus_id)
        logger.info("Connection %s subscribed to bus %s", connection.id, subscription.bus_id)
        return subscription.bus_id

    async def unsubscribe(self, connection: Connection, data: Any) -> str:
        subscription = self._parse_subscription(data)
        self.registry.unsubscribe(connection.id, subscription.bus_id)
        logger.info("Connection %s unsubscribed from bus %s", connection.id, subscription.bus_id)
        return subscription.bus_id

    # Inspection snapshots

    def list_buses(self) -> List[Dict[str, Any]]:
        return [session.to_public() for session in self.sessions.all()]

    def get_bus(self, bus_id: str) -> Optional[Dict[str, Any]]:
        session = self.sessions.find_by_bus(bus_id)
        return session.to_public() if session else None

    def stats(self) -> Dict[str, int]:
        return {
            "active_drivers": len(self.sessions),
            "connections": self.broadcaster.connection_count(),
            "viewers": self.registry.viewer_count(),
        }


# Process-wide hub served by the socket endpoint
relay_hub = RelayHub(trip_store=trip_store)


def get_relay_hub() -> RelayHub:
    """FastAPI dependency for the Relay Hub."""
    return relay_hub
