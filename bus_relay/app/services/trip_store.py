"""
Trip Store service.

Durable trip records and their location history. The relay only reaches the
database through this class; every driver error is re-raised as
StoreUnavailable so callers can log and keep relaying.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from bus_relay.app.core.exceptions import StoreUnavailable
from bus_relay.app.db.session import AsyncSessionLocal
from bus_relay.app.models.trip import Trip
from bus_relay.app.models.trip_location import TripLocation
from bus_relay.app.models.trip_enums import TripStatus

logger = logging.getLogger("bus_relay.store")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TripStore:
    """
    Append/query access to trips and trip_locations.

    Each call runs in its own session and transaction.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def open_trip(self, driver_id: str, bus_number: str, route_id: Optional[str] = None) -> Trip:
        """
        Return the active trip for (driver, bus), creating one if none is open.

        Args:
            driver_id: Driver starting the trip
            bus_number: Bus being driven
            route_id: Route served, if known

        Returns:
            The active Trip

        Raises:
            StoreUnavailable: If the database cannot be reached
        """
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Trip).where(
                        Trip.driver_id == driver_id,
                        Trip.bus_number == bus_number,
                        Trip.status == TripStatus.ACTIVE
                    ).order_by(Trip.id.desc()).limit(1)
                )
                trip = result.scalar_one_or_none()
                if trip:
                    return trip

                trip = Trip(
                    driver_id=driver_id,
                    bus_number=bus_number,
                    route_id=route_id,
                    status=TripStatus.ACTIVE,
                    start_time=utc_now()
                )
                session.add(trip)
                await session.commit()
                await session.refresh(trip)
                logger.info("Opened trip %s for driver %s on bus %s", trip.id, driver_id, bus_number)
                return trip
        except (SQLAlchemyError, OSError) as exc:
            raise StoreUnavailable("open_trip", exc) from exc

    async def close_trip(self, trip_id: int) -> Optional[Trip]:
        """
        Mark a trip as ended. Ending an already ended trip changes nothing.

        Returns:
            The Trip, or None if it does not exist
        """
        try:
            async with self._session_factory() as session:
                trip = await session.get(Trip, trip_id)
                if trip is None:
                    return None
                if trip.status != TripStatus.ENDED:
                    trip.status = TripStatus.ENDED
                    trip.end_time = utc_now()
                    await session.commit()
                    await session.refresh(trip)
                    logger.info("Closed trip %s", trip_id)
                return trip
        except (SQLAlchemyError, OSError) as exc:
            raise StoreUnavailable("close_trip", exc) from exc

    async def get_trip(self, trip_id: int) -> Optional[Trip]:
        try:
            async with self._session_factory() as session:
                return await session.get(Trip, trip_id)
        except (SQLAlchemyError, OSError) as exc:
            raise StoreUnavailable("get_trip", exc) from exc

    async def append_location(
        self,
        trip_id: int,
        latitude: float,
        longitude: float,
        recorded_at: datetime,
        accuracy_meters: Optional[float] = None
    ) -> TripLocation:
        """Append one sample to a trip's history. Order is not checked."""
        try:
            async with self._session_factory() as session:
                row = TripLocation(
                    trip_id=trip_id,
                    latitude=latitude,
                    longitude=longitude,
                    accuracy_meters=accuracy_meters,
                    recorded_at=recorded_at
                )
                session.add(row)
                await session.commit()
                await session.refresh(row)
                return row
        except (SQLAlchemyError, OSError) as exc:
            raise StoreUnavailable("append_location", exc) from exc

    async def location_history(self, trip_id: int, limit: int = 50) -> List[TripLocation]:
        """Stored samples of a trip, newest first."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(TripLocation).where(
                        TripLocation.trip_id == trip_id
                    ).order_by(TripLocation.recorded_at.desc(), TripLocation.id.desc()).limit(limit)
                )
                return list(result.scalars().all())
        except (SQLAlchemyError, OSError) as exc:
            raise StoreUnavailable("location_history", exc) from exc

    async def latest_location(self, trip_id: int) -> Optional[TripLocation]:
        history = await self.location_history(trip_id, limit=1)
        return history[0] if history else None

    async def latest_location_for_bus(self, bus_number: str) -> Optional[TripLocation]:
        """Newest sample recorded by any trip of the bus, ended or not."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(TripLocation).join(Trip, Trip.id == TripLocation.trip_id).where(
                        Trip.bus_number == bus_number
                    ).order_by(TripLocation.recorded_at.desc(), TripLocation.id.desc()).limit(1)
                )
                return result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as exc:
            raise StoreUnavailable("latest_location_for_bus", exc) from exc

    async def ended_trip_ids(self, ended_before: datetime) -> List[int]:
        """IDs of ended trips whose end time is older than the cutoff."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Trip.id).where(
                        Trip.status == TripStatus.ENDED,
                        Trip.end_time.is_not(None),
                        Trip.end_time < ended_before
                    ).order_by(Trip.id)
                )
                return list(result.scalars().all())
        except (SQLAlchemyError, OSError) as exc:
            raise StoreUnavailable("ended_trip_ids", exc) from exc

    async def prune_trip_history(self, trip_id: int) -> int:
        """
        Delete every sample of a trip except the most recent one.

        The most recent sample is the one with the latest recorded_at, ties
        broken by the highest id. Running this twice deletes nothing the
        second time.

        Returns:
            Number of rows deleted
        """
        try:
            async with self._session_factory() as session:
                keep_result = await session.execute(
                    select(TripLocation.id).where(
                        TripLocation.trip_id == trip_id
                    ).order_by(TripLocation.recorded_at.desc(), TripLocation.id.desc()).limit(1)
                )
                keep_id = keep_result.scalar_one_or_none()
                if keep_id is None:
                    return 0

                result = await session.execute(
                    delete(TripLocation).where(
                        TripLocation.trip_id == trip_id,
                        TripLocation.id != keep_id
                    )
                )
                await session.commit()
                return result.rowcount or 0
        except (SQLAlchemyError, OSError) as exc:
            raise StoreUnavailable("prune_trip_history", exc) from exc

    async def count_locations(self) -> int:
        """Total number of stored location samples."""
        try:
            async with self._session_factory() as session:
                return await session.scalar(select(func.count(TripLocation.id))) or 0
        except (SQLAlchemyError, OSError) as exc:
            raise StoreUnavailable("count_locations", exc) from exc


# Store bound to the application's engine
trip_store = TripStore(AsyncSessionLocal)


def get_trip_store() -> TripStore:
    """FastAPI dependency for the Trip Store."""
    return trip_store
