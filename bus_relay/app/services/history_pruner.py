"""
History Pruner.

Periodic sweep that shrinks the location history of ended trips to their
last known position once the grace period has passed.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from bus_relay.app.core.config import settings
from bus_relay.app.core.exceptions import PrunerCycleFailure, StoreUnavailable
from bus_relay.app.services.trip_store import TripStore, trip_store, utc_now

logger = logging.getLogger("bus_relay.pruner")


@dataclass
class PruneResult:
    """Outcome of one sweep."""
    cutoff: datetime
    trips_scanned: int = 0
    rows_deleted: int = 0
    failed_trip_ids: List[int] = field(default_factory=list)


class HistoryPruner:
    """
    Deletes all but the latest sample of every trip that ended before
    now - grace_period.

    A sweep commits per trip, so an interrupted sweep is simply finished by
    the next one; trips already reduced to one sample delete nothing.
    """

    def __init__(self, store: TripStore, grace_period: timedelta, interval_seconds: float):
        self.store = store
        self.grace_period = grace_period
        self.interval_seconds = interval_seconds

    async def sweep(self, now: Optional[datetime] = None, grace_period: Optional[timedelta] = None) -> PruneResult:
        """
        Run one pruning pass.

        Args:
            now: Reference time, defaults to the current UTC time
            grace_period: Overrides the configured grace period for this pass

        Returns:
            PruneResult with per-sweep counters and the trips that failed

        Raises:
            StoreUnavailable: If the candidate trips cannot be listed
        """
        cutoff = (now or utc_now()) - (grace_period if grace_period is not None else self.grace_period)
        trip_ids = await self.store.ended_trip_ids(cutoff)
        result = PruneResult(cutoff=cutoff, trips_scanned=len(trip_ids))

        for trip_id in trip_ids:
            try:
                deleted = await self.store.prune_trip_history(trip_id)
            except Exception as exc:
                failure = PrunerCycleFailure(trip_id, exc)
                logger.error("%s: %s", failure.message, exc)
                result.failed_trip_ids.append(trip_id)
                continue
            if deleted:
                logger.debug("Pruned %s samples from trip %s", deleted, trip_id)
            result.rows_deleted += deleted

        return result

    async def run_once(self) -> PruneResult:
        result = await self.sweep()
        if result.rows_deleted > 0:
            logger.info(
                "Pruned %s location samples from %s ended trips (cutoff %s)",
                result.rows_deleted, result.trips_scanned, result.cutoff.isoformat()
            )
        if result.failed_trip_ids:
            logger.warning("Pruning failed for trips %s, retrying next cycle", result.failed_trip_ids)

        remaining = await self.store.count_locations()
        logger.info("Current location records in database: %s", remaining)
        return result

    async def run_forever(self) -> None:
        """Sweep every interval until cancelled. Failures wait for the next cycle."""
        logger.info(
            "History pruner started (every %ss, grace period %s)",
            self.interval_seconds, self.grace_period
        )
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except StoreUnavailable as exc:
                logger.error("History pruning skipped: %s", exc.message)
            except Exception:
                logger.exception("History pruning cycle crashed")


history_pruner = HistoryPruner(
    trip_store,
    grace_period=timedelta(hours=settings.prune_grace_period_hours),
    interval_seconds=settings.prune_interval_seconds,
)


def get_history_pruner() -> HistoryPruner:
    """FastAPI dependency for the History Pruner."""
    return history_pruner
