"""
Maintenance operation schemas.
"""

from pydantic import BaseModel
from typing import List


class PruneResponse(BaseModel):
    """Outcome of one history pruning sweep."""
    trips_scanned: int
    rows_deleted: int
    failed_trip_ids: List[int]
    cutoff: str


class LocationCountResponse(BaseModel):
    """Row count of the location history table."""
    count: int
