"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from bus_relay.app.api.v1.endpoints import (
    live_buses, live_tracking, admin_ops, relay_socket
)

router = APIRouter()

# Real-time relay socket
router.include_router(relay_socket.router)

# Live snapshots from the relay's memory
router.include_router(live_buses.router)

# Stored trip location history
router.include_router(live_tracking.router)

# History maintenance
router.include_router(admin_ops.router)
