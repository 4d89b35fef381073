"""
Relay WebSocket endpoint.

Drivers and viewers share one socket route; the events a client sends decide
its role. Frames are JSON envelopes: {"event": "<name>", "data": {...}}.
"""

import asyncio
import json
import logging
from contextlib import suppress

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from bus_relay.app.core.exceptions import InvalidEvent
from bus_relay.app.realtime.connection import Connection
from bus_relay.app.realtime.hub import RelayHub, get_relay_hub
from bus_relay.app.schemas.events import RelayEvent

logger = logging.getLogger("bus_relay.realtime")

router = APIRouter(tags=["Relay Socket"])


async def _pump_outbox(websocket: WebSocket, connection: Connection) -> None:
    """Write queued frames to the socket in order until it goes away."""
    while True:
        frame = await connection.outbox.get()
        try:
            await websocket.send_json(frame)
        except (WebSocketDisconnect, RuntimeError):
            return


@router.websocket("/ws")
async def relay_socket(websocket: WebSocket, hub: RelayHub = Depends(get_relay_hub)):
    """
    Bidirectional relay socket.

    Inbound frames are handled one at a time in arrival order. Outbound
    frames are written by a separate task so a client that reads slowly
    never holds up the hub.
    """
    await websocket.accept()
    connection = hub.connect()
    writer = asyncio.create_task(_pump_outbox(websocket, connection))

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            raw = message.get("text")
            if raw is None:
                error = InvalidEvent("Binary frames are not supported")
                connection.push(RelayEvent.ERROR, error.to_payload())
                continue
            try:
                frame = json.loads(raw)
            except ValueError:
                error = InvalidEvent("Frame is not valid JSON")
                connection.push(RelayEvent.ERROR, error.to_payload())
                continue
            await hub.dispatch(connection, frame)
    finally:
        hub.disconnect(connection)
        writer.cancel()
        with suppress(asyncio.CancelledError):
            await writer
