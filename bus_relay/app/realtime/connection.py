"""
Relay connection handle.

One per open socket. Outbound frames go through a bounded queue drained by
the socket's own writer task, so a slow client only ever fills its own queue.
"""

import asyncio
import uuid
from typing import Any, Dict, Optional


class Connection:
    """Identity and outbox of one socket."""

    def __init__(self, queue_size: int = 100, connection_id: Optional[str] = None):
        self.id = connection_id or uuid.uuid4().hex
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.closed = False
        self.dropped = 0

    def push(self, event: str, data: Dict[str, Any]) -> bool:
        """
        Enqueue one outbound frame without waiting.

        Returns:
            False if the connection is closed or its queue is full
        """
        if self.closed:
            return False
        try:
            self.outbox.put_nowait({"event": event, "data": data})
        except asyncio.QueueFull:
            self.dropped += 1
            return False
        return True

    def close(self) -> None:
        self.closed = True

    def drain(self) -> list:
        """Pop every queued frame. Used by tests and on shutdown."""
        frames = []
        while not self.outbox.empty():
            frames.append(self.outbox.get_nowait())
        return frames

    def __repr__(self):
        return f"<Connection(id={self.id}, queued={self.outbox.qsize()}, closed={self.closed})>"
