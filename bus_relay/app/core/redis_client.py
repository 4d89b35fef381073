"""
Redis client initialization and connection management.

The relay uses Redis for JWT revocation lookups shared across processes.
"""

import redis.asyncio as redis
from bus_relay.app.core.config import settings

# Create async Redis client
redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def ping_redis() -> bool:
    """
    Test Redis connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        return bool(await redis_client.ping())
    except Exception:
        return False
