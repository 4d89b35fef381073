"""
Token Revocation System using Redis.

Implements token blacklisting so a driver or admin token can be invalidated
before it expires.
"""

import logging

from bus_relay.app.core import redis_client as redis_module
from bus_relay.app.core.config import settings

logger = logging.getLogger("bus_relay.auth")

# Redis key prefix for blacklisted tokens
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"


async def revoke_token(token: str, subject: str) -> bool:
    """
    Revoke a specific JWT token by adding it to the blacklist.

    Args:
        token: The JWT token string to revoke
        subject: Driver or admin identifier that owns the token

    Returns:
        True if successfully revoked, False otherwise
    """
    try:
        # Tokens auto-expire anyway, the blacklist entry only needs to outlive them
        ttl_seconds = settings.access_token_expire_minutes * 60
        key = f"{TOKEN_BLACKLIST_PREFIX}{token}"
        await redis_module.redis_client.set(key, str(subject), ex=ttl_seconds)
        return True
    except Exception as e:
        logger.error("Error revoking token for %s: %s", subject, e)
        return False


async def is_token_revoked(token: str) -> bool:
    """
    Check if a token has been revoked.

    Args:
        token: JWT token string to check

    Returns:
        True if token is revoked, False otherwise
    """
    try:
        key = f"{TOKEN_BLACKLIST_PREFIX}{token}"
        exists = await redis_module.redis_client.exists(key)
        return exists > 0
    except Exception as e:
        # Fail open: Redis being down must not lock every driver out
        logger.warning("Error checking token revocation: %s", e)
        return False
