"""
Authentication dependencies.

Bearer-token checks for HTTP routes, and the token check applied to
driver registration on the real-time socket.
"""

from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from bus_relay.app.core.exceptions import DriverAuthError
from bus_relay.app.core.jwt import decode_access_token
from bus_relay.app.core.token_revocation import is_token_revoked
from bus_relay.app.models.enums import UserRole

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    1. Validates JWT token signature and expiry
    2. Checks if token has been explicitly revoked

    Returns:
        Decoded token payload

    Raises:
        HTTPException: 401 if authentication fails for any reason
    """
    token = credentials.credentials

    payload = decode_access_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if await is_token_revoked(token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return payload


async def verify_driver_token(token: Optional[str], driver_id: str) -> dict:
    """
    Validate the token presented with a driver-register event.

    The token must decode, must not be revoked, must carry the DRIVER role
    and its subject must be the driver being registered.

    Raises:
        DriverAuthError: on any failed check
    """
    if not token:
        raise DriverAuthError("Driver token required")

    payload = decode_access_token(token)
    if payload is None:
        raise DriverAuthError("Could not validate driver token")

    if payload.get("role") != UserRole.DRIVER.value:
        raise DriverAuthError("Token does not carry the DRIVER role")

    if str(payload.get("sub")) != str(driver_id):
        raise DriverAuthError("Token subject does not match driverId")

    if await is_token_revoked(token):
        raise DriverAuthError("Token has been revoked")

    return payload
