"""
Token roles enumeration.

Defines the roles a bearer token can carry against the relay.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Operations staff, may trigger maintenance jobs
        DRIVER: Bus driver, the only producer of location data
    """
    ADMIN = "ADMIN"
    DRIVER = "DRIVER"
