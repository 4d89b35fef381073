"""
Trip-related enumerations.
"""

import enum


class TripStatus(str, enum.Enum):
    """Trip status enumeration."""
    ACTIVE = "active"  # Driver is on the road, samples are being appended
    ENDED = "ended"  # Trip closed, history is eligible for pruning after the grace period
