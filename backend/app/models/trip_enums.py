"""
Trip-related enumerations.
"""

import enum


class TripStatus(str, enum.Enum):
    """Trip status enumeration."""
    ACTIVE = "active"  # Ignition on, trip accumulating distance
    CLOSED = "closed"  # Ignition turned off


class TripTransition(str, enum.Enum):
    """Outcome of feeding one reading to the trip state machine."""
    NONE = "none"  # NoTrip + ignition off
    STARTED = "started"
    UPDATED = "updated"
    CLOSED = "closed"
