"""
Alert enumerations.
"""

import enum


class AlertKind(str, enum.Enum):
    SPEEDING = "speeding"
    LOW_BATTERY = "low_battery"
    GEOFENCE_ENTRY = "geofence_entry"
    GEOFENCE_EXIT = "geofence_exit"


class AlertSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
