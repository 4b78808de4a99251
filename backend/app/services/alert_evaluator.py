"""
Alert evaluator.

Threshold checks over a single telemetry reading plus geofence entry/exit
detection. Rules are evaluated in a fixed order and are independent, so one
reading can raise zero, one or several alerts:

1. speeding (critical above the critical threshold, otherwise high)
2. low battery (medium)
3. geofence entry / exit (high), one check per active geofence

Readings are not deduplicated: a vehicle that stays over the speed threshold
raises a speeding alert on every reading.

The only state is the last known containment per (vehicle, geofence), held in
the injected TrackingStateStore. assess() is pure; commit() applies the
containment changes once the alerts have been persisted.
"""

import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from backend.app.core.config import settings
from backend.app.models.alert_enums import AlertKind, AlertSeverity
from backend.app.schemas.alert import Alert
from backend.app.schemas.geofence import Geofence
from backend.app.schemas.telemetry import TelemetryReading
from backend.app.services.geo import point_in_polygon
from backend.app.services.tracking_store import TrackingStateStore


@dataclass
class AlertAssessment:
    """Alerts raised by one reading and the containment it implies."""
    vehicle_id: str
    alerts: List[Alert] = field(default_factory=list)
    containment: Dict[str, bool] = field(default_factory=dict)


def _new_alert(reading: TelemetryReading, kind: AlertKind, severity: AlertSeverity,
               message: str, geofence_id: str = None) -> Alert:
    return Alert(
        id=f"alert_{uuid.uuid4().hex}",
        vehicle_id=reading.vehicle_id,
        kind=kind,
        severity=severity,
        message=message,
        location=reading.position,
        timestamp=reading.timestamp,
        geofence_id=geofence_id,
    )


def speeding_severity(speed: float):
    """Severity for a speed reading, or None when within the limit."""
    if speed > settings.critical_speed_threshold_kmh:
        return AlertSeverity.CRITICAL
    if speed > settings.speeding_threshold_kmh:
        return AlertSeverity.HIGH
    return None


class AlertEvaluator:

    def __init__(self, store: TrackingStateStore):
        self.store = store

    def assess(self, reading: TelemetryReading, geofences: Sequence[Geofence]) -> AlertAssessment:
        """Evaluate all rules without touching the store."""
        assessment = AlertAssessment(vehicle_id=reading.vehicle_id)

        severity = speeding_severity(reading.speed)
        if severity is not None:
            assessment.alerts.append(_new_alert(
                reading, AlertKind.SPEEDING, severity,
                f"Vehicle speeding: {reading.speed:g} km/h",
            ))

        if reading.battery_percent is not None and reading.battery_percent < settings.low_battery_threshold_percent:
            assessment.alerts.append(_new_alert(
                reading, AlertKind.LOW_BATTERY, AlertSeverity.MEDIUM,
                f"Low battery: {reading.battery_percent:g}%",
            ))

        point = (reading.latitude, reading.longitude)
        for geofence in geofences:
            if not geofence.is_active:
                continue
            inside = point_in_polygon(point, geofence.polygon)
            # Never-evaluated pairs count as outside
            was_inside = bool(self.store.get_containment(reading.vehicle_id, geofence.id))
            assessment.containment[geofence.id] = inside

            if inside and not was_inside and geofence.alert_on_entry:
                assessment.alerts.append(_new_alert(
                    reading, AlertKind.GEOFENCE_ENTRY, AlertSeverity.HIGH,
                    f"Geofence entry: {geofence.name}", geofence_id=geofence.id,
                ))
            elif was_inside and not inside and geofence.alert_on_exit:
                assessment.alerts.append(_new_alert(
                    reading, AlertKind.GEOFENCE_EXIT, AlertSeverity.HIGH,
                    f"Geofence exit: {geofence.name}", geofence_id=geofence.id,
                ))

        return assessment

    def commit(self, assessment: AlertAssessment) -> None:
        for geofence_id, inside in assessment.containment.items():
            self.store.set_containment(assessment.vehicle_id, geofence_id, inside)

    def evaluate(self, reading: TelemetryReading, geofences: Sequence[Geofence]) -> List[Alert]:
        """Assess and commit in one step. Returns the alerts raised."""
        assessment = self.assess(reading, geofences)
        self.commit(assessment)
        return assessment.alerts
