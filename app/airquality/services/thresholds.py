"""Fixed air quality limits.

Two independent rule sets live here: the alert thresholds applied to every incoming reading and
the looser display bands used to label a room on the dashboard. They are deliberately separate.
"""
from __future__ import annotations

from airquality.models import Alert
from core.numbers import format_fixed

CO2_WARNING_PPM = 800
CO2_CRITICAL_PPM = 1000
PM25_WARNING_UGM3 = 50
PM25_CRITICAL_UGM3 = 75

CO2_METRIC = "CO₂"
PM25_METRIC = "PM2.5"

QUALITY_GOOD = "Good"
QUALITY_MODERATE = "Moderate"
QUALITY_POOR = "Poor"
QUALITY_UNKNOWN = "Unknown"


def _air_quality_alert(room: str, metric: str, critical: bool, value: str, threshold: str) -> Alert:
    wording = "critical" if critical else "exceeded threshold"
    return Alert(
        alert_type=Alert.TYPE_AIR_QUALITY,
        severity=Alert.SEVERITY_CRITICAL if critical else Alert.SEVERITY_WARNING,
        message=f"{room} {metric} level {wording} ({value})",
        room=room,
        metric=metric,
        value=value,
        threshold=threshold,
    )


def evaluate_thresholds(room: str, pm25: float, co2: int) -> list[Alert]:
    """Return unsaved alerts for one reading, CO2 first, at most one per metric."""
    alerts = []

    if co2 > CO2_WARNING_PPM:
        alerts.append(
            _air_quality_alert(
                room,
                CO2_METRIC,
                critical=co2 > CO2_CRITICAL_PPM,
                value=f"{co2} ppm",
                threshold=f"{CO2_WARNING_PPM} ppm",
            )
        )

    if pm25 > PM25_WARNING_UGM3:
        alerts.append(
            _air_quality_alert(
                room,
                PM25_METRIC,
                critical=pm25 > PM25_CRITICAL_UGM3,
                value=f"{format_fixed(pm25, 1)} µg/m³",
                threshold=f"{PM25_WARNING_UGM3} µg/m³",
            )
        )

    return alerts


def classify_room_quality(pm25: float | None, co2: float | None) -> str:
    if pm25 is None or co2 is None:
        return QUALITY_UNKNOWN
    if pm25 < 35 and co2 < 750:
        return QUALITY_GOOD
    if pm25 < 55 and co2 < 1000:
        return QUALITY_MODERATE
    return QUALITY_POOR
