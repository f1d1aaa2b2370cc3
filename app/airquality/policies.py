"""Alert suppression policies.

The default raises one alert per over-threshold reading. ``RoomMetricCooldown`` drops an alert
when an unresolved alert for the same room and metric was raised within the cooldown window.
"""
from __future__ import annotations

from datetime import datetime, timedelta

from django.conf import settings
from django.utils.module_loading import import_string

from airquality.models import Alert


class AlertSuppressionPolicy:
    def filter(self, alerts: list[Alert], now: datetime) -> list[Alert]:
        raise NotImplementedError


class NoSuppression(AlertSuppressionPolicy):
    def filter(self, alerts, now):
        return list(alerts)


class RoomMetricCooldown(AlertSuppressionPolicy):
    def __init__(self, cooldown: timedelta | None = None):
        if cooldown is None:
            cooldown = timedelta(seconds=getattr(settings, "CLASSTRACK_ALERT_COOLDOWN_SECONDS", 900))
        self.cooldown = cooldown

    def filter(self, alerts, now):
        window_start = now - self.cooldown
        kept = []
        for alert in alerts:
            recent = Alert.objects.filter(
                room=alert.room,
                metric=alert.metric,
                resolved=False,
                created_at__gte=window_start,
            ).exists()
            if not recent:
                kept.append(alert)
        return kept


def get_suppression_policy() -> AlertSuppressionPolicy:
    path = getattr(settings, "CLASSTRACK_ALERT_SUPPRESSION_POLICY", "airquality.policies.NoSuppression")
    return import_string(path)()
