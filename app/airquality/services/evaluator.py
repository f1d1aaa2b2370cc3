from __future__ import annotations

import logging
from datetime import datetime

from django.db import DatabaseError
from django.utils import timezone

from airquality.models import AirQualityReading, Alert
from airquality.policies import get_suppression_policy
from airquality.services import alert_sink
from airquality.services.thresholds import evaluate_thresholds
from devices.services import registry


logger = logging.getLogger(__name__)


def record_reading(
    device_id: str,
    room: str,
    pm25: float,
    co2: int,
    temperature: float,
    humidity: float,
    now: datetime | None = None,
) -> AirQualityReading:
    device = registry.find_by_device_id(device_id)

    taken_at = now or timezone.now()
    reading = AirQualityReading.objects.create(
        device=device,
        room=room,
        pm25=pm25,
        co2=co2,
        temperature=temperature,
        humidity=humidity,
        timestamp=taken_at,
    )
    registry.touch(device, taken_at)
    raise_alerts(reading)
    return reading


def raise_alerts(reading: AirQualityReading) -> list[Alert]:
    # The reading is already stored; a failed alert batch is logged, not rolled back.
    alerts = get_suppression_policy().filter(
        evaluate_thresholds(reading.room, reading.pm25, reading.co2),
        reading.timestamp,
    )
    if not alerts:
        return []

    try:
        created = alert_sink.create_many(alerts)
    except DatabaseError:
        logger.exception(
            "Unable to write alert batch",
            extra={"reading_id": reading.id, "room": reading.room, "alerts": len(alerts)},
        )
        return []

    logger.info("Raised air quality alerts", extra={"room": reading.room, "alerts": len(created)})
    return created
