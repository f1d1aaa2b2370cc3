from django.db import models
from django.utils import timezone

from devices.models import Device


class AirQualityReading(models.Model):
    device = models.ForeignKey(Device, on_delete=models.CASCADE, related_name="air_quality_readings")
    room = models.CharField(max_length=255)
    pm25 = models.FloatField()
    co2 = models.PositiveIntegerField()
    temperature = models.FloatField()
    humidity = models.FloatField()
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [models.Index(fields=["room", "timestamp"], name="airquality_room_ts_idx")]


class Alert(models.Model):
    TYPE_AIR_QUALITY = "AIR_QUALITY"
    TYPE_DEVICE = "DEVICE"
    TYPE_CHOICES = [
        (TYPE_AIR_QUALITY, "Air quality"),
        (TYPE_DEVICE, "Device"),
    ]

    SEVERITY_INFO = "INFO"
    SEVERITY_WARNING = "WARNING"
    SEVERITY_CRITICAL = "CRITICAL"
    SEVERITY_CHOICES = [
        (SEVERITY_INFO, "Info"),
        (SEVERITY_WARNING, "Warning"),
        (SEVERITY_CRITICAL, "Critical"),
    ]

    alert_type = models.CharField(max_length=16, choices=TYPE_CHOICES)
    severity = models.CharField(max_length=16, choices=SEVERITY_CHOICES)
    message = models.CharField(max_length=512)
    room = models.CharField(max_length=255, blank=True, default="")
    metric = models.CharField(max_length=32, blank=True, default="")
    value = models.CharField(max_length=64, blank=True, default="")
    threshold = models.CharField(max_length=64, blank=True, default="")
    resolved = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["room", "metric", "created_at"], name="alert_room_metric_idx"),
            models.Index(fields=["resolved"], name="alert_resolved_idx"),
        ]
