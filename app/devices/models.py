from django.db import models


class Device(models.Model):
    TYPE_FINGERPRINT_SCANNER = "FINGERPRINT_SCANNER"
    TYPE_MULTI_SENSOR = "MULTI_SENSOR"
    TYPE_AIR_QUALITY_SENSOR = "AIR_QUALITY_SENSOR"
    TYPE_CHOICES = [
        (TYPE_FINGERPRINT_SCANNER, "Fingerprint scanner"),
        (TYPE_MULTI_SENSOR, "Multi sensor"),
        (TYPE_AIR_QUALITY_SENSOR, "Air quality sensor"),
    ]

    STATUS_ONLINE = "ONLINE"
    STATUS_OFFLINE = "OFFLINE"
    STATUS_MAINTENANCE = "MAINTENANCE"
    STATUS_CHOICES = [
        (STATUS_ONLINE, "Online"),
        (STATUS_OFFLINE, "Offline"),
        (STATUS_MAINTENANCE, "Maintenance"),
    ]

    SIGNAL_UNIT_DBM = "dBm"
    SIGNAL_UNIT_PERCENT = "percent"
    SIGNAL_UNIT_CHOICES = [
        (SIGNAL_UNIT_DBM, "RSSI (dBm)"),
        (SIGNAL_UNIT_PERCENT, "Percent"),
    ]

    device_id = models.CharField(max_length=128, unique=True)
    name = models.CharField(max_length=255)
    device_type = models.CharField(max_length=32, choices=TYPE_CHOICES, default=TYPE_MULTI_SENSOR)
    location = models.CharField(max_length=255, default="Unassigned")
    firmware_version = models.CharField(max_length=64, default="unknown")
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_OFFLINE)
    battery = models.PositiveSmallIntegerField(null=True, blank=True)
    signal = models.SmallIntegerField(null=True, blank=True)
    signal_unit = models.CharField(max_length=8, choices=SIGNAL_UNIT_CHOICES, blank=True, default="")
    uptime = models.CharField(max_length=64, blank=True, default="")
    last_seen_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=["status"], name="devices_status_idx")]

    def __str__(self):
        return f"{self.name} ({self.device_id})"
