from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Device",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("device_id", models.CharField(max_length=128, unique=True)),
                ("name", models.CharField(max_length=255)),
                (
                    "device_type",
                    models.CharField(
                        choices=[
                            ("FINGERPRINT_SCANNER", "Fingerprint scanner"),
                            ("MULTI_SENSOR", "Multi sensor"),
                            ("AIR_QUALITY_SENSOR", "Air quality sensor"),
                        ],
                        default="MULTI_SENSOR",
                        max_length=32,
                    ),
                ),
                ("location", models.CharField(default="Unassigned", max_length=255)),
                ("firmware_version", models.CharField(default="unknown", max_length=64)),
                (
                    "status",
                    models.CharField(
                        choices=[("ONLINE", "Online"), ("OFFLINE", "Offline"), ("MAINTENANCE", "Maintenance")],
                        default="OFFLINE",
                        max_length=16,
                    ),
                ),
                ("battery", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("signal", models.SmallIntegerField(blank=True, null=True)),
                (
                    "signal_unit",
                    models.CharField(
                        blank=True,
                        choices=[("dBm", "RSSI (dBm)"), ("percent", "Percent")],
                        default="",
                        max_length=8,
                    ),
                ),
                ("uptime", models.CharField(blank=True, default="", max_length=64)),
                ("last_seen_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "indexes": [models.Index(fields=["status"], name="devices_status_idx")],
            },
        ),
    ]
