import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("devices", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Alert",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "alert_type",
                    models.CharField(choices=[("AIR_QUALITY", "Air quality"), ("DEVICE", "Device")], max_length=16),
                ),
                (
                    "severity",
                    models.CharField(
                        choices=[("INFO", "Info"), ("WARNING", "Warning"), ("CRITICAL", "Critical")],
                        max_length=16,
                    ),
                ),
                ("message", models.CharField(max_length=512)),
                ("room", models.CharField(blank=True, default="", max_length=255)),
                ("metric", models.CharField(blank=True, default="", max_length=32)),
                ("value", models.CharField(blank=True, default="", max_length=64)),
                ("threshold", models.CharField(blank=True, default="", max_length=64)),
                ("resolved", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["room", "metric", "created_at"], name="alert_room_metric_idx"),
                    models.Index(fields=["resolved"], name="alert_resolved_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AirQualityReading",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("room", models.CharField(max_length=255)),
                ("pm25", models.FloatField()),
                ("co2", models.PositiveIntegerField()),
                ("temperature", models.FloatField()),
                ("humidity", models.FloatField()),
                ("timestamp", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "device",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="air_quality_readings",
                        to="devices.device",
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["room", "timestamp"], name="airquality_room_ts_idx")],
            },
        ),
    ]
