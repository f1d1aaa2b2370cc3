import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("devices", "0001_initial"),
        ("students", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="AttendanceRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("check_in_time", models.DateTimeField()),
                (
                    "status",
                    models.CharField(
                        choices=[("PRESENT", "Present"), ("LATE", "Late"), ("ABSENT", "Absent")],
                        max_length=16,
                    ),
                ),
                ("fingerprint_match", models.BooleanField()),
                ("reliability", models.PositiveSmallIntegerField(default=98)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "device",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="attendance_records",
                        to="devices.device",
                    ),
                ),
                (
                    "student",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="attendance_records",
                        to="students.student",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["check_in_time"], name="attendance_checkin_idx"),
                    models.Index(fields=["student", "check_in_time"], name="attendance_student_idx"),
                ],
            },
        ),
    ]
