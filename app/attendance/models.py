from django.db import models

from devices.models import Device
from students.models import Student


class AttendanceRecord(models.Model):
    STATUS_PRESENT = "PRESENT"
    STATUS_LATE = "LATE"
    STATUS_ABSENT = "ABSENT"
    STATUS_CHOICES = [
        (STATUS_PRESENT, "Present"),
        (STATUS_LATE, "Late"),
        (STATUS_ABSENT, "Absent"),
    ]

    DEFAULT_RELIABILITY = 98

    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name="attendance_records")
    device = models.ForeignKey(Device, on_delete=models.CASCADE, related_name="attendance_records")
    check_in_time = models.DateTimeField()
    status = models.CharField(max_length=16, choices=STATUS_CHOICES)
    fingerprint_match = models.BooleanField()
    reliability = models.PositiveSmallIntegerField(default=DEFAULT_RELIABILITY)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["check_in_time"], name="attendance_checkin_idx"),
            models.Index(fields=["student", "check_in_time"], name="attendance_student_idx"),
        ]
