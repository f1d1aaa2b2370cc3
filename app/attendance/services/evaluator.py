from __future__ import annotations

import logging
from datetime import datetime, time

from django.conf import settings
from django.utils import timezone

from attendance.models import AttendanceRecord
from attendance.policies import get_duplicate_policy
from core.exceptions import StudentNotFound
from devices.services import registry
from students.models import Student


logger = logging.getLogger(__name__)

DEFAULT_CUTOFF = "08:30"


def attendance_cutoff() -> time:
    value = getattr(settings, "CLASSTRACK_ATTENDANCE_CUTOFF", DEFAULT_CUTOFF)
    return datetime.strptime(value, "%H:%M").time()


def derive_status(checked_in_at: datetime) -> str:
    # ABSENT is never derived from a check-in.
    if timezone.localtime(checked_in_at).time() <= attendance_cutoff():
        return AttendanceRecord.STATUS_PRESENT
    return AttendanceRecord.STATUS_LATE


def record_check_in(
    student_id: str,
    device_id: str,
    fingerprint_match: bool,
    reliability: int | None = None,
    now: datetime | None = None,
) -> AttendanceRecord:
    student = Student.objects.filter(student_id=student_id).first()
    if student is None:
        raise StudentNotFound()
    device = registry.find_by_device_id(device_id)

    checked_in_at = now or timezone.now()
    duplicate = get_duplicate_policy().find_duplicate(student, device, checked_in_at)
    if duplicate is not None:
        logger.info(
            "Duplicate check-in collapsed by policy",
            extra={"student_id": student_id, "device_id": device_id, "attendance_id": duplicate.id},
        )
        return duplicate

    record = AttendanceRecord.objects.create(
        student=student,
        device=device,
        check_in_time=checked_in_at,
        status=derive_status(checked_in_at),
        fingerprint_match=fingerprint_match,
        reliability=AttendanceRecord.DEFAULT_RELIABILITY if reliability is None else reliability,
    )
    registry.touch(device, checked_in_at)
    return record
