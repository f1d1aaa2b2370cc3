"""Duplicate check-in policies.

Every check-in is stored by default: students may leave and re-enter during the day. A stricter
policy can be selected with ``CLASSTRACK_ATTENDANCE_DUPLICATE_POLICY``.
"""
from __future__ import annotations

from datetime import datetime

from django.conf import settings
from django.utils import timezone
from django.utils.module_loading import import_string

from attendance.models import AttendanceRecord


class DuplicateCheckInPolicy:
    def find_duplicate(self, student, device, checked_in_at: datetime) -> AttendanceRecord | None:
        raise NotImplementedError


class AllowRepeatedCheckIns(DuplicateCheckInPolicy):
    def find_duplicate(self, student, device, checked_in_at):
        return None


class OneCheckInPerDay(DuplicateCheckInPolicy):
    """Return the student's earlier record for the same local day instead of storing a new one."""

    def find_duplicate(self, student, device, checked_in_at):
        local_day = timezone.localtime(checked_in_at).date()
        return (
            AttendanceRecord.objects.filter(student=student, check_in_time__date=local_day)
            .order_by("check_in_time")
            .first()
        )


def get_duplicate_policy() -> DuplicateCheckInPolicy:
    path = getattr(
        settings,
        "CLASSTRACK_ATTENDANCE_DUPLICATE_POLICY",
        "attendance.policies.AllowRepeatedCheckIns",
    )
    return import_string(path)()
