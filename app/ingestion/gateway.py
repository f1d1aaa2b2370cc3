"""Transport-neutral telemetry intake.

HTTP views and the device WebSocket consumer both hand raw payloads to these functions, so
validation and evaluation happen in one place. When a device token authenticated the caller, its
device id is passed as ``token_device_id`` and any ``deviceId`` in the payload is ignored.
"""
from __future__ import annotations

from airquality.models import AirQualityReading
from airquality.serializers import AirQualitySubmissionSerializer, DeviceAirQualitySubmissionSerializer
from airquality.services.evaluator import record_reading
from attendance.models import AttendanceRecord
from attendance.serializers import AttendanceSubmissionSerializer, DeviceAttendanceSubmissionSerializer
from attendance.services.evaluator import record_check_in
from devices.models import Device
from devices.serializers import DeviceStatusSerializer
from devices.services import registry


def _validated(serializer_class, payload: dict) -> dict:
    serializer = serializer_class(data=payload)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


def submit_attendance(payload: dict, token_device_id: str | None = None) -> AttendanceRecord:
    if token_device_id:
        data = _validated(DeviceAttendanceSubmissionSerializer, payload)
        device_id = token_device_id
    else:
        data = _validated(AttendanceSubmissionSerializer, payload)
        device_id = data["device_id"]

    return record_check_in(
        student_id=data["student_id"],
        device_id=device_id,
        fingerprint_match=data["fingerprint_match"],
        reliability=data.get("reliability"),
    )


def submit_reading(payload: dict, token_device_id: str | None = None) -> AirQualityReading:
    if token_device_id:
        data = _validated(DeviceAirQualitySubmissionSerializer, payload)
        device_id = token_device_id
    else:
        data = _validated(AirQualitySubmissionSerializer, payload)
        device_id = data["device_id"]

    return record_reading(
        device_id=device_id,
        room=data["room"],
        pm25=data["pm25"],
        co2=data["co2"],
        temperature=data["temperature"],
        humidity=data["humidity"],
    )


def submit_status(payload: dict, token_device_id: str | None = None) -> Device:
    """Low-trust path: without a token any caller may report status for any device id."""
    if token_device_id:
        payload = {**payload, "deviceId": token_device_id}
    data = _validated(DeviceStatusSerializer, payload)
    return registry.upsert_status(
        device_id=data["device_id"],
        battery=data.get("battery"),
        signal=data.get("signal"),
        signal_unit=data.get("signal_unit"),
        uptime=data.get("uptime"),
        status=data.get("status"),
    )
