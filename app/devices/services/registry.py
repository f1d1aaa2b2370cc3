"""Device registry: lookup, explicit registration, status pings and provisioning.

Find-or-create paths go through ``get_or_create`` against the unique ``device_id`` column, which
re-reads the row when a concurrent insert wins the race, so two near simultaneous pings for an
unknown device never produce two rows.
"""
from __future__ import annotations

import logging
from datetime import datetime

from django.db import IntegrityError, transaction
from django.utils import timezone

from accounts.tokens import issue_device_token
from core.exceptions import DeviceNotFound, DuplicateDevice
from devices.models import Device


logger = logging.getLogger(__name__)

DEFAULT_FIRMWARE_VERSION = "v2.1.3"
UNKNOWN_FIRMWARE_VERSION = "unknown"
UNASSIGNED_LOCATION = "Unassigned"


def find_by_device_id(device_id: str) -> Device:
    device = Device.objects.filter(device_id=device_id).first()
    if device is None:
        raise DeviceNotFound()
    return device


def register(
    device_id: str,
    name: str,
    device_type: str,
    location: str,
    firmware_version: str | None = None,
) -> Device:
    try:
        with transaction.atomic():
            device = Device.objects.create(
                device_id=device_id,
                name=name,
                device_type=device_type,
                location=location,
                firmware_version=firmware_version or DEFAULT_FIRMWARE_VERSION,
            )
    except IntegrityError as exc:
        raise DuplicateDevice() from exc

    logger.info("Registered device", extra={"device_id": device_id, "device_type": device_type})
    return device


def upsert_status(
    device_id: str,
    battery: int | None = None,
    signal: int | None = None,
    signal_unit: str | None = None,
    uptime: str | None = None,
    status: str | None = None,
) -> Device:
    device, created = Device.objects.get_or_create(
        device_id=device_id,
        defaults={
            "name": device_id,
            "device_type": Device.TYPE_MULTI_SENSOR,
            "location": UNASSIGNED_LOCATION,
            "status": Device.STATUS_ONLINE,
            "firmware_version": UNKNOWN_FIRMWARE_VERSION,
        },
    )
    if created:
        logger.info("Auto-registered unknown device from status ping", extra={"device_id": device_id})

    device.status = (status or Device.STATUS_ONLINE).upper()
    device.last_seen_at = timezone.now()
    update_fields = ["status", "last_seen_at", "updated_at"]

    if battery is not None:
        device.battery = battery
        update_fields.append("battery")
    if signal is not None:
        device.signal = signal
        device.signal_unit = signal_unit or Device.SIGNAL_UNIT_DBM
        update_fields.extend(["signal", "signal_unit"])
    if uptime is not None:
        device.uptime = uptime
        update_fields.append("uptime")

    device.save(update_fields=update_fields)
    return device


def provision(
    device_id: str,
    name: str | None = None,
    device_type: str | None = None,
    location: str | None = None,
) -> tuple[Device, str]:
    device, created = Device.objects.get_or_create(
        device_id=device_id,
        defaults={
            "name": name or device_id,
            "device_type": device_type or Device.TYPE_MULTI_SENSOR,
            "location": location or UNASSIGNED_LOCATION,
            "status": Device.STATUS_OFFLINE,
            "firmware_version": UNKNOWN_FIRMWARE_VERSION,
        },
    )
    logger.info("Provisioned device token", extra={"device_id": device_id, "device_created": created})
    return device, issue_device_token(device_id)


def touch(device: Device, seen_at: datetime | None = None) -> None:
    device.last_seen_at = seen_at or timezone.now()
    Device.objects.filter(pk=device.pk).update(last_seen_at=device.last_seen_at)
