from django.core.management.base import BaseCommand, CommandError

from devices.models import Device
from devices.services import registry


class Command(BaseCommand):
    help = "Find or create a device and print a fresh device token for its firmware"

    def add_arguments(self, parser):
        parser.add_argument("device_id", help="Device identifier (ex: ESP32-101)")
        parser.add_argument("--name", default="")
        parser.add_argument("--type", dest="device_type", default="")
        parser.add_argument("--location", default="")

    def handle(self, *args, **options):
        device_id = options["device_id"].strip()
        device_type = (options.get("device_type") or "").strip().upper()

        if not device_id:
            raise CommandError("device_id must not be empty")
        if device_type and device_type not in dict(Device.TYPE_CHOICES):
            raise CommandError(f"Unknown device type '{device_type}'")

        device, token = registry.provision(
            device_id,
            name=options.get("name") or None,
            device_type=device_type or None,
            location=options.get("location") or None,
        )

        self.stdout.write(self.style.SUCCESS(f"Device {device.device_id} ({device.name}) provisioned"))
        self.stdout.write(token)
