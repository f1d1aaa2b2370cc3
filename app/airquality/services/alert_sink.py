from __future__ import annotations

from django.db import transaction

from airquality.models import Alert


def create_many(alerts: list[Alert]) -> list[Alert]:
    if not alerts:
        return []
    with transaction.atomic():
        return Alert.objects.bulk_create(alerts)
