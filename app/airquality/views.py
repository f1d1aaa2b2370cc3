from __future__ import annotations

from datetime import timedelta

from django.db.models import Avg, Max, Min
from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from accounts.authentication import DeviceTokenAuthentication
from core.numbers import round_half_up
from core.serializers import DateRangeQuerySerializer
from core.viewsets import OpenSubmissionMixin
from ingestion.gateway import submit_reading

from .models import AirQualityReading, Alert
from .serializers import AirQualityReadingSerializer, AlertSerializer, ReadingQuerySerializer
from .services.thresholds import classify_room_quality


def _to_bool(value: str | None) -> bool:
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _rounded(value, digits=0):
    return round_half_up(value, digits) if value else 0


class AirQualityViewSet(OpenSubmissionMixin, mixins.ListModelMixin, viewsets.GenericViewSet):
    """Readings are submitted without credentials; every read needs a dashboard token."""

    queryset = AirQualityReading.objects.none()
    serializer_class = AirQualityReadingSerializer

    def get_queryset(self):
        query = ReadingQuerySerializer(data=self.request.query_params)
        query.is_valid(raise_exception=True)

        queryset = AirQualityReading.objects.select_related('device').filter(**query.lookups('timestamp'))
        room = query.validated_data.get('room')
        if room:
            queryset = queryset.filter(room=room)
        return queryset.order_by('-timestamp', '-id')[: query.validated_data['limit']]

    def create(self, request, *args, **kwargs):
        reading = submit_reading(request.data)
        return Response(self.get_serializer(reading).data, status=status.HTTP_201_CREATED)

    @action(
        detail=False,
        methods=['post'],
        authentication_classes=[DeviceTokenAuthentication],
        permission_classes=[AllowAny],
    )
    def device(self, request):
        reading = submit_reading(request.data, token_device_id=request.auth.device_id)
        return Response(self.get_serializer(reading).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def rooms(self, request):
        since = timezone.now() - timedelta(hours=24)
        rooms = AirQualityReading.objects.order_by("room").values_list("room", flat=True).distinct()

        results = []
        for room in rooms:
            latest = AirQualityReading.objects.filter(room=room).order_by("-timestamp", "-id").first()
            averages = AirQualityReading.objects.filter(room=room, timestamp__gte=since).aggregate(
                pm25=Avg("pm25"),
                co2=Avg("co2"),
                temperature=Avg("temperature"),
                humidity=Avg("humidity"),
            )
            results.append(
                {
                    "name": room,
                    "quality": classify_room_quality(latest.pm25, latest.co2),
                    "latest": {
                        "pm25": round_half_up(latest.pm25, 1),
                        "co2": latest.co2,
                        "temp": round_half_up(latest.temperature, 1),
                        "humidity": round_half_up(latest.humidity),
                        "timestamp": latest.timestamp,
                    },
                    "average24h": {
                        "pm25": _rounded(averages["pm25"], 1),
                        "co2": _rounded(averages["co2"]),
                        "temp": _rounded(averages["temperature"], 1),
                        "humidity": _rounded(averages["humidity"]),
                    },
                }
            )
        return Response(results)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        query = DateRangeQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        stats = AirQualityReading.objects.filter(**query.lookups('timestamp')).aggregate(
            avg_pm25=Avg("pm25"),
            avg_co2=Avg("co2"),
            avg_temperature=Avg("temperature"),
            avg_humidity=Avg("humidity"),
            max_pm25=Max("pm25"),
            max_co2=Max("co2"),
            max_temperature=Max("temperature"),
            min_pm25=Min("pm25"),
            min_co2=Min("co2"),
            min_temperature=Min("temperature"),
        )
        return Response(
            {
                "average": {
                    "pm25": _rounded(stats["avg_pm25"], 1),
                    "co2": _rounded(stats["avg_co2"]),
                    "temperature": _rounded(stats["avg_temperature"], 1),
                    "humidity": _rounded(stats["avg_humidity"]),
                },
                "max": {
                    "pm25": _rounded(stats["max_pm25"], 1),
                    "co2": stats["max_co2"] or 0,
                    "temperature": _rounded(stats["max_temperature"], 1),
                },
                "min": {
                    "pm25": _rounded(stats["min_pm25"], 1),
                    "co2": stats["min_co2"] or 0,
                    "temperature": _rounded(stats["min_temperature"], 1),
                },
            }
        )


class AlertViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    queryset = Alert.objects.none()
    serializer_class = AlertSerializer

    def get_queryset(self):
        queryset = Alert.objects.all().order_by('-created_at', '-id')
        resolved = self.request.query_params.get('resolved')
        if resolved is not None and resolved != '':
            queryset = queryset.filter(resolved=_to_bool(resolved))
        return queryset
