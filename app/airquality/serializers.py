from rest_framework import serializers

from core.serializers import DateRangeQuerySerializer, limit_field

from .models import AirQualityReading, Alert


PM25_MESSAGE = 'PM2.5 must be a positive number'
CO2_MESSAGE = 'CO2 must be a positive integer'
TEMPERATURE_MESSAGE = 'Temperature must be a number'
HUMIDITY_MESSAGE = 'Humidity must be between 0 and 100'


def _messages(message):
    return {key: message for key in ('required', 'invalid', 'null', 'min_value', 'max_value', 'max_string_length')}


class DeviceAirQualitySubmissionSerializer(serializers.Serializer):
    room = serializers.CharField(max_length=255, error_messages={
        'required': 'Room is required',
        'blank': 'Room is required',
        'null': 'Room is required',
    })
    pm25 = serializers.FloatField(min_value=0, error_messages=_messages(PM25_MESSAGE))
    co2 = serializers.IntegerField(min_value=0, error_messages=_messages(CO2_MESSAGE))
    temperature = serializers.FloatField(error_messages=_messages(TEMPERATURE_MESSAGE))
    humidity = serializers.FloatField(min_value=0, max_value=100, error_messages=_messages(HUMIDITY_MESSAGE))


class AirQualitySubmissionSerializer(DeviceAirQualitySubmissionSerializer):
    deviceId = serializers.CharField(source="device_id", max_length=128, error_messages={
        'required': 'Device ID is required',
        'blank': 'Device ID is required',
        'null': 'Device ID is required',
    })


class AirQualityReadingSerializer(serializers.ModelSerializer):
    deviceId = serializers.CharField(source="device.device_id", read_only=True)

    class Meta:
        model = AirQualityReading
        fields = ['id', 'deviceId', 'room', 'pm25', 'co2', 'temperature', 'humidity', 'timestamp']


class AlertSerializer(serializers.ModelSerializer):
    type = serializers.CharField(source="alert_type", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = Alert
        fields = ['id', 'type', 'severity', 'message', 'room', 'metric', 'value', 'threshold', 'resolved', 'createdAt']


class ReadingQuerySerializer(DateRangeQuerySerializer):
    room = serializers.CharField(required=False, allow_blank=True)
    limit = limit_field(default=100)
