from rest_framework import serializers

from .models import Device


DEVICE_TYPES = [choice for choice, _ in Device.TYPE_CHOICES]
DEVICE_STATUSES = [choice for choice, _ in Device.STATUS_CHOICES]

RSSI_MIN_DBM = -120
RSSI_MAX_DBM = 0


class DeviceSerializer(serializers.ModelSerializer):
    deviceId = serializers.CharField(source="device_id", read_only=True)
    type = serializers.CharField(source="device_type", read_only=True)
    firmwareVersion = serializers.CharField(source="firmware_version", read_only=True)
    signalUnit = serializers.CharField(source="signal_unit", read_only=True)
    lastSeen = serializers.DateTimeField(source="last_seen_at", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Device
        fields = [
            'id',
            'deviceId',
            'name',
            'type',
            'location',
            'firmwareVersion',
            'status',
            'battery',
            'signal',
            'signalUnit',
            'uptime',
            'lastSeen',
            'createdAt',
            'updatedAt',
        ]


class DeviceRegistrationSerializer(serializers.Serializer):
    deviceId = serializers.CharField(source="device_id", max_length=128, error_messages={
        'required': 'Device ID is required',
        'blank': 'Device ID is required',
    })
    name = serializers.CharField(max_length=255, error_messages={
        'required': 'Name is required',
        'blank': 'Name is required',
    })
    type = serializers.ChoiceField(source="device_type", choices=DEVICE_TYPES, error_messages={
        'required': 'Invalid device type',
        'invalid_choice': 'Invalid device type',
    })
    location = serializers.CharField(max_length=255, error_messages={
        'required': 'Location is required',
        'blank': 'Location is required',
    })
    firmwareVersion = serializers.CharField(source="firmware_version", max_length=64, required=False, allow_blank=True)


class DeviceProvisionSerializer(serializers.Serializer):
    deviceId = serializers.CharField(source="device_id", max_length=128, error_messages={
        'required': 'Device ID is required',
        'blank': 'Device ID is required',
    })
    name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    type = serializers.ChoiceField(source="device_type", choices=DEVICE_TYPES, required=False, error_messages={
        'invalid_choice': 'Invalid device type',
    })
    location = serializers.CharField(max_length=255, required=False, allow_blank=True)


class DeviceStatusSerializer(serializers.Serializer):
    deviceId = serializers.CharField(source="device_id", max_length=128, error_messages={
        'required': 'Device ID is required',
        'blank': 'Device ID is required',
    })
    battery = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=100, error_messages={
        'invalid': 'Battery must be between 0 and 100',
        'min_value': 'Battery must be between 0 and 100',
        'max_value': 'Battery must be between 0 and 100',
    })
    signal = serializers.IntegerField(required=False, allow_null=True, error_messages={
        'invalid': 'Signal must be an integer',
    })
    signalUnit = serializers.ChoiceField(
        source="signal_unit",
        choices=[choice for choice, _ in Device.SIGNAL_UNIT_CHOICES],
        default=Device.SIGNAL_UNIT_DBM,
    )
    uptime = serializers.CharField(required=False, allow_null=True, allow_blank=True, max_length=64)
    status = serializers.CharField(required=False, allow_null=True, allow_blank=True)

    def validate_status(self, value):
        if not value:
            return None
        normalized = value.upper()
        if normalized not in DEVICE_STATUSES:
            raise serializers.ValidationError('Status must be one of ONLINE, OFFLINE, MAINTENANCE')
        return normalized

    def validate(self, attrs):
        signal = attrs.get('signal')
        if signal is None:
            return attrs

        if attrs['signal_unit'] == Device.SIGNAL_UNIT_PERCENT:
            if not 0 <= signal <= 100:
                raise serializers.ValidationError({'signal': 'Signal (percent) must be between 0 and 100'})
        elif not RSSI_MIN_DBM <= signal <= RSSI_MAX_DBM:
            raise serializers.ValidationError({'signal': 'Signal (RSSI dBm) must be between -120 and 0'})
        return attrs
