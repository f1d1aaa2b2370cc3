from rest_framework import serializers


class DateRangeQuerySerializer(serializers.Serializer):
    """``startDate``/``endDate`` query params. A date without a time means midnight, local time."""

    startDate = serializers.DateTimeField(source="start", required=False, error_messages={
        'invalid': 'Start date must be an ISO 8601 date',
    })
    endDate = serializers.DateTimeField(source="end", required=False, error_messages={
        'invalid': 'End date must be an ISO 8601 date',
    })

    def validate(self, attrs):
        start, end = attrs.get("start"), attrs.get("end")
        if start and end and start > end:
            raise serializers.ValidationError("Start date must not be after end date")
        return attrs

    def lookups(self, field: str) -> dict:
        filters = {}
        if self.validated_data.get("start"):
            filters[f"{field}__gte"] = self.validated_data["start"]
        if self.validated_data.get("end"):
            filters[f"{field}__lte"] = self.validated_data["end"]
        return filters


def limit_field(default: int) -> serializers.IntegerField:
    return serializers.IntegerField(min_value=1, default=default, error_messages={
        'invalid': 'Limit must be a positive integer',
        'min_value': 'Limit must be a positive integer',
    })
