from rest_framework import serializers

from core.serializers import limit_field
from students.serializers import StudentSerializer

from .models import AttendanceRecord


class DeviceAttendanceSubmissionSerializer(serializers.Serializer):
    studentId = serializers.CharField(source="student_id", max_length=64, error_messages={
        'required': 'Student ID is required',
        'blank': 'Student ID is required',
        'null': 'Student ID is required',
    })
    fingerprintMatch = serializers.BooleanField(source="fingerprint_match", error_messages={
        'required': 'Fingerprint match must be boolean',
        'invalid': 'Fingerprint match must be boolean',
        'null': 'Fingerprint match must be boolean',
    })
    reliability = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=100, error_messages={
        'invalid': 'Reliability must be between 0 and 100',
        'min_value': 'Reliability must be between 0 and 100',
        'max_value': 'Reliability must be between 0 and 100',
    })


class AttendanceSubmissionSerializer(DeviceAttendanceSubmissionSerializer):
    deviceId = serializers.CharField(source="device_id", max_length=128, error_messages={
        'required': 'Device ID is required',
        'blank': 'Device ID is required',
        'null': 'Device ID is required',
    })


class AttendanceRecordSerializer(serializers.ModelSerializer):
    student = StudentSerializer(read_only=True)
    deviceId = serializers.CharField(source="device.device_id", read_only=True)
    checkInTime = serializers.DateTimeField(source="check_in_time", read_only=True)
    fingerprintMatch = serializers.BooleanField(source="fingerprint_match", read_only=True)

    class Meta:
        model = AttendanceRecord
        fields = ['id', 'student', 'deviceId', 'checkInTime', 'status', 'fingerprintMatch', 'reliability']


class AttendanceListQuerySerializer(serializers.Serializer):
    date = serializers.DateField(required=False, error_messages={
        'invalid': 'Date must be formatted as YYYY-MM-DD',
    })


class StudentHistoryQuerySerializer(serializers.Serializer):
    limit = limit_field(default=10)
