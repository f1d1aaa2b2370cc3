from django.db.models import Count, Q
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from accounts.authentication import DeviceTokenAuthentication
from core.exceptions import StudentNotFound
from core.numbers import format_fixed
from core.serializers import DateRangeQuerySerializer
from core.viewsets import OpenSubmissionMixin
from ingestion.gateway import submit_attendance
from students.models import Student

from .models import AttendanceRecord
from .serializers import AttendanceListQuerySerializer, AttendanceRecordSerializer, StudentHistoryQuerySerializer


class AttendanceViewSet(OpenSubmissionMixin, mixins.ListModelMixin, viewsets.GenericViewSet):
    """Check-ins are submitted without credentials; every read needs a dashboard token."""

    queryset = AttendanceRecord.objects.none()
    serializer_class = AttendanceRecordSerializer

    def get_queryset(self):
        queryset = AttendanceRecord.objects.select_related('student', 'device').order_by('-check_in_time', '-id')

        query = AttendanceListQuerySerializer(data=self.request.query_params)
        query.is_valid(raise_exception=True)
        day = query.validated_data.get('date')
        if day is not None:
            queryset = queryset.filter(check_in_time__date=day)

        class_label = str(self.request.query_params.get('class', '')).strip()
        if class_label and class_label.lower() != 'all':
            queryset = queryset.filter(student__class_label=class_label)

        return queryset

    def create(self, request, *args, **kwargs):
        record = submit_attendance(request.data)
        return Response(self.get_serializer(record).data, status=status.HTTP_201_CREATED)

    @action(
        detail=False,
        methods=['post'],
        authentication_classes=[DeviceTokenAuthentication],
        permission_classes=[AllowAny],
    )
    def device(self, request):
        record = submit_attendance(request.data, token_device_id=request.auth.device_id)
        return Response(self.get_serializer(record).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        query = DateRangeQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        counts = AttendanceRecord.objects.filter(**query.lookups('check_in_time')).aggregate(
            total=Count('id'),
            present=Count('id', filter=Q(status=AttendanceRecord.STATUS_PRESENT)),
            absent=Count('id', filter=Q(status=AttendanceRecord.STATUS_ABSENT)),
            late=Count('id', filter=Q(status=AttendanceRecord.STATUS_LATE)),
        )
        total = counts['total']
        counts['presentRate'] = format_fixed(counts['present'] / total * 100, 1) if total else '0.0'
        return Response(counts)

    @action(detail=False, methods=['get'], url_path=r'student/(?P<student_id>[^/.]+)')
    def student(self, request, student_id=None):
        student = Student.objects.filter(student_id=student_id).first()
        if student is None:
            raise StudentNotFound()

        query = StudentHistoryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        records = (
            AttendanceRecord.objects.filter(student=student)
            .select_related('student', 'device')
            .order_by('-check_in_time', '-id')[: query.validated_data['limit']]
        )
        return Response(self.get_serializer(records, many=True).data)
