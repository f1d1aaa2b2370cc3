from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from ingestion.gateway import submit_status

from .models import Device
from .serializers import DeviceProvisionSerializer, DeviceRegistrationSerializer, DeviceSerializer
from .services import registry


class DeviceViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    queryset = Device.objects.none()
    serializer_class = DeviceSerializer

    def get_queryset(self):
        queryset = Device.objects.all().order_by('name')
        status_filter = str(self.request.query_params.get('status', '')).strip()

        if status_filter and status_filter.lower() != 'all':
            return queryset.filter(status=status_filter.upper())

        return queryset

    def create(self, request, *args, **kwargs):
        serializer = DeviceRegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        device = registry.register(**serializer.validated_data)
        return Response(DeviceSerializer(device).data, status=status.HTTP_201_CREATED)

    # Low-trust path: any caller may report status for any device id.
    @action(
        detail=False,
        methods=['post'],
        url_path='status',
        url_name='status',
        authentication_classes=[],
        permission_classes=[AllowAny],
    )
    def report_status(self, request):
        device = submit_status(request.data)
        return Response(DeviceSerializer(device).data)

    @action(detail=False, methods=['post'])
    def provision(self, request):
        serializer = DeviceProvisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        device, device_token = registry.provision(**serializer.validated_data)
        return Response({"deviceToken": device_token, "device": DeviceSerializer(device).data})
