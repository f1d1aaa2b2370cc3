from django.urls import include, path
from rest_framework.routers import DefaultRouter

from accounts.views import login, me
from airquality.views import AirQualityViewSet, AlertViewSet
from attendance.views import AttendanceViewSet
from devices.views import DeviceViewSet

router = DefaultRouter(trailing_slash=False)
router.register(r'devices', DeviceViewSet, basename='device')
router.register(r'attendance', AttendanceViewSet, basename='attendance')
router.register(r'airquality', AirQualityViewSet, basename='airquality')
router.register(r'alerts', AlertViewSet, basename='alert')

urlpatterns = [
    path('auth/login', login, name='auth-login'),
    path('auth/me', me, name='auth-me'),
    path('', include(router.urls)),
]
