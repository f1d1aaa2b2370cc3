import json
import os
import subprocess
import sys
from unittest.mock import patch

from asgiref.sync import async_to_sync
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase, TransactionTestCase

from accounts.tokens import issue_device_token, issue_user_token
from airquality.models import AirQualityReading, Alert
from attendance.models import AttendanceRecord
from core.exceptions import DeviceNotFound
from devices.models import Device
from ingestion.gateway import submit_attendance, submit_reading, submit_status
from ingestion.routing import websocket_urlpatterns
from students.models import Student


application = URLRouter(websocket_urlpatterns)


def exchange(*frames, path="/ws/devices", headers=None):
    """Open a device socket, send each frame and collect one reply per frame."""

    async def run():
        communicator = WebsocketCommunicator(application, path, headers=headers or [])
        connected, detail = await communicator.connect(timeout=5)
        if not connected:
            return False, detail, []
        welcome = await communicator.receive_json_from(timeout=5)
        replies = []
        for frame in frames:
            text = frame if isinstance(frame, str) else json.dumps(frame)
            await communicator.send_to(text_data=text)
            replies.append(await communicator.receive_json_from(timeout=5))
        await communicator.disconnect()
        return True, welcome, replies

    return async_to_sync(run)()


class GatewayTests(TestCase):
    def setUp(self):
        self.student = Student.objects.create(student_id='STU0001', name='Ahmed Hassan', class_label='10-A')
        self.device = Device.objects.create(device_id='ESP32-101', name='Room 101 Sensor')
        self.other_device = Device.objects.create(device_id='ESP32-102', name='Room 102 Sensor')

    def test_attendance_uses_device_id_from_payload_without_token(self):
        record = submit_attendance({'studentId': 'STU0001', 'deviceId': 'ESP32-102', 'fingerprintMatch': True})

        self.assertEqual(record.device, self.other_device)

    def test_token_device_id_overrides_payload(self):
        record = submit_attendance(
            {'studentId': 'STU0001', 'deviceId': 'ESP32-102', 'fingerprintMatch': True},
            token_device_id='ESP32-101',
        )
        reading = submit_reading(
            {'deviceId': 'ESP32-102', 'room': 'Room 101', 'pm25': 10, 'co2': 500, 'temperature': 21, 'humidity': 40},
            token_device_id='ESP32-101',
        )

        self.assertEqual(record.device, self.device)
        self.assertEqual(reading.device, self.device)

    def test_status_with_token_never_touches_another_device(self):
        device = submit_status({'deviceId': 'ESP32-102', 'battery': 12}, token_device_id='ESP32-101')

        self.assertEqual(device.device_id, 'ESP32-101')
        self.other_device.refresh_from_db()
        self.assertIsNone(self.other_device.battery)

    def test_unknown_token_device_is_not_auto_registered_for_readings(self):
        with self.assertRaises(DeviceNotFound):
            submit_reading(
                {'room': 'Lab', 'pm25': 10, 'co2': 500, 'temperature': 21, 'humidity': 40},
                token_device_id='ESP32-GONE',
            )

        self.assertFalse(Device.objects.filter(device_id='ESP32-GONE').exists())


class DeviceSocketTests(TransactionTestCase):
    def setUp(self):
        self.student = Student.objects.create(student_id='STU0001', name='Ahmed Hassan', class_label='10-A')
        self.device = Device.objects.create(device_id='ESP32-101', name='Room 101 Sensor')
        self.other_device = Device.objects.create(device_id='ESP32-102', name='Room 102 Sensor')

    def test_connection_is_greeted(self):
        connected, welcome, _ = exchange()

        self.assertTrue(connected)
        self.assertEqual(welcome['status'], 'connected')
        self.assertEqual(welcome['message'], 'Welcome to ClassTrack IoT Server')
        self.assertIn('timestamp', welcome)

    def test_attendance_frame_is_acknowledged_and_stored(self):
        frame = {'type': 'attendance', 'studentId': 'STU0001', 'deviceId': 'ESP32-101', 'fingerprintMatch': True}

        _, _, replies = exchange(frame)

        self.assertEqual(replies[0]['status'], 'received')
        self.assertIn('timestamp', replies[0])
        self.assertNotIn('message', replies[0])
        record = AttendanceRecord.objects.get()
        self.assertEqual(record.device, self.device)
        self.assertEqual(record.reliability, 98)

    def test_airquality_frame_raises_alerts(self):
        frame = {
            'type': 'airquality',
            'deviceId': 'ESP32-101',
            'room': 'Lab',
            'pm25': 60,
            'co2': 850,
            'temperature': 23,
            'humidity': 45,
        }

        _, _, replies = exchange(frame)

        self.assertEqual(replies[0]['status'], 'received')
        self.assertEqual(AirQualityReading.objects.count(), 1)
        self.assertEqual(Alert.objects.count(), 2)

    def test_device_status_frame_auto_registers(self):
        _, _, replies = exchange({'type': 'device_status', 'deviceId': 'ESP32-NEW', 'battery': 64})

        self.assertEqual(replies[0]['status'], 'received')
        self.assertEqual(Device.objects.get(device_id='ESP32-NEW').battery, 64)

    def test_malformed_frame_does_not_close_the_connection(self):
        frame = {'type': 'device_status', 'deviceId': 'ESP32-101', 'battery': 50}

        _, _, replies = exchange('{not json', '[1, 2, 3]', frame)

        self.assertEqual(replies[0], {'status': 'error', 'message': 'Invalid message format', 'timestamp': replies[0]['timestamp']})
        self.assertEqual(replies[1]['message'], 'Invalid message format')
        self.assertEqual(replies[2]['status'], 'received')
        self.device.refresh_from_db()
        self.assertEqual(self.device.battery, 50)

    def test_unknown_message_type_is_acknowledged_without_effect(self):
        _, _, replies = exchange({'type': 'firmware_update', 'deviceId': 'ESP32-101'}, {'deviceId': 'ESP32-101'})

        self.assertEqual([reply['status'] for reply in replies], ['received', 'received'])
        self.assertFalse(AttendanceRecord.objects.exists())
        self.assertFalse(AirQualityReading.objects.exists())

    def test_non_string_message_type_is_treated_as_unknown(self):
        frame = {'type': 'device_status', 'deviceId': 'ESP32-101', 'battery': 30}

        _, _, replies = exchange({'type': ['attendance'], 'studentId': 'STU0001', 'deviceId': 'ESP32-101'}, frame)

        self.assertEqual([reply['status'] for reply in replies], ['received', 'received'])
        self.assertFalse(AttendanceRecord.objects.exists())
        self.device.refresh_from_db()
        self.assertEqual(self.device.battery, 30)

    def test_binary_frames_are_ignored(self):
        async def run():
            communicator = WebsocketCommunicator(application, '/ws/devices')
            await communicator.connect(timeout=5)
            await communicator.receive_json_from(timeout=5)
            await communicator.send_to(bytes_data=b'\x00\x01\x02')
            silent = await communicator.receive_nothing(timeout=0.5)
            await communicator.disconnect()
            return silent

        self.assertTrue(async_to_sync(run)())

    def test_rejected_message_gets_error_envelope(self):
        invalid = {'type': 'attendance', 'studentId': 'STU0001', 'deviceId': 'ESP32-101', 'fingerprintMatch': 'maybe'}
        missing_student = {'type': 'attendance', 'studentId': 'STU9999', 'deviceId': 'ESP32-101', 'fingerprintMatch': True}
        valid = {'type': 'attendance', 'studentId': 'STU0001', 'deviceId': 'ESP32-101', 'fingerprintMatch': True}

        _, _, replies = exchange(invalid, missing_student, valid)

        self.assertEqual(replies[0]['status'], 'error')
        self.assertEqual(replies[0]['message'], 'Fingerprint match must be boolean')
        self.assertEqual(replies[1]['message'], 'Student not found')
        self.assertEqual(replies[2]['status'], 'received')
        self.assertEqual(AttendanceRecord.objects.count(), 1)

    def test_persistence_failure_gets_generic_error_envelope(self):
        frame = {
            'type': 'airquality',
            'deviceId': 'ESP32-101',
            'room': 'Lab',
            'pm25': 10,
            'co2': 500,
            'temperature': 21,
            'humidity': 40,
        }

        with patch("airquality.services.evaluator.AirQualityReading.objects.create", side_effect=DatabaseError("locked")):
            _, _, replies = exchange(frame)

        self.assertEqual(replies[0]['status'], 'error')
        self.assertEqual(replies[0]['message'], 'Failed to store submission')

    def test_device_token_pins_identity_for_the_connection(self):
        token = issue_device_token('ESP32-101')
        frame = {'type': 'attendance', 'studentId': 'STU0001', 'deviceId': 'ESP32-102', 'fingerprintMatch': True}

        connected, _, replies = exchange(frame, path=f'/ws/devices?token={token}')

        self.assertTrue(connected)
        self.assertEqual(replies[0]['status'], 'received')
        self.assertEqual(AttendanceRecord.objects.get().device, self.device)

    def test_device_token_in_authorization_header(self):
        token = issue_device_token('ESP32-102')
        frame = {'type': 'device_status', 'deviceId': 'ESP32-101', 'battery': 33}

        _, _, replies = exchange(frame, headers=[(b'authorization', f'Bearer {token}'.encode())])

        self.assertEqual(replies[0]['status'], 'received')
        self.other_device.refresh_from_db()
        self.device.refresh_from_db()
        self.assertEqual(self.other_device.battery, 33)
        self.assertIsNone(self.device.battery)

    def test_invalid_token_rejects_the_handshake(self):
        connected, close_code, _ = exchange(path='/ws/devices?token=not-a-token')

        self.assertFalse(connected)
        self.assertEqual(close_code, 4403)

    def test_user_token_is_not_a_device_credential(self):
        user = get_user_model().objects.create_user(username='alice', email='alice@school.com', password='pwd12345')

        connected, close_code, _ = exchange(path=f'/ws/devices?token={issue_user_token(user)}')

        self.assertFalse(connected)
        self.assertEqual(close_code, 4403)


class HealthCheckTests(TestCase):
    def test_health_needs_no_credentials(self):
        response = self.client.get('/health')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'ok')
        self.assertIn('timestamp', response.json())


class EntryPointImportTests(SimpleTestCase):
    """Each entry point must import cleanly in a fresh interpreter, whatever module loads first."""

    def run_python(self, *args):
        env = {**os.environ, 'DJANGO_SETTINGS_MODULE': 'config.settings'}
        return subprocess.run(
            [sys.executable, *args],
            cwd=settings.BASE_DIR,
            env=env,
            capture_output=True,
            text=True,
            timeout=60,
        )

    def test_asgi_application_imports(self):
        result = self.run_python('-c', 'import config.asgi')

        self.assertEqual(result.returncode, 0, result.stderr)

    def test_rest_framework_views_import_before_authentication(self):
        result = self.run_python(
            '-c',
            'import django; django.setup(); import rest_framework.views; import accounts.authentication',
        )

        self.assertEqual(result.returncode, 0, result.stderr)

    def test_system_checks_pass(self):
        result = self.run_python('manage.py', 'check')

        self.assertEqual(result.returncode, 0, result.stderr)
