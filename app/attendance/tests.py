from datetime import datetime
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.tokens import issue_device_token, issue_user_token
from attendance.models import AttendanceRecord
from attendance.services.evaluator import derive_status, record_check_in
from core.exceptions import DeviceNotFound, StudentNotFound
from devices.models import Device
from students.models import Student


User = get_user_model()


def local_time(hour, minute, second=0, microsecond=0, day=2):
    return timezone.make_aware(datetime(2026, 2, day, hour, minute, second, microsecond))


class AttendanceStatusTests(APITestCase):
    def test_check_ins_up_to_cutoff_are_present(self):
        for moment in [local_time(0, 0), local_time(7, 45), local_time(8, 29, 59), local_time(8, 30, 0)]:
            self.assertEqual(derive_status(moment), AttendanceRecord.STATUS_PRESENT, moment)

    def test_check_ins_after_cutoff_are_late(self):
        for moment in [local_time(8, 30, 0, 1), local_time(8, 30, 1), local_time(9, 0), local_time(23, 59, 59)]:
            self.assertEqual(derive_status(moment), AttendanceRecord.STATUS_LATE, moment)

    @override_settings(CLASSTRACK_ATTENDANCE_CUTOFF="09:15")
    def test_cutoff_is_configurable(self):
        self.assertEqual(derive_status(local_time(9, 0)), AttendanceRecord.STATUS_PRESENT)
        self.assertEqual(derive_status(local_time(9, 16)), AttendanceRecord.STATUS_LATE)


class AttendanceEvaluatorTests(APITestCase):
    def setUp(self):
        self.student = Student.objects.create(student_id='STU0001', name='Ahmed Hassan', class_label='10-A')
        self.device = Device.objects.create(device_id='ESP32-101', name='Room 101 Sensor')

    def test_record_check_in_stores_status_and_defaults_reliability(self):
        record = record_check_in('STU0001', 'ESP32-101', True, now=local_time(8, 10))

        self.assertEqual(record.status, AttendanceRecord.STATUS_PRESENT)
        self.assertEqual(record.reliability, 98)
        self.assertEqual(record.student, self.student)
        self.assertEqual(record.device, self.device)
        self.device.refresh_from_db()
        self.assertEqual(self.device.last_seen_at, local_time(8, 10))

    def test_zero_reliability_is_kept(self):
        record = record_check_in('STU0001', 'ESP32-101', False, reliability=0, now=local_time(8, 10))

        self.assertEqual(record.reliability, 0)
        self.assertFalse(record.fingerprint_match)

    def test_unknown_student_is_checked_before_device(self):
        with self.assertRaises(StudentNotFound):
            record_check_in('STU9999', 'ESP32-404', True)

        self.assertFalse(AttendanceRecord.objects.exists())

    def test_unknown_device(self):
        with self.assertRaises(DeviceNotFound):
            record_check_in('STU0001', 'ESP32-404', True)

        self.assertFalse(AttendanceRecord.objects.exists())

    def test_repeated_check_ins_create_distinct_records(self):
        record_check_in('STU0001', 'ESP32-101', True, now=local_time(8, 0))
        record_check_in('STU0001', 'ESP32-101', True, now=local_time(12, 0))

        self.assertEqual(AttendanceRecord.objects.filter(student=self.student).count(), 2)

    @override_settings(CLASSTRACK_ATTENDANCE_DUPLICATE_POLICY="attendance.policies.OneCheckInPerDay")
    def test_one_check_in_per_day_policy_returns_first_record(self):
        first = record_check_in('STU0001', 'ESP32-101', True, now=local_time(8, 0))
        again = record_check_in('STU0001', 'ESP32-101', True, now=local_time(12, 0))
        next_day = record_check_in('STU0001', 'ESP32-101', True, now=local_time(8, 0, day=3))

        self.assertEqual(again.pk, first.pk)
        self.assertNotEqual(next_day.pk, first.pk)
        self.assertEqual(AttendanceRecord.objects.count(), 2)


class AttendanceEndpointTests(APITestCase):
    def setUp(self):
        self.student = Student.objects.create(student_id='STU0001', name='Ahmed Hassan', class_label='10-A')
        self.device = Device.objects.create(device_id='ESP32-101', name='Room 101 Sensor')
        self.other_device = Device.objects.create(device_id='ESP32-102', name='Room 102 Sensor')

    @patch("attendance.services.evaluator.timezone.now")
    def test_unauthenticated_check_in_returns_created_record(self, mock_now):
        mock_now.return_value = local_time(8, 45)

        response = self.client.post(
            '/api/attendance',
            {'studentId': 'STU0001', 'deviceId': 'ESP32-101', 'fingerprintMatch': True, 'reliability': 91},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'LATE')
        self.assertEqual(response.data['reliability'], 91)
        self.assertEqual(response.data['deviceId'], 'ESP32-101')
        self.assertEqual(response.data['student']['studentId'], 'STU0001')
        self.assertEqual(response.data['student']['class'], '10-A')

    def test_unknown_student_returns_404_without_record(self):
        response = self.client.post(
            '/api/attendance',
            {'studentId': 'STU9999', 'deviceId': 'ESP32-101', 'fingerprintMatch': True},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.json(), {'error': 'Student not found'})
        self.assertEqual(AttendanceRecord.objects.count(), 0)

    def test_unknown_device_returns_404(self):
        response = self.client.post(
            '/api/attendance',
            {'studentId': 'STU0001', 'deviceId': 'ESP32-404', 'fingerprintMatch': True},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.json(), {'error': 'Device not found'})

    def test_fingerprint_match_must_be_boolean(self):
        response = self.client.post(
            '/api/attendance',
            {'studentId': 'STU0001', 'deviceId': 'ESP32-101', 'fingerprintMatch': 'maybe'},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json(), {'error': 'Fingerprint match must be boolean'})
        self.assertEqual(AttendanceRecord.objects.count(), 0)

    def test_student_and_device_ids_are_required(self):
        response = self.client.post('/api/attendance', {'fingerprintMatch': True}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json(), {'error': 'Student ID is required'})

    def test_device_variant_uses_device_id_from_token(self):
        token = issue_device_token('ESP32-101')

        response = self.client.post(
            '/api/attendance/device',
            {'studentId': 'STU0001', 'deviceId': 'ESP32-102', 'fingerprintMatch': True},
            format='json',
            HTTP_AUTHORIZATION=f'Bearer {token}',
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['deviceId'], 'ESP32-101')
        record = AttendanceRecord.objects.get()
        self.assertEqual(record.device, self.device)
        self.assertFalse(AttendanceRecord.objects.filter(device=self.other_device).exists())

    def test_device_variant_does_not_require_device_id_in_body(self):
        token = issue_device_token('ESP32-102')

        response = self.client.post(
            '/api/attendance/device',
            {'studentId': 'STU0001', 'fingerprintMatch': False},
            format='json',
            HTTP_AUTHORIZATION=f'Bearer {token}',
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(AttendanceRecord.objects.get().device, self.other_device)

    def test_device_variant_requires_token(self):
        response = self.client.post(
            '/api/attendance/device',
            {'studentId': 'STU0001', 'fingerprintMatch': True},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json(), {'error': 'Access token required'})

    def test_device_variant_rejects_invalid_token(self):
        response = self.client.post(
            '/api/attendance/device',
            {'studentId': 'STU0001', 'fingerprintMatch': True},
            format='json',
            HTTP_AUTHORIZATION='Bearer abc.def.ghi',
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.json(), {'error': 'Invalid or expired token'})
        self.assertEqual(AttendanceRecord.objects.count(), 0)

    def test_device_variant_with_token_for_deleted_device_returns_404(self):
        token = issue_device_token('ESP32-GONE')

        response = self.client.post(
            '/api/attendance/device',
            {'studentId': 'STU0001', 'fingerprintMatch': True},
            format='json',
            HTTP_AUTHORIZATION=f'Bearer {token}',
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.json(), {'error': 'Device not found'})


class AttendanceDashboardTests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='alice', email='alice@school.com', password='pwd12345')
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {issue_user_token(self.user)}')
        self.device = Device.objects.create(device_id='ESP32-101', name='Room 101 Sensor')
        Student.objects.create(student_id='STU0001', name='Ahmed Hassan', class_label='10-A')
        Student.objects.create(student_id='STU0002', name='Sara Ali', class_label='10-B')

    def absent(self, student_id, moment):
        return AttendanceRecord.objects.create(
            student=Student.objects.get(student_id=student_id),
            device=self.device,
            check_in_time=moment,
            status=AttendanceRecord.STATUS_ABSENT,
            fingerprint_match=False,
        )

    def test_records_are_listed_newest_first(self):
        record_check_in('STU0001', 'ESP32-101', True, now=local_time(8, 0))
        record_check_in('STU0002', 'ESP32-101', True, now=local_time(9, 0))

        response = self.client.get('/api/attendance')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([record['student']['studentId'] for record in response.data], ['STU0002', 'STU0001'])
        self.assertEqual([record['status'] for record in response.data], ['LATE', 'PRESENT'])

    def test_records_can_be_filtered_by_date_and_class(self):
        record_check_in('STU0001', 'ESP32-101', True, now=local_time(8, 0))
        record_check_in('STU0002', 'ESP32-101', True, now=local_time(8, 5))
        record_check_in('STU0001', 'ESP32-101', True, now=local_time(8, 0, day=3))

        by_date = self.client.get('/api/attendance', {'date': '2026-02-02'})
        by_class = self.client.get('/api/attendance', {'class': '10-A'})
        every_class = self.client.get('/api/attendance', {'class': 'all', 'date': '2026-02-02'})

        self.assertEqual(len(by_date.data), 2)
        self.assertEqual({record['student']['class'] for record in by_class.data}, {'10-A'})
        self.assertEqual(len(by_class.data), 2)
        self.assertEqual(len(every_class.data), 2)

    def test_malformed_date_is_rejected(self):
        response = self.client.get('/api/attendance', {'date': '02/02/2026'})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json(), {'error': 'Date must be formatted as YYYY-MM-DD'})

    def test_reads_require_user_token_but_check_ins_do_not(self):
        self.client.credentials()

        listing = self.client.get('/api/attendance')
        stats = self.client.get('/api/attendance/stats')
        check_in = self.client.post(
            '/api/attendance',
            {'studentId': 'STU0001', 'deviceId': 'ESP32-101', 'fingerprintMatch': True},
            format='json',
        )

        self.assertEqual(listing.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(stats.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(check_in.status_code, status.HTTP_201_CREATED)

    def test_stats_count_statuses_and_present_rate(self):
        record_check_in('STU0001', 'ESP32-101', True, now=local_time(8, 0))
        record_check_in('STU0002', 'ESP32-101', True, now=local_time(8, 10))
        record_check_in('STU0001', 'ESP32-101', True, now=local_time(9, 0))
        self.absent('STU0002', local_time(9, 0, day=5))

        everything = self.client.get('/api/attendance/stats')
        first_day = self.client.get(
            '/api/attendance/stats',
            {'startDate': local_time(0, 0).isoformat(), 'endDate': local_time(23, 59).isoformat()},
        )

        self.assertEqual(everything.status_code, status.HTTP_200_OK)
        self.assertEqual(
            everything.data,
            {'total': 4, 'present': 2, 'absent': 1, 'late': 1, 'presentRate': '50.0'},
        )
        self.assertEqual(first_day.data['total'], 3)
        self.assertEqual(first_day.data['presentRate'], '66.7')

    def test_stats_without_records(self):
        response = self.client.get('/api/attendance/stats')

        self.assertEqual(response.data, {'total': 0, 'present': 0, 'absent': 0, 'late': 0, 'presentRate': '0.0'})

    def test_student_history_is_newest_first_and_limited(self):
        for hour in (7, 8, 9):
            record_check_in('STU0001', 'ESP32-101', True, now=local_time(hour, 0))
        record_check_in('STU0002', 'ESP32-101', True, now=local_time(10, 0))

        history = self.client.get('/api/attendance/student/STU0001')
        limited = self.client.get('/api/attendance/student/STU0001', {'limit': 2})

        self.assertEqual(history.status_code, status.HTTP_200_OK)
        self.assertEqual([record['status'] for record in history.data], ['LATE', 'PRESENT', 'PRESENT'])
        self.assertEqual({record['student']['studentId'] for record in history.data}, {'STU0001'})
        self.assertEqual(len(limited.data), 2)

    def test_history_for_unknown_student_returns_404(self):
        response = self.client.get('/api/attendance/student/STU9999')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.json(), {'error': 'Student not found'})
