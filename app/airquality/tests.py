from datetime import timedelta
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.tokens import issue_device_token, issue_user_token
from airquality.models import AirQualityReading, Alert
from airquality.policies import RoomMetricCooldown
from airquality.services.evaluator import record_reading
from airquality.services.thresholds import classify_room_quality, evaluate_thresholds
from core.exceptions import DeviceNotFound
from core.numbers import format_fixed, round_half_up
from devices.models import Device


User = get_user_model()


class ThresholdTests(APITestCase):
    def test_co2_bands(self):
        cases = [
            (400, []),
            (800, []),
            (801, [Alert.SEVERITY_WARNING]),
            (1000, [Alert.SEVERITY_WARNING]),
            (1001, [Alert.SEVERITY_CRITICAL]),
        ]
        for co2, expected in cases:
            alerts = evaluate_thresholds('Room 101', 10, co2)
            self.assertEqual([alert.severity for alert in alerts], expected, co2)
            for alert in alerts:
                self.assertEqual(alert.threshold, '800 ppm')
                self.assertEqual(alert.metric, 'CO₂')

    def test_pm25_bands(self):
        cases = [
            (0, []),
            (50, []),
            (50.1, [Alert.SEVERITY_WARNING]),
            (75, [Alert.SEVERITY_WARNING]),
            (75.5, [Alert.SEVERITY_CRITICAL]),
        ]
        for pm25, expected in cases:
            alerts = evaluate_thresholds('Room 101', pm25, 400)
            self.assertEqual([alert.severity for alert in alerts], expected, pm25)
            for alert in alerts:
                self.assertEqual(alert.threshold, '50 µg/m³')
                self.assertEqual(alert.metric, 'PM2.5')

    def test_critical_messages(self):
        co2_alert, pm25_alert = evaluate_thresholds('Lab', 80.25, 1200)

        self.assertEqual(co2_alert.message, 'Lab CO₂ level critical (1200 ppm)')
        self.assertEqual(co2_alert.value, '1200 ppm')
        self.assertEqual(pm25_alert.message, 'Lab PM2.5 level critical (80.3 µg/m³)')
        self.assertEqual(pm25_alert.alert_type, Alert.TYPE_AIR_QUALITY)

    def test_pm25_value_rounds_half_up(self):
        (alert,) = evaluate_thresholds('Lab', 50.25, 400)

        self.assertEqual(alert.message, 'Lab PM2.5 level exceeded threshold (50.3 µg/m³)')
        self.assertEqual(alert.value, '50.3 µg/m³')

    def test_round_half_up_breaks_ties_away_from_zero(self):
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(0.25, 1), 0.3)
        self.assertEqual(format_fixed(80.25, 1), '80.3')
        self.assertEqual(format_fixed(60, 1), '60.0')

    def test_room_quality_uses_display_bands(self):
        self.assertEqual(classify_room_quality(20, 600), 'Good')
        self.assertEqual(classify_room_quality(35, 600), 'Moderate')
        self.assertEqual(classify_room_quality(40, 900), 'Moderate')
        self.assertEqual(classify_room_quality(55, 600), 'Poor')
        self.assertEqual(classify_room_quality(20, 1000), 'Poor')
        self.assertEqual(classify_room_quality(None, None), 'Unknown')


class EnvironmentalEvaluatorTests(APITestCase):
    def setUp(self):
        self.device = Device.objects.create(device_id='ESP32-LAB', name='Lab Sensor', location='Lab')

    def test_unknown_device_writes_nothing(self):
        with self.assertRaises(DeviceNotFound):
            record_reading('ESP32-404', 'Lab', 90, 1500, 23, 45)

        self.assertFalse(AirQualityReading.objects.exists())
        self.assertFalse(Alert.objects.exists())

    def test_reading_within_bounds_raises_no_alert(self):
        reading = record_reading('ESP32-LAB', 'Lab', 12.5, 650, 22.4, 48)

        self.assertEqual(reading.device, self.device)
        self.assertFalse(Alert.objects.exists())
        self.device.refresh_from_db()
        self.assertEqual(self.device.last_seen_at, reading.timestamp)

    def test_every_over_threshold_reading_raises_a_new_alert(self):
        record_reading('ESP32-LAB', 'Lab', 10, 900, 22, 40)
        record_reading('ESP32-LAB', 'Lab', 10, 900, 22, 40)

        self.assertEqual(Alert.objects.count(), 2)

    def test_alert_write_failure_keeps_reading(self):
        with patch("airquality.services.alert_sink.Alert.objects.bulk_create", side_effect=DatabaseError("disk full")):
            reading = record_reading('ESP32-LAB', 'Lab', 60, 850, 23, 45)

        self.assertTrue(AirQualityReading.objects.filter(pk=reading.pk).exists())
        self.assertFalse(Alert.objects.exists())

    @override_settings(CLASSTRACK_ALERT_SUPPRESSION_POLICY="airquality.policies.RoomMetricCooldown")
    def test_cooldown_policy_suppresses_repeats_per_room_and_metric(self):
        record_reading('ESP32-LAB', 'Lab', 60, 850, 23, 45)
        record_reading('ESP32-LAB', 'Lab', 60, 850, 23, 45)
        record_reading('ESP32-LAB', 'Room 101', 10, 850, 23, 45)

        self.assertEqual(Alert.objects.filter(room='Lab').count(), 2)
        self.assertEqual(Alert.objects.filter(room='Room 101').count(), 1)

    def test_cooldown_policy_allows_alert_after_resolution_or_window(self):
        policy = RoomMetricCooldown(cooldown=timedelta(minutes=10))
        existing = Alert.objects.create(
            alert_type=Alert.TYPE_AIR_QUALITY,
            severity=Alert.SEVERITY_WARNING,
            message='Lab CO₂ level exceeded threshold (850 ppm)',
            room='Lab',
            metric='CO₂',
        )
        candidates = evaluate_thresholds('Lab', 10, 850)

        self.assertEqual(policy.filter(candidates, timezone.now()), [])
        self.assertEqual(len(policy.filter(candidates, timezone.now() + timedelta(minutes=30))), 1)

        existing.resolved = True
        existing.save(update_fields=['resolved'])
        self.assertEqual(len(policy.filter(candidates, timezone.now())), 1)


class AirQualityEndpointTests(APITestCase):
    def setUp(self):
        self.device = Device.objects.create(device_id='ESP32-LAB', name='Lab Sensor', location='Lab')
        self.other_device = Device.objects.create(device_id='ESP32-101', name='Room 101 Sensor', location='Room 101')

    def test_reading_over_both_thresholds_raises_two_warnings(self):
        payload = {'deviceId': 'ESP32-LAB', 'room': 'Lab', 'pm25': 60, 'co2': 850, 'temperature': 23, 'humidity': 45}

        response = self.client.post('/api/airquality', payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['room'], 'Lab')
        self.assertEqual(response.data['co2'], 850)
        self.assertNotIn('alerts', response.data)
        self.assertEqual(AirQualityReading.objects.count(), 1)

        messages = sorted(Alert.objects.values_list('message', flat=True))
        self.assertEqual(
            messages,
            [
                'Lab CO₂ level exceeded threshold (850 ppm)',
                'Lab PM2.5 level exceeded threshold (60.0 µg/m³)',
            ],
        )
        self.assertEqual(set(Alert.objects.values_list('severity', flat=True)), {Alert.SEVERITY_WARNING})
        self.assertFalse(Alert.objects.filter(resolved=True).exists())

    def test_unknown_device_returns_404(self):
        payload = {'deviceId': 'ESP32-404', 'room': 'Lab', 'pm25': 60, 'co2': 850, 'temperature': 23, 'humidity': 45}

        response = self.client.post('/api/airquality', payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.json(), {'error': 'Device not found'})
        self.assertFalse(AirQualityReading.objects.exists())

    def test_validation_rejects_out_of_range_values(self):
        base = {'deviceId': 'ESP32-LAB', 'room': 'Lab', 'pm25': 10, 'co2': 500, 'temperature': 23, 'humidity': 45}
        cases = [
            ({'humidity': 101}, 'Humidity must be between 0 and 100'),
            ({'pm25': -1}, 'PM2.5 must be a positive number'),
            ({'co2': 500.5}, 'CO2 must be a positive integer'),
            ({'co2': -3}, 'CO2 must be a positive integer'),
            ({'temperature': 'warm'}, 'Temperature must be a number'),
            ({'room': ''}, 'Room is required'),
        ]
        for override, message in cases:
            response = self.client.post('/api/airquality', {**base, **override}, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, override)
            self.assertEqual(response.json(), {'error': message})

        self.assertFalse(AirQualityReading.objects.exists())

    def test_device_variant_ignores_device_id_in_body(self):
        token = issue_device_token('ESP32-LAB')
        payload = {'deviceId': 'ESP32-101', 'room': 'Lab', 'pm25': 12, 'co2': 500, 'temperature': 21, 'humidity': 40}

        response = self.client.post(
            '/api/airquality/device',
            payload,
            format='json',
            HTTP_AUTHORIZATION=f'Bearer {token}',
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['deviceId'], 'ESP32-LAB')
        self.assertEqual(AirQualityReading.objects.get().device, self.device)

    def test_device_variant_rejects_user_token(self):
        user = User.objects.create_user(username='alice', email='alice@school.com', password='pwd12345')
        payload = {'room': 'Lab', 'pm25': 12, 'co2': 500, 'temperature': 21, 'humidity': 40}

        response = self.client.post(
            '/api/airquality/device',
            payload,
            format='json',
            HTTP_AUTHORIZATION=f'Bearer {issue_user_token(user)}',
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.json(), {'error': 'Invalid device token'})
        self.assertFalse(AirQualityReading.objects.exists())

    def test_persistence_failure_returns_opaque_500(self):
        payload = {'deviceId': 'ESP32-LAB', 'room': 'Lab', 'pm25': 12, 'co2': 500, 'temperature': 21, 'humidity': 40}

        with patch("airquality.services.evaluator.AirQualityReading.objects.create", side_effect=DatabaseError("locked")):
            response = self.client.post('/api/airquality', payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.json(), {'error': 'Failed to store submission'})


class DashboardReadTests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='alice', email='alice@school.com', password='pwd12345')
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {issue_user_token(self.user)}')
        self.device = Device.objects.create(device_id='ESP32-LAB', name='Lab Sensor', location='Lab')

    def test_rooms_are_classified_from_latest_reading(self):
        now = timezone.now()
        record_reading('ESP32-LAB', 'Lab', 80, 1200, 24, 50, now=now - timedelta(hours=1))
        record_reading('ESP32-LAB', 'Lab', 20, 600, 22, 40, now=now)
        record_reading('ESP32-LAB', 'Room 101', 40, 900, 23, 45, now=now)

        response = self.client.get('/api/airquality/rooms')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rooms = {room['name']: room for room in response.data}
        self.assertEqual(rooms['Lab']['quality'], 'Good')
        self.assertEqual(rooms['Lab']['average24h']['pm25'], 50.0)
        self.assertEqual(rooms['Lab']['average24h']['co2'], 900)
        self.assertEqual(rooms['Room 101']['quality'], 'Moderate')

    def test_rooms_require_user_token(self):
        self.client.credentials()

        response = self.client.get('/api/airquality/rooms')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_alerts_can_be_filtered_by_resolution(self):
        record_reading('ESP32-LAB', 'Lab', 60, 850, 23, 45)
        Alert.objects.filter(metric='CO₂').update(resolved=True)

        open_alerts = self.client.get('/api/alerts?resolved=false')
        all_alerts = self.client.get('/api/alerts')

        self.assertEqual(open_alerts.status_code, status.HTTP_200_OK)
        self.assertEqual([alert['metric'] for alert in open_alerts.data], ['PM2.5'])
        self.assertEqual(len(all_alerts.data), 2)

    def test_readings_are_listed_newest_first_and_filtered_by_room(self):
        now = timezone.now()
        record_reading('ESP32-LAB', 'Lab', 10, 500, 21, 40, now=now - timedelta(minutes=2))
        record_reading('ESP32-LAB', 'Lab', 12, 520, 21, 41, now=now - timedelta(minutes=1))
        record_reading('ESP32-LAB', 'Room 101', 14, 540, 22, 42, now=now)

        everything = self.client.get('/api/airquality')
        lab = self.client.get('/api/airquality', {'room': 'Lab'})

        self.assertEqual(everything.status_code, status.HTTP_200_OK)
        self.assertEqual([reading['room'] for reading in everything.data], ['Room 101', 'Lab', 'Lab'])
        self.assertEqual([reading['co2'] for reading in lab.data], [520, 500])
        self.assertEqual(lab.data[0]['deviceId'], 'ESP32-LAB')

    def test_readings_honor_limit_and_date_range(self):
        now = timezone.now()
        record_reading('ESP32-LAB', 'Lab', 10, 400, 21, 40, now=now - timedelta(days=3))
        record_reading('ESP32-LAB', 'Lab', 10, 500, 21, 40, now=now - timedelta(hours=2))
        record_reading('ESP32-LAB', 'Lab', 10, 600, 21, 40, now=now - timedelta(hours=1))

        limited = self.client.get('/api/airquality', {'limit': 1})
        recent = self.client.get('/api/airquality', {'startDate': (now - timedelta(days=1)).isoformat()})
        older = self.client.get('/api/airquality', {'endDate': (now - timedelta(days=1)).isoformat()})

        self.assertEqual([reading['co2'] for reading in limited.data], [600])
        self.assertEqual([reading['co2'] for reading in recent.data], [600, 500])
        self.assertEqual([reading['co2'] for reading in older.data], [400])

    def test_reading_list_rejects_bad_query(self):
        cases = [
            ({'limit': 0}, 'Limit must be a positive integer'),
            ({'limit': 'many'}, 'Limit must be a positive integer'),
            ({'startDate': 'yesterday'}, 'Start date must be an ISO 8601 date'),
            (
                {'startDate': '2026-02-01T00:00:00Z', 'endDate': '2026-01-01T00:00:00Z'},
                'Start date must not be after end date',
            ),
        ]
        for params, message in cases:
            response = self.client.get('/api/airquality', params)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, params)
            self.assertEqual(response.json(), {'error': message})

    def test_reading_list_requires_user_token(self):
        self.client.credentials()

        response = self.client.get('/api/airquality')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json(), {'error': 'Access token required'})

    def test_stats_summarise_readings(self):
        record_reading('ESP32-LAB', 'Lab', 10, 400, 20, 40)
        record_reading('ESP32-LAB', 'Room 101', 30.5, 800, 23.5, 51)

        response = self.client.get('/api/airquality/stats')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['average'], {'pm25': 20.3, 'co2': 600, 'temperature': 21.8, 'humidity': 46})
        self.assertEqual(response.data['max'], {'pm25': 30.5, 'co2': 800, 'temperature': 23.5})
        self.assertEqual(response.data['min'], {'pm25': 10.0, 'co2': 400, 'temperature': 20.0})

    def test_stats_are_zero_without_readings(self):
        response = self.client.get('/api/airquality/stats', {'startDate': '2026-01-01T00:00:00Z'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['average'], {'pm25': 0, 'co2': 0, 'temperature': 0, 'humidity': 0})
        self.assertEqual(response.data['max'], {'pm25': 0, 'co2': 0, 'temperature': 0})
