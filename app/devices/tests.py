import threading
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import connection
from django.test import TransactionTestCase
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.tokens import issue_device_token, issue_user_token, verify_device_token
from core.exceptions import DeviceNotFound, DuplicateDevice
from devices.models import Device
from devices.services import registry


User = get_user_model()


class DeviceRegistryTests(APITestCase):
    def test_find_by_device_id_raises_for_unknown_device(self):
        with self.assertRaises(DeviceNotFound):
            registry.find_by_device_id('ESP32-404')

    def test_register_rejects_duplicate_identifier(self):
        registry.register('ESP32-101', 'Room 101 Sensor', Device.TYPE_FINGERPRINT_SCANNER, 'Room 101')

        with self.assertRaises(DuplicateDevice):
            registry.register('ESP32-101', 'Other', Device.TYPE_MULTI_SENSOR, 'Lab')

        self.assertEqual(Device.objects.filter(device_id='ESP32-101').count(), 1)

    def test_upsert_status_auto_registers_unknown_device(self):
        device = registry.upsert_status('ESP32-NEW', battery=80)

        self.assertEqual(device.name, 'ESP32-NEW')
        self.assertEqual(device.device_type, Device.TYPE_MULTI_SENSOR)
        self.assertEqual(device.location, 'Unassigned')
        self.assertEqual(device.firmware_version, 'unknown')
        self.assertEqual(device.status, Device.STATUS_ONLINE)
        self.assertEqual(device.battery, 80)
        self.assertIsNotNone(device.last_seen_at)

    def test_repeated_pings_for_unknown_device_create_one_row(self):
        registry.upsert_status('ESP32-NEW')
        registry.upsert_status('ESP32-NEW', status='maintenance')
        registry.upsert_status('ESP32-NEW', battery=55)

        self.assertEqual(Device.objects.filter(device_id='ESP32-NEW').count(), 1)
        device = Device.objects.get(device_id='ESP32-NEW')
        self.assertEqual(device.battery, 55)
        self.assertEqual(device.status, Device.STATUS_ONLINE)

    def test_upsert_status_keeps_fields_that_were_not_reported(self):
        registry.upsert_status('ESP32-101', battery=90, signal=-60, uptime='3 days')
        device = registry.upsert_status('ESP32-101', status='offline')

        device.refresh_from_db()
        self.assertEqual(device.battery, 90)
        self.assertEqual(device.signal, -60)
        self.assertEqual(device.signal_unit, Device.SIGNAL_UNIT_DBM)
        self.assertEqual(device.uptime, '3 days')
        self.assertEqual(device.status, Device.STATUS_OFFLINE)

    def test_provision_is_idempotent_but_mints_a_new_token_each_time(self):
        device_a, token_a = registry.provision('ESP32-LAB', name='Lab Sensor', location='Lab')
        device_b, token_b = registry.provision('ESP32-LAB', name='Renamed')

        self.assertEqual(device_a.pk, device_b.pk)
        self.assertEqual(Device.objects.filter(device_id='ESP32-LAB').count(), 1)
        self.assertEqual(device_b.name, 'Lab Sensor')
        self.assertEqual(device_a.status, Device.STATUS_OFFLINE)
        self.assertNotEqual(token_a, token_b)
        self.assertEqual(verify_device_token(token_b).device_id, 'ESP32-LAB')

    def test_provision_logs_whether_the_device_was_new(self):
        with self.assertLogs('devices.services.registry', level='INFO') as logs:
            registry.provision('ESP32-LAB')
            registry.provision('ESP32-LAB')

        self.assertEqual([record.device_created for record in logs.records], [True, False])
        self.assertEqual({record.device_id for record in logs.records}, {'ESP32-LAB'})


class ConcurrentStatusPingTests(TransactionTestCase):
    def test_simultaneous_pings_for_unknown_device_create_one_row(self):
        workers = 6
        start = threading.Barrier(workers)
        errors = []

        def ping(battery):
            try:
                start.wait(timeout=10)
                registry.upsert_status('ESP32-NEW', battery=battery)
            except Exception as exc:
                errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=ping, args=(40 + index,)) for index in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        self.assertEqual(errors, [])
        self.assertEqual(Device.objects.filter(device_id='ESP32-NEW').count(), 1)
        device = Device.objects.get(device_id='ESP32-NEW')
        self.assertEqual(device.status, Device.STATUS_ONLINE)
        self.assertIn(device.battery, range(40, 40 + workers))


class DeviceStatusEndpointTests(APITestCase):
    def test_status_ping_auto_registers_and_uppercases_status(self):
        response = self.client.post(
            '/api/devices/status',
            {'deviceId': 'ESP32-201', 'battery': 76, 'signal': -67, 'uptime': '2 days', 'status': 'maintenance'},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['deviceId'], 'ESP32-201')
        self.assertEqual(response.data['status'], 'MAINTENANCE')
        self.assertEqual(response.data['signal'], -67)
        self.assertEqual(response.data['signalUnit'], 'dBm')
        self.assertEqual(Device.objects.filter(device_id='ESP32-201').count(), 1)

    def test_status_defaults_to_online(self):
        Device.objects.create(device_id='ESP32-101', name='Room 101 Sensor', status=Device.STATUS_OFFLINE)

        response = self.client.post('/api/devices/status', {'deviceId': 'ESP32-101'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'ONLINE')
        self.assertEqual(response.data['name'], 'Room 101 Sensor')

    def test_battery_must_be_between_0_and_100(self):
        response = self.client.post('/api/devices/status', {'deviceId': 'ESP32-101', 'battery': 120}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json(), {'error': 'Battery must be between 0 and 100'})
        self.assertFalse(Device.objects.exists())

    def test_rssi_signal_must_be_between_minus_120_and_0(self):
        response = self.client.post('/api/devices/status', {'deviceId': 'ESP32-101', 'signal': 85}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json(), {'error': 'Signal (RSSI dBm) must be between -120 and 0'})
        self.assertFalse(Device.objects.exists())

    def test_percentage_signal_is_stored_with_its_unit(self):
        response = self.client.post(
            '/api/devices/status',
            {'deviceId': 'ESP32-101', 'signal': 85, 'signalUnit': 'percent'},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        device = Device.objects.get(device_id='ESP32-101')
        self.assertEqual(device.signal, 85)
        self.assertEqual(device.signal_unit, Device.SIGNAL_UNIT_PERCENT)

    def test_unknown_status_value_is_rejected(self):
        response = self.client.post('/api/devices/status', {'deviceId': 'ESP32-101', 'status': 'sleeping'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_device_id_is_required(self):
        response = self.client.post('/api/devices/status', {'battery': 50}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json(), {'error': 'Device ID is required'})

    def test_status_ignores_authorization_header(self):
        response = self.client.post(
            '/api/devices/status',
            {'deviceId': 'ESP32-101'},
            format='json',
            HTTP_AUTHORIZATION='Bearer not-a-token',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(Device.objects.filter(device_id='ESP32-101').exists())


class DeviceProvisionEndpointTests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='alice', email='alice@school.com', password='pwd12345')
        self.auth = f'Bearer {issue_user_token(self.user)}'

    def test_provision_requires_user_token(self):
        response = self.client.post('/api/devices/provision', {'deviceId': 'ESP32-101'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json(), {'error': 'Access token required'})
        self.assertFalse(Device.objects.exists())

    def test_provision_rejects_invalid_token(self):
        response = self.client.post(
            '/api/devices/provision',
            {'deviceId': 'ESP32-101'},
            format='json',
            HTTP_AUTHORIZATION='Bearer garbage',
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.json(), {'error': 'Invalid or expired token'})

    def test_provision_rejects_device_token(self):
        response = self.client.post(
            '/api/devices/provision',
            {'deviceId': 'ESP32-101'},
            format='json',
            HTTP_AUTHORIZATION=f'Bearer {issue_device_token("ESP32-101")}',
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_provision_creates_offline_device_and_returns_token(self):
        response = self.client.post(
            '/api/devices/provision',
            {'deviceId': 'ESP32-101', 'name': 'Room 101 Sensor', 'type': 'FINGERPRINT_SCANNER', 'location': 'Room 101'},
            format='json',
            HTTP_AUTHORIZATION=self.auth,
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['device']['status'], 'OFFLINE')
        self.assertEqual(response.data['device']['type'], 'FINGERPRINT_SCANNER')
        self.assertEqual(verify_device_token(response.data['deviceToken']).device_id, 'ESP32-101')

    def test_repeated_provisioning_keeps_one_device(self):
        first = self.client.post('/api/devices/provision', {'deviceId': 'ESP32-101'}, format='json', HTTP_AUTHORIZATION=self.auth)
        second = self.client.post('/api/devices/provision', {'deviceId': 'ESP32-101'}, format='json', HTTP_AUTHORIZATION=self.auth)

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertEqual(Device.objects.filter(device_id='ESP32-101').count(), 1)
        self.assertNotEqual(first.data['deviceToken'], second.data['deviceToken'])


class DeviceCollectionEndpointTests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='alice', email='alice@school.com', password='pwd12345')
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {issue_user_token(self.user)}')

    def test_register_device(self):
        payload = {
            'deviceId': 'ESP32-101',
            'name': 'Room 101 Sensor',
            'type': 'FINGERPRINT_SCANNER',
            'location': 'Room 101',
        }

        response = self.client.post('/api/devices', payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        device = Device.objects.get(device_id='ESP32-101')
        self.assertEqual(device.firmware_version, 'v2.1.3')
        self.assertEqual(device.device_type, Device.TYPE_FINGERPRINT_SCANNER)

    def test_register_duplicate_device_returns_400(self):
        Device.objects.create(device_id='ESP32-101', name='Existing')
        payload = {'deviceId': 'ESP32-101', 'name': 'Again', 'type': 'MULTI_SENSOR', 'location': 'Lab'}

        response = self.client.post('/api/devices', payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json(), {'error': 'Device ID already exists'})

    def test_register_rejects_unknown_type(self):
        payload = {'deviceId': 'ESP32-101', 'name': 'X', 'type': 'TOASTER', 'location': 'Lab'}

        response = self.client.post('/api/devices', payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json(), {'error': 'Invalid device type'})

    def test_list_filters_by_status(self):
        Device.objects.create(device_id='ESP32-101', name='A', status=Device.STATUS_ONLINE)
        Device.objects.create(device_id='ESP32-102', name='B', status=Device.STATUS_OFFLINE)

        response = self.client.get('/api/devices?status=online')
        everything = self.client.get('/api/devices?status=all')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item['deviceId'] for item in response.data], ['ESP32-101'])
        self.assertEqual(len(everything.data), 2)


class ProvisionDeviceCommandTests(APITestCase):
    def test_command_prints_a_valid_device_token(self):
        stdout = StringIO()

        call_command('provision_device', 'ESP32-CLI', '--type', 'air_quality_sensor', '--location', 'Lab', stdout=stdout)

        token = stdout.getvalue().strip().splitlines()[-1]
        self.assertEqual(verify_device_token(token).device_id, 'ESP32-CLI')
        self.assertEqual(Device.objects.get(device_id='ESP32-CLI').device_type, Device.TYPE_AIR_QUALITY_SENSOR)

    def test_command_rejects_unknown_type(self):
        with self.assertRaises(CommandError) as exc:
            call_command('provision_device', 'ESP32-CLI', '--type', 'toaster')

        self.assertIn("Unknown device type", str(exc.exception))
