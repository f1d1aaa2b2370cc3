from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import override_settings
from rest_framework import status
from rest_framework.test import APITestCase
from rest_framework_simplejwt.backends import TokenBackend

from accounts.tokens import (
    DeviceToken,
    issue_device_token,
    issue_user_token,
    verify,
    verify_device_token,
    verify_user_token,
)
from core.exceptions import InvalidDeviceToken, InvalidOrExpiredToken


User = get_user_model()


class CredentialServiceTests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='alice', email='alice@school.com', password='pwd12345')
        self.admin = User.objects.create_user(
            username='admin',
            email='admin@school.com',
            password='pwd12345',
            is_staff=True,
        )

    def test_user_token_carries_id_email_and_role(self):
        claims = verify_user_token(issue_user_token(self.user))

        self.assertEqual(str(claims['user_id']), str(self.user.pk))
        self.assertEqual(claims['email'], 'alice@school.com')
        self.assertEqual(claims['role'], 'TEACHER')
        self.assertEqual(verify_user_token(issue_user_token(self.admin))['role'], 'ADMIN')

    def test_device_token_carries_only_the_device_identity(self):
        identity = verify_device_token(issue_device_token('ESP32-101'))

        self.assertEqual(identity.device_id, 'ESP32-101')
        claims = verify(issue_device_token('ESP32-101'))
        self.assertNotIn('user_id', claims)
        self.assertNotIn('email', claims)

    def test_device_token_outlives_user_token(self):
        user_claims = verify(issue_user_token(self.user))
        device_claims = verify(issue_device_token('ESP32-101'))

        self.assertGreater(device_claims['exp'] - device_claims['iat'], user_claims['exp'] - user_claims['iat'])

    @override_settings(CLASSTRACK_DEVICE_TOKEN_LIFETIME=timedelta(days=30))
    def test_device_token_lifetime_is_configurable(self):
        claims = verify(issue_device_token('ESP32-101'))

        self.assertEqual(claims['exp'] - claims['iat'], 30 * 24 * 3600)

    def test_expired_token_is_rejected(self):
        token = DeviceToken()
        token['device_id'] = 'ESP32-101'
        token.set_exp(from_time=token.current_time - timedelta(days=2), lifetime=timedelta(days=1))

        with self.assertRaises(InvalidOrExpiredToken):
            verify_device_token(str(token))

    def test_token_signed_with_another_key_is_rejected(self):
        claims = verify(issue_device_token('ESP32-101'))
        forged = TokenBackend('HS256', signing_key='not-the-server-secret').encode(claims)

        with self.assertRaises(InvalidOrExpiredToken):
            verify_device_token(forged)

    def test_token_kinds_are_not_interchangeable(self):
        with self.assertRaises(InvalidDeviceToken):
            verify_device_token(issue_user_token(self.user))
        with self.assertRaises(InvalidOrExpiredToken):
            verify_user_token(issue_device_token('ESP32-101'))

    def test_reissued_device_tokens_differ_and_both_stay_valid(self):
        first = issue_device_token('ESP32-101')
        second = issue_device_token('ESP32-101')

        self.assertNotEqual(first, second)
        self.assertEqual(verify_device_token(first).device_id, 'ESP32-101')
        self.assertEqual(verify_device_token(second).device_id, 'ESP32-101')


class LoginTests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='alice', email='alice@school.com', password='pwd12345')

    def test_login_returns_user_token(self):
        response = self.client.post(
            '/api/auth/login',
            {'email': 'alice@school.com', 'password': 'pwd12345'},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['email'], 'alice@school.com')
        self.assertEqual(response.data['user']['role'], 'TEACHER')
        self.assertEqual(verify_user_token(response.data['token'])['email'], 'alice@school.com')

    def test_login_rejects_wrong_password(self):
        response = self.client.post(
            '/api/auth/login',
            {'email': 'alice@school.com', 'password': 'nope'},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json(), {'error': 'Invalid email or password'})

    def test_me_requires_token(self):
        response = self.client.get('/api/auth/me')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json(), {'error': 'Access token required'})

    def test_me_rejects_invalid_token(self):
        response = self.client.get('/api/auth/me', HTTP_AUTHORIZATION='Bearer not-a-token')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.json(), {'error': 'Invalid or expired token'})

    def test_me_returns_verified_claims(self):
        token = issue_user_token(self.user)

        response = self.client.get('/api/auth/me', HTTP_AUTHORIZATION=f'Bearer {token}')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['claims']['email'], 'alice@school.com')

    def test_device_token_cannot_open_user_endpoints(self):
        token = issue_device_token('ESP32-101')

        response = self.client.get('/api/auth/me', HTTP_AUTHORIZATION=f'Bearer {token}')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
