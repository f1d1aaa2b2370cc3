from __future__ import annotations

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework.authentication import BaseAuthentication

from accounts.tokens import verify_device_token, verify_user_token
from core.exceptions import InvalidOrExpiredToken, MissingToken


def bearer_token(authorization: str) -> str | None:
    parts = (authorization or "").split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


class UserTokenAuthentication(BaseAuthentication):
    """Dashboard session tokens. A request without a token falls through to the permission check."""

    def authenticate(self, request):
        raw_token = bearer_token(request.META.get("HTTP_AUTHORIZATION", ""))
        if raw_token is None:
            return None

        claims = verify_user_token(raw_token)
        user = get_user_model().objects.filter(pk=claims["user_id"], is_active=True).first()
        if user is None:
            raise InvalidOrExpiredToken()
        return user, claims

    def authenticate_header(self, request):
        return 'Bearer realm="api"'


class DeviceTokenAuthentication(BaseAuthentication):
    """Provisioned device tokens. The token is mandatory and carries the device identity."""

    def authenticate(self, request):
        raw_token = bearer_token(request.META.get("HTTP_AUTHORIZATION", ""))
        if raw_token is None:
            raise MissingToken()
        return AnonymousUser(), verify_device_token(raw_token)

    def authenticate_header(self, request):
        return 'Bearer realm="devices"'
