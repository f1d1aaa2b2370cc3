"""Signed bearer tokens for dashboard users and provisioned devices.

Both kinds are stateless JWTs signed with the project secret. Nothing is stored server side, so a
leaked device token stays valid until it expires; re-provisioning mints a new one but does not
revoke the old one.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from django.conf import settings
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken, Token, UntypedToken

from core.exceptions import InvalidDeviceToken, InvalidOrExpiredToken


ROLE_ADMIN = "ADMIN"
ROLE_TEACHER = "TEACHER"

USER_TOKEN_TYPE = AccessToken.token_type
DEVICE_TOKEN_TYPE = "device"
DEVICE_ID_CLAIM = "device_id"


class DeviceToken(Token):
    token_type = DEVICE_TOKEN_TYPE

    @property
    def lifetime(self) -> timedelta:
        return getattr(settings, "CLASSTRACK_DEVICE_TOKEN_LIFETIME", timedelta(days=90))


@dataclass(frozen=True)
class DeviceIdentity:
    device_id: str


def user_role(user) -> str:
    return ROLE_ADMIN if (user.is_staff or user.is_superuser) else ROLE_TEACHER


def issue_user_token(user) -> str:
    token = AccessToken.for_user(user)
    token["email"] = user.email
    token["role"] = user_role(user)
    return str(token)


def issue_device_token(device_id: str) -> str:
    token = DeviceToken()
    token[DEVICE_ID_CLAIM] = device_id
    return str(token)


def verify(raw_token: str) -> dict:
    try:
        return dict(UntypedToken(raw_token).payload)
    except TokenError as exc:
        raise InvalidOrExpiredToken() from exc


def verify_user_token(raw_token: str) -> dict:
    claims = verify(raw_token)
    if claims.get("token_type") != USER_TOKEN_TYPE or not claims.get("user_id"):
        raise InvalidOrExpiredToken()
    return claims


def verify_device_token(raw_token: str) -> DeviceIdentity:
    claims = verify(raw_token)
    device_id = claims.get(DEVICE_ID_CLAIM)
    if claims.get("token_type") != DEVICE_TOKEN_TYPE or not device_id:
        raise InvalidDeviceToken()
    return DeviceIdentity(device_id=str(device_id))
