from __future__ import annotations

from rest_framework import status
from rest_framework.exceptions import APIException


class ClassTrackError(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal server error"
    default_code = "error"


class AuthError(ClassTrackError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Invalid or expired token"
    default_code = "auth_error"


class MissingToken(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Access token required"
    default_code = "missing_token"


class InvalidOrExpiredToken(AuthError):
    default_detail = "Invalid or expired token"
    default_code = "invalid_token"


class InvalidDeviceToken(AuthError):
    default_detail = "Invalid device token"
    default_code = "invalid_device_token"


class InvalidCredentials(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid email or password"
    default_code = "invalid_credentials"


class NotFoundError(ClassTrackError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"
    default_code = "not_found"


class StudentNotFound(NotFoundError):
    default_detail = "Student not found"
    default_code = "student_not_found"


class DeviceNotFound(NotFoundError):
    default_detail = "Device not found"
    default_code = "device_not_found"


class DuplicateError(ClassTrackError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Duplicate entry"
    default_code = "duplicate"


class DuplicateDevice(DuplicateError):
    default_detail = "Device ID already exists"
    default_code = "duplicate_device"


class PersistenceError(ClassTrackError):
    default_detail = "Failed to store submission"
    default_code = "persistence_error"


def error_message(detail) -> str:
    """Flatten a DRF error detail (str, list or field dict) into one message."""
    if isinstance(detail, dict):
        if "detail" in detail:
            return error_message(detail["detail"])
        for value in detail.values():
            return error_message(value)
        return "Invalid request"
    if isinstance(detail, (list, tuple)):
        return error_message(detail[0]) if detail else "Invalid request"
    return str(detail)
