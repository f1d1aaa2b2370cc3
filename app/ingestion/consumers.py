from __future__ import annotations

import json
import logging
from urllib.parse import parse_qs

from channels.generic.websocket import WebsocketConsumer
from django.db import DatabaseError
from django.utils import timezone
from rest_framework.exceptions import APIException

from accounts.authentication import bearer_token
from accounts.tokens import verify_device_token
from core.exceptions import AuthError, PersistenceError, error_message
from ingestion.gateway import submit_attendance, submit_reading, submit_status


logger = logging.getLogger(__name__)

STATUS_CONNECTED = "connected"
STATUS_RECEIVED = "received"
STATUS_ERROR = "error"

WELCOME_MESSAGE = "Welcome to ClassTrack IoT Server"
INVALID_FORMAT_MESSAGE = "Invalid message format"

CLOSE_CODE_FORBIDDEN = 4403

MESSAGE_HANDLERS = {
    "attendance": submit_attendance,
    "airquality": submit_reading,
    "device_status": submit_status,
}


def _client_address(scope) -> str:
    client = scope.get("client") or ("", 0)
    return str(client[0])


def _scope_token(scope) -> str | None:
    headers = dict(scope.get("headers") or [])
    authorization = headers.get(b"authorization", b"").decode("latin-1")
    token = bearer_token(authorization)
    if token:
        return token
    query = parse_qs((scope.get("query_string") or b"").decode("latin-1"))
    values = query.get("token")
    return values[0] if values else None


class DeviceConsumer(WebsocketConsumer):
    """One long-lived connection per device; frames are handled strictly in arrival order.

    A device token (``Authorization`` header or ``?token=``) is optional. When present it pins the
    device identity for every frame on the connection.
    """

    def connect(self):
        self.client_address = _client_address(self.scope)
        self.token_device_id = None

        raw_token = _scope_token(self.scope)
        if raw_token:
            try:
                self.token_device_id = verify_device_token(raw_token).device_id
            except AuthError as exc:
                logger.warning(
                    "Rejected device connection",
                    extra={"client_ip": self.client_address, "reason": error_message(exc.detail)},
                )
                self.close(code=CLOSE_CODE_FORBIDDEN)
                return

        self.accept()
        logger.info(
            "Device connected",
            extra={"client_ip": self.client_address, "device_id": self.token_device_id},
        )
        self.send_envelope(STATUS_CONNECTED, message=WELCOME_MESSAGE)

    def disconnect(self, code):
        logger.info("Device disconnected", extra={"client_ip": self.client_address, "close_code": code})

    def receive(self, text_data=None, bytes_data=None):
        if text_data is None:
            return

        try:
            envelope = json.loads(text_data)
        except json.JSONDecodeError:
            logger.warning("Malformed device frame", extra={"client_ip": self.client_address})
            self.send_envelope(STATUS_ERROR, message=INVALID_FORMAT_MESSAGE)
            return
        if not isinstance(envelope, dict):
            self.send_envelope(STATUS_ERROR, message=INVALID_FORMAT_MESSAGE)
            return

        message_type = envelope.get("type")
        handler = MESSAGE_HANDLERS.get(message_type) if isinstance(message_type, str) else None
        if handler is None:
            logger.info(
                "Ignoring unknown device message type",
                extra={"client_ip": self.client_address, "message_type": repr(message_type)},
            )
            self.send_envelope(STATUS_RECEIVED)
            return

        try:
            handler(envelope, token_device_id=self.token_device_id)
        except APIException as exc:
            logger.info(
                "Rejected device message",
                extra={"client_ip": self.client_address, "message_type": message_type, "status_code": exc.status_code},
            )
            self.send_envelope(STATUS_ERROR, message=error_message(exc.detail))
            return
        except DatabaseError:
            logger.exception(
                "Persistence failure on device message",
                extra={"client_ip": self.client_address, "message_type": message_type},
            )
            self.send_envelope(STATUS_ERROR, message=str(PersistenceError.default_detail))
            return

        self.send_envelope(STATUS_RECEIVED)

    def send_envelope(self, status: str, message: str | None = None):
        envelope = {"status": status}
        if message is not None:
            envelope["message"] = message
        envelope["timestamp"] = timezone.now().isoformat()
        self.send(text_data=json.dumps(envelope))
