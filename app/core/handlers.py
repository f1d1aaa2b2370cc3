"""REST framework exception handler.

Kept apart from ``core.exceptions``: the error classes are imported while DRF builds ``APIView``
(through the authentication classes), so that module must not import ``rest_framework.views``.
"""
from __future__ import annotations

import logging

from django.db import DatabaseError
from rest_framework import status
from rest_framework.exceptions import NotAuthenticated
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import MissingToken, PersistenceError, error_message


logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    view = context.get("view")
    view_name = view.__class__.__name__ if view is not None else ""

    if isinstance(exc, DatabaseError):
        logger.exception("Persistence failure", extra={"view": view_name})
        exc = PersistenceError()

    if isinstance(exc, NotAuthenticated):
        exc = MissingToken()

    response = exception_handler(exc, context)
    if response is None:
        logger.exception("Unhandled API error", extra={"view": view_name})
        return Response({"error": "Internal server error"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    response.data = {"error": error_message(response.data)}
    return response
