from __future__ import annotations

import logging

from django.contrib.auth import get_user_model
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from accounts.serializers import LoginSerializer, UserSerializer
from accounts.tokens import issue_user_token
from core.exceptions import InvalidCredentials


logger = logging.getLogger(__name__)


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def login(request):
    serializer = LoginSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    email = serializer.validated_data["email"]

    user = get_user_model().objects.filter(email__iexact=email, is_active=True).first()
    if user is None or not user.check_password(serializer.validated_data["password"]):
        logger.info("Rejected login", extra={"email": email})
        raise InvalidCredentials()

    return Response({"token": issue_user_token(user), "user": UserSerializer(user).data})


@api_view(["GET"])
def me(request):
    return Response({"user": UserSerializer(request.user).data, "claims": request.auth})
