"""
Authentication views.

This module provides API views for:
- Registration (returns a JWT pair so the client can connect right away)
- Current user profile
- User search (finding people to start a conversation with)

Token obtain/refresh are provided by djangorestframework-simplejwt and
wired in urls.py.

Related files:
    - serializers.py: Request/response serialization
    - urls.py: URL routing
"""

import logging

from django.db.models import Q
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.models import User
from authentication.serializers import (
    CurrentUserSerializer,
    RegisterSerializer,
    UserSearchQuerySerializer,
    UserSerializer,
)

logger = logging.getLogger(__name__)

# Maximum number of users returned by a search
USER_SEARCH_LIMIT = 20


class RegisterView(APIView):
    """
    Create an account.

    POST /api/v1/auth/register/
        {"email": "...", "username": "...", "password": "..."}

    Returns the created user with an access/refresh token pair.
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        summary="Register",
        tags=["Auth"],
        request=RegisterSerializer,
        responses={201: CurrentUserSerializer},
    )
    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()

        refresh = RefreshToken.for_user(user)
        logger.info(f"Registered user {user.id} ({user.username})")

        return Response(
            {
                "user": CurrentUserSerializer(user).data,
                "access": str(refresh.access_token),
                "refresh": str(refresh),
            },
            status=status.HTTP_201_CREATED,
        )


class CurrentUserView(APIView):
    """
    GET: Retrieve the authenticated user's profile
    PATCH: Update username or avatar
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(summary="Current user", tags=["Auth"], responses={200: CurrentUserSerializer})
    def get(self, request):
        return Response(CurrentUserSerializer(request.user).data)

    @extend_schema(
        summary="Update current user",
        tags=["Auth"],
        request=CurrentUserSerializer,
        responses={200: CurrentUserSerializer},
    )
    def patch(self, request):
        serializer = CurrentUserSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)


class UserSearchView(APIView):
    """
    Search other users by username or email.

    GET /api/v1/auth/users/search/?q=<at least 2 characters>

    Case-insensitive substring match, excludes the caller and inactive
    accounts, at most 20 results ordered by username.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Search users",
        tags=["Auth"],
        parameters=[
            OpenApiParameter("q", str, description="Search term (min 2 characters)"),
        ],
        responses={200: UserSerializer(many=True)},
    )
    def get(self, request):
        query = UserSearchQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        term = query.validated_data["q"]

        users = (
            User.objects.filter(is_active=True)
            .filter(Q(username__icontains=term) | Q(email__icontains=term))
            .exclude(pk=request.user.pk)
            .order_by("username")[:USER_SEARCH_LIMIT]
        )
        return Response(UserSerializer(users, many=True).data)
