"""
Accounts app views.

Token issuance is delegated to SimpleJWT; the only local view returns the
authenticated user's own profile.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView

from .permissions import IsActiveAccount
from .serializers import RoleTokenObtainPairSerializer, UserDetailSerializer


class LoginView(TokenObtainPairView):
    """
    POST /api/accounts/auth/login/

    Public endpoint.  Exchanges ``username`` + ``password`` for an access
    and refresh token pair plus the user's profile.
    """

    serializer_class = RoleTokenObtainPairSerializer


class MeView(APIView):
    """
    GET /api/accounts/me/ → Retrieve current user profile.
    """

    permission_classes = [IsAuthenticated, IsActiveAccount]

    @extend_schema(
        summary="Current user",
        responses={200: OpenApiResponse(response=UserDetailSerializer, description="Profile.")},
        tags=["Accounts"],
    )
    def get(self, request: Request) -> Response:
        serializer = UserDetailSerializer(request.user)
        return Response(serializer.data, status=status.HTTP_200_OK)
