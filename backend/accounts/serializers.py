"""
Accounts app serializers.

Only the read-side representation of users and the JWT login serializer
live here.  Registration and approval are handled by the admin site.
"""

from __future__ import annotations

from typing import Any

from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

User = get_user_model()


class RoleTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    SimpleJWT serializer that injects ``role`` and ``department`` claims
    into the access token so clients can render role-aware navigation
    without a separate profile call.
    """

    @classmethod
    def get_token(cls, user) -> Any:
        token = super().get_token(user)
        token["role"] = user.role
        token["department"] = user.department
        return token

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        data = super().validate(attrs)
        data["user"] = UserDetailSerializer(self.user).data
        return data


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user reference embedded in complaint payloads."""

    name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ["id", "username", "name", "email", "role", "department"]
        read_only_fields = fields

    def get_name(self, obj) -> str:
        return obj.get_full_name() or obj.username


class UserDetailSerializer(serializers.ModelSerializer):
    """Full profile returned by ``/me/`` and the login response."""

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "role",
            "department",
            "is_active",
            "is_approved",
            "date_joined",
        ]
        read_only_fields = fields
