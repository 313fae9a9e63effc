"""
Accounts app models.

Defines the canonical ``Role`` enumeration and a custom User model that
extends Django's ``AbstractUser`` with the university-specific fields the
complaint workflow reads: role, department, and the approval flags set by
the registration review.

Role strings arriving from clients, fixtures or legacy data come in many
spellings (``"user"``, ``"headOfDepartment"``, ``"Administrator"`` ...).
``normalize_role`` maps them onto ``Role`` at every input boundary so the
workflow code only ever branches on canonical values.
"""

from __future__ import annotations

import re

from django.contrib.auth.models import AbstractUser
from django.db import models


class Role(models.TextChoices):
    STUDENT = "student", "Student"
    STAFF = "staff", "Staff"
    HOD = "hod", "Head of Department"
    DEAN = "dean", "Dean"
    ADMIN = "admin", "Admin"


# Alias → canonical role.  Keys are compared after lower-casing and
# stripping whitespace, underscores and hyphens.
_ROLE_ALIASES: dict[str, str] = {
    "student": Role.STUDENT,
    "user": Role.STUDENT,
    "staff": Role.STAFF,
    "hod": Role.HOD,
    "headofdepartment": Role.HOD,
    "headofdept": Role.HOD,
    "dean": Role.DEAN,
    "admin": Role.ADMIN,
    "administrator": Role.ADMIN,
}

_ROLE_NOISE = re.compile(r"[\s_\-]+")


def normalize_role(value: str | None) -> str | None:
    """
    Return the canonical ``Role`` value for ``value``, or ``None``.

    >>> normalize_role("Head of Department")
    'hod'
    >>> normalize_role("user")
    'student'
    """
    if value is None:
        return None
    key = _ROLE_NOISE.sub("", str(value).strip().lower())
    if not key:
        return None
    role = _ROLE_ALIASES.get(key)
    return str(role) if role is not None else None


class User(AbstractUser):
    """
    Custom user model for the complaint portal.

    Each user holds exactly **one** role.  Students and admins are
    approved on creation; staff, HoD and dean accounts wait for an
    administrator to approve them before they may be targeted by routing
    or assignment.
    """

    email = models.EmailField(
        unique=True,
        verbose_name="Email Address",
    )
    role = models.CharField(
        max_length=16,
        choices=Role.choices,
        default=Role.STUDENT,
        db_index=True,
        verbose_name="Role",
    )
    department = models.CharField(
        max_length=120,
        blank=True,
        default="",
        db_index=True,
        verbose_name="Department",
    )
    is_approved = models.BooleanField(
        default=False,
        verbose_name="Approved",
        help_text="Set by an administrator once a staff/HoD/dean account is verified.",
    )
    is_rejected = models.BooleanField(
        default=False,
        verbose_name="Rejected",
    )

    REQUIRED_FIELDS = ["email"]

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"

    def save(self, *args, **kwargs):
        self.role = normalize_role(self.role) or Role.STUDENT
        if self._state.adding and self.role in (Role.STUDENT, Role.ADMIN):
            self.is_approved = True
        super().save(*args, **kwargs)

    # ── Helper predicates for role checks ────────────────────────────

    def has_role(self, *roles: str) -> bool:
        """Check if the user's role is one of ``roles``."""
        return self.role in roles

    @property
    def is_assignable(self) -> bool:
        """Active, approved and not rejected."""
        return self.is_active and self.is_approved and not self.is_rejected

    def same_department(self, department: str | None) -> bool:
        """Case-insensitive department comparison."""
        mine = (self.department or "").strip().lower()
        other = (department or "").strip().lower()
        return bool(mine) and mine == other
