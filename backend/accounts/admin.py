from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "email", "first_name", "last_name",
                    "role", "department", "is_approved", "is_active")
    search_fields = ("username", "email", "department")
    list_filter = ("role", "is_approved", "is_rejected", "is_active")
    fieldsets = BaseUserAdmin.fieldsets + (
        ("University", {"fields": ("role", "department", "is_approved", "is_rejected")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("University", {"fields": ("email", "first_name", "last_name",
                                   "role", "department")}),
    )
