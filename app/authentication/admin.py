"""
Django admin configuration for authentication models.

Related files:
    - models.py: User
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from authentication.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Admin configuration for User model.

    Profile fields are normally refreshed by sync; edits here are
    overwritten on the user's next sign-in.
    """

    list_display = (
        "external_id",
        "email",
        "name",
        "last_seen",
        "is_active",
        "is_staff",
        "date_joined",
    )
    list_filter = (
        "is_active",
        "is_staff",
        "is_superuser",
        "date_joined",
    )
    search_fields = ("external_id", "email", "name")
    ordering = ("-date_joined",)
    filter_horizontal = ("blocked_users", "groups", "user_permissions")

    fieldsets = (
        (None, {"fields": ("external_id", "password")}),
        ("Profile", {"fields": ("email", "name", "image_url", "last_seen")}),
        ("Blocking", {"fields": ("blocked_users",)}),
        (
            "Status",
            {"fields": ("is_active", "is_staff", "is_superuser")},
        ),
        (
            "Permissions",
            {"fields": ("groups", "user_permissions")},
        ),
        (
            "Important dates",
            {"fields": ("date_joined", "last_login")},
        ),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("external_id", "email", "password1", "password2"),
            },
        ),
    )

    readonly_fields = ("last_seen", "date_joined", "last_login")
