"""
URL configuration for authentication app.

URL structure:
    /api/v1/auth/sync/                - Upsert caller from identity token
    /api/v1/auth/me/                  - Caller's own record
    /api/v1/auth/users/               - User directory (?search=)
    /api/v1/auth/users/{id}/block/    - Toggle block
    /api/v1/auth/presence/            - Presence heartbeat
"""

from django.urls import path

from authentication.views import (
    BlockUserView,
    CurrentUserView,
    PresenceView,
    SyncUserView,
    UserListView,
)

app_name = "authentication"

urlpatterns = [
    path("sync/", SyncUserView.as_view(), name="sync"),
    path("me/", CurrentUserView.as_view(), name="me"),
    path("users/", UserListView.as_view(), name="user-list"),
    path("users/<str:user_id>/block/", BlockUserView.as_view(), name="user-block"),
    path("presence/", PresenceView.as_view(), name="presence"),
]
