"""
URL configuration for the Django application.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - Identity endpoints
        sync/                      - Upsert caller from identity token
        me/                        - Current user
        users/                     - User directory (?search=)
        users/{id}/block/          - Toggle block
        presence/                  - Presence heartbeat
    /api/v1/chat/                  - Chat endpoints
        conversations/             - Conversation list
        conversations/direct/      - Start direct conversation
        conversations/group/       - Create group
        conversations/{id}/        - Conversation detail/update/delete
        conversations/{id}/read/   - Mark conversation as read
        conversations/{id}/pin/    - Toggle pin
        conversations/{id}/leave/  - Leave group
        conversations/{id}/members/ - Add members / remove one member
        conversations/{id}/messages/ - Message list/send/search
        conversations/{id}/typing/ - Typing indicators
        messages/{id}/             - Edit/delete message
        messages/{id}/react/       - Toggle reaction

WebSocket routes live in chat/routing.py.

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Identity
    path("auth/", include("authentication.urls")),
    # Chat
    path("chat/", include("chat.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Chat Admin"
admin.site.site_title = "Chat Admin Portal"
admin.site.index_title = "Conversations, messages and users"
