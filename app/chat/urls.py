"""
URL configuration for chat API.

URL Structure:
    Conversations:
        /conversations/                              GET
        /conversations/direct/                       POST
        /conversations/group/                        POST
        /conversations/{id}/                         GET, PATCH, DELETE
        /conversations/{id}/read/                    POST
        /conversations/{id}/pin/                     POST
        /conversations/{id}/leave/                   POST
        /conversations/{id}/members/                 POST
        /conversations/{id}/members/{user_id}/       DELETE

    Messages:
        /conversations/{id}/messages/                GET, POST
        /conversations/{id}/messages/search/         GET
        /messages/{id}/                              PATCH, DELETE
        /messages/{id}/react/                        POST

    Typing:
        /conversations/{id}/typing/                  GET, POST, DELETE

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from chat.views import ConversationViewSet, MessageViewSet

router = DefaultRouter()
router.register(r"conversations", ConversationViewSet, basename="conversation")
router.register(r"messages", MessageViewSet, basename="message")

app_name = "chat"

urlpatterns = [
    path("", include(router.urls)),
]
