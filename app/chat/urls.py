"""
URL configuration for chat API.

URL Structure:
    Conversations:
        /conversations/                 GET, POST
        /conversations/direct/          POST
        /conversations/{id}/            GET
        /conversations/{id}/read/       POST

    Messages:
        /conversations/{id}/messages/   GET, POST
        /messages/{id}/                 DELETE

    Calls:
        /calls/                         POST
        /calls/{id}/                    PATCH

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from chat.views import CallViewSet, ConversationViewSet, MessageViewSet

# Main router for conversations
router = DefaultRouter()
router.register(r"conversations", ConversationViewSet, basename="conversation")

app_name = "chat"

urlpatterns = [
    path("", include(router.urls)),
    # Nested routes for messages
    path(
        "conversations/<uuid:conversation_pk>/messages/",
        MessageViewSet.as_view({"get": "list", "post": "create"}),
        name="conversation-message-list",
    ),
    path(
        "messages/<uuid:pk>/",
        MessageViewSet.as_view({"delete": "destroy"}),
        name="message-detail",
    ),
    # Calls
    path(
        "calls/",
        CallViewSet.as_view({"post": "create"}),
        name="call-list",
    ),
    path(
        "calls/<uuid:pk>/",
        CallViewSet.as_view({"patch": "partial_update"}),
        name="call-detail",
    ),
]
