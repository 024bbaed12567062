"""
URL configuration for the chat backend.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint
    /schema/                       - OpenAPI schema (YAML)
    /uploads/<path>                - Uploaded files (read-only)
    /api/v1/auth/                  - Authentication endpoints
        register/                  - Create an account
        token/                     - Obtain JWT access/refresh pair
        token/refresh/             - Refresh access token
        me/                        - Current user
        users/search/?q=           - Search other users
    /api/v1/chat/                  - Chat endpoints
        conversations/             - List conversations / create group
        conversations/direct/      - Get or create direct conversation
        conversations/{id}/        - Conversation detail
        conversations/{id}/read/   - Mark conversation as read
        conversations/{id}/messages/ - Message history / send
        messages/{id}/             - Delete own message
        calls/                     - Start a call
        calls/{id}/                - Update call status
    /api/v1/media/                 - Media endpoints
        upload/                    - Upload a file attachment
    /ws/?token=<jwt>               - Live channel (see config.asgi)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.conf import settings
from django.contrib import admin
from django.urls import include, path, re_path
from django.views.static import serve
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/", include("authentication.urls")),
    path("chat/", include("chat.urls")),
    path("media/", include("media.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # Uploaded attachments, served read-only from MEDIA_ROOT
    re_path(
        r"^%s(?P<path>.*)$" % settings.MEDIA_URL.lstrip("/"),
        serve,
        {"document_root": settings.MEDIA_ROOT},
        name="uploads",
    ),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Chat Admin"
admin.site.site_title = "Chat Admin Portal"
admin.site.index_title = "Users, conversations and calls"
