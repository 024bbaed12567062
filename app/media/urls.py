"""
URL configuration for media app.

Media - Upload:
    POST /upload/    - Upload an attachment

All URLs are prefixed with /api/v1/media/ in the main URL configuration.
"""

from django.urls import path

from media.views import MediaUploadView

app_name = "media"

urlpatterns = [
    path("upload/", MediaUploadView.as_view(), name="upload"),
]
