"""
API views for media uploads.

Provides:
- MediaUploadView: Store an attachment and return its descriptor
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import StorageUnavailableError, ValidationError
from media.serializers import FileDescriptorSerializer, MediaUploadSerializer
from media.services import FileStorageService


class MediaUploadView(APIView):
    """
    Handle attachment uploads.

    POST /api/v1/media/upload/
        Upload a file for a later file message.

    Authentication:
        Requires valid JWT token.

    Request:
        Content-Type: multipart/form-data
        - file (required): The file to upload

    Response:
        201 Created: {url, filename, size, mimetype}
        400 Bad Request: Missing file, empty file, type not allowed, too large
        401 Unauthorized: Not authenticated
        503 Service Unavailable: File storage failed
    """

    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]

    @extend_schema(
        operation_id="upload_media_file",
        summary="Upload attachment",
        description=(
            "Store a file of an allowed type (images, video, audio, pdf/doc/docx/txt) "
            "up to 50MB. The returned descriptor is passed as file_url, file_name "
            "and file_size when sending a file message."
        ),
        request=MediaUploadSerializer,
        responses={
            201: OpenApiResponse(
                response=FileDescriptorSerializer,
                description="File stored",
            ),
            400: OpenApiResponse(description="Missing file, type not allowed or too large"),
            401: OpenApiResponse(description="Authentication required"),
            503: OpenApiResponse(description="File storage unavailable"),
        },
        tags=["Media - Upload"],
    )
    def post(self, request):
        upload_serializer = MediaUploadSerializer(data=request.data)

        if not upload_serializer.is_valid():
            raise ValidationError(
                "Invalid upload",
                error_code="INVALID_UPLOAD",
                details=upload_serializer.errors,
            )

        result = FileStorageService.store(
            upload_serializer.validated_data["file"],
            upload_serializer.validation_result,
        )
        if not result.success:
            if result.error_code == "STORAGE_UNAVAILABLE":
                raise StorageUnavailableError("File storage is temporarily unavailable")
            raise ValidationError(result.error, error_code=result.error_code)

        return Response(
            FileDescriptorSerializer(result.data).data,
            status=status.HTTP_201_CREATED,
        )
