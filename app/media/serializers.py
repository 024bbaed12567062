"""
Serializers for media uploads.

MediaUploadSerializer validates the multipart input; FileDescriptorSerializer
documents the descriptor returned to clients and stored on file messages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rest_framework import serializers

from media.validators import MediaValidator

if TYPE_CHECKING:
    from django.core.files.uploadedfile import UploadedFile


class MediaUploadSerializer(serializers.Serializer):
    """
    Serializer for handling file uploads.

    Validates:
    - Extension against the allow-list
    - Declared MIME type against the extension
    - File size against the ceiling

    Usage:
        serializer = MediaUploadSerializer(data={"file": uploaded_file})
        if serializer.is_valid():
            result = FileStorageService.store(
                serializer.validated_data["file"], serializer.validation_result
            )
    """

    file = serializers.FileField(
        required=True,
        allow_empty_file=True,
        help_text="The file to upload",
    )

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._validator = MediaValidator()
        self.validation_result = None

    def validate_file(self, file: UploadedFile) -> UploadedFile:
        result = self._validator.validate(file)

        if not result.is_valid:
            raise serializers.ValidationError(result.error, code=result.error_code)

        self.validation_result = result
        return file


class FileDescriptorSerializer(serializers.Serializer):
    url = serializers.CharField()
    filename = serializers.CharField()
    size = serializers.IntegerField()
    mimetype = serializers.CharField()
