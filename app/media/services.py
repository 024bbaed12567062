"""
File storage for message attachments.

Uploads are saved through Django's default storage (FileSystemStorage under
MEDIA_ROOT) with a generated name, so client file names never reach the
filesystem. The caller gets back the descriptor a file message carries:

    {"url": "/uploads/<generated>.png", "filename": "cat.png",
     "size": 1234, "mimetype": "image/png"}

Usage:
    from media.services import FileStorageService

    result = FileStorageService.store(uploaded_file)
    if result.success:
        descriptor = result.data
"""

from __future__ import annotations

import os
import uuid
from typing import TYPE_CHECKING

from django.core.files.storage import default_storage

from core.services import BaseService, ServiceResult
from media.validators import MediaValidator

if TYPE_CHECKING:
    from django.core.files.uploadedfile import UploadedFile

    from media.validators import ValidationResult


class FileStorageService(BaseService):
    """Validates and stores uploaded files."""

    @classmethod
    def generate_name(cls, extension: str) -> str:
        return f"{uuid.uuid4().hex}{extension}"

    @classmethod
    def store(
        cls,
        file: UploadedFile,
        validation: ValidationResult | None = None,
    ) -> ServiceResult[dict]:
        """
        Store an uploaded file.

        Args:
            file: The uploaded file
            validation: Result of an earlier MediaValidator run; the file is
                validated here when omitted

        Returns:
            ServiceResult with the file descriptor, or failure with
            EMPTY_FILE, FILE_TOO_LARGE, FILE_TYPE_NOT_ALLOWED or
            STORAGE_UNAVAILABLE
        """
        logger = cls.get_logger()

        if validation is None:
            validation = MediaValidator().validate(file)
        if not validation.is_valid:
            return ServiceResult.failure(validation.error, error_code=validation.error_code)

        name = cls.generate_name(validation.extension)
        try:
            stored_name = default_storage.save(name, file)
        except OSError as exc:
            return cls.handle_exception(
                exc,
                context=f"Could not store upload {name}",
                error_code="STORAGE_UNAVAILABLE",
            )

        original_name = os.path.basename(file.name or "") or stored_name
        logger.info(
            f"Stored upload {stored_name} ({validation.size} bytes, {validation.mime_type})"
        )
        return ServiceResult.success(
            {
                "url": default_storage.url(stored_name),
                "filename": original_name,
                "size": validation.size,
                "mimetype": validation.mime_type,
            }
        )
