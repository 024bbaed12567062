"""
Upload validators.

Checks an uploaded file against the attachment allow-list before it is
stored. The type is detected from the file content with python-magic and
must be one the file's extension can carry; a declared content type that
contradicts the extension is rejected as well. The size must stay under
the ceiling.

Clients that cannot name a type send ``application/octet-stream`` or
nothing at all; only the detected type counts then.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import BinaryIO

import magic


# =============================================================================
# Configuration
# =============================================================================

MAX_UPLOAD_SIZE: int = 50 * 1024 * 1024  # 50MB

# Bytes read from the start of the file for magic number detection
HEADER_SIZE: int = 2048
ALLOWED_MIME_TYPES: dict[str, set[str]] = {
    "image": {
        "image/jpeg",
        "image/png",
        "image/gif",
    },
    "video": {
        "video/mp4",
        "video/webm",
    },
    "audio": {
        "audio/mpeg",
        "audio/mp3",
        "audio/wav",
        "audio/x-wav",
        "audio/wave",
        "audio/webm",
        "audio/mp4",
        "audio/x-m4a",
        "audio/m4a",
    },
    "document": {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "text/plain",
    },
}

# MIME types a file with each extension may be declared or detected as
EXTENSION_MIME_TYPES: dict[str, tuple[str, ...]] = {
    ".jpeg": ("image/jpeg",),
    ".jpg": ("image/jpeg",),
    ".png": ("image/png",),
    ".gif": ("image/gif",),
    ".mp4": ("video/mp4", "audio/mp4"),
    ".webm": ("video/webm", "audio/webm"),
    ".mp3": ("audio/mpeg", "audio/mp3"),
    ".wav": ("audio/wav", "audio/x-wav", "audio/wave"),
    ".m4a": ("audio/mp4", "audio/x-m4a", "audio/m4a"),
    ".pdf": ("application/pdf",),
    ".doc": ("application/msword",),
    ".docx": (
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ),
    ".txt": ("text/plain",),
}

UNKNOWN_MIME_TYPES = {"", "application/octet-stream"}


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class ValidationResult:
    """Result of upload validation.

    Attributes:
        is_valid: Whether the file passed validation.
        media_type: Category of the file (image, video, audio, document).
        mime_type: MIME type detected from the file content.
        extension: Lower-cased extension including the dot.
        size: Size in bytes.
        error: Human-readable error message if validation failed.
        error_code: Machine-readable error code if validation failed.
    """

    is_valid: bool
    media_type: str | None = None
    mime_type: str | None = None
    extension: str | None = None
    size: int | None = None
    error: str | None = None
    error_code: str | None = None


# =============================================================================
# Validator Class
# =============================================================================


class MediaValidator:
    """Validates uploads against the attachment allow-list.

    Uses python-magic to read file headers, so a renamed executable or an
    HTML page saved as ``.png`` is caught no matter what the client claims.

    Example:
        validator = MediaValidator()
        result = validator.validate(uploaded_file)
        if result.is_valid:
            print(f"File type: {result.media_type}, MIME: {result.mime_type}")
        else:
            print(f"Validation failed: {result.error}")
    """

    def __init__(
        self,
        max_size: int = MAX_UPLOAD_SIZE,
        extension_mime_types: dict[str, tuple[str, ...]] | None = None,
    ) -> None:
        self._max_size = max_size
        self._extension_mime_types = extension_mime_types or EXTENSION_MIME_TYPES
        self._magic = magic.Magic(mime=True)

    def validate(self, file: BinaryIO) -> ValidationResult:
        """Validate a file upload.

        Performs the following checks in order:
        1. Empty file check
        2. Size ceiling
        3. Extension allow-list
        4. Declared MIME type (if any) matches the extension
        5. MIME type detected from content matches the extension

        Args:
            file: Uploaded file. Must have a ``name`` and support read() and
                seek(); ``content_type`` and ``size`` are used when present
                (Django UploadedFile).

        Returns:
            ValidationResult with validation outcome and file info.
        """
        file_size = self._get_size(file)

        if file_size == 0:
            return ValidationResult(
                is_valid=False,
                error="File is empty",
                error_code="EMPTY_FILE",
            )

        if file_size > self._max_size:
            limit_mb = self._max_size // (1024 * 1024)
            return ValidationResult(
                is_valid=False,
                error=f"File size exceeds {limit_mb}MB limit",
                error_code="FILE_TOO_LARGE",
            )

        extension = self.get_extension(getattr(file, "name", "") or "")
        accepted = self._extension_mime_types.get(extension)
        if accepted is None:
            return ValidationResult(
                is_valid=False,
                error="Invalid file type",
                error_code="FILE_TYPE_NOT_ALLOWED",
            )

        declared = (getattr(file, "content_type", None) or "").split(";")[0].strip().lower()
        if declared not in UNKNOWN_MIME_TYPES and declared not in accepted:
            return ValidationResult(
                is_valid=False,
                error=f"File type '{declared}' does not match extension '{extension}'",
                error_code="FILE_TYPE_NOT_ALLOWED",
            )

        mime_type = self._detect_mime_type(file)
        if mime_type is None:
            return ValidationResult(
                is_valid=False,
                error="Could not detect file type",
                error_code="FILE_TYPE_NOT_ALLOWED",
            )
        if mime_type not in accepted:
            return ValidationResult(
                is_valid=False,
                error=f"File content '{mime_type}' does not match extension '{extension}'",
                error_code="FILE_TYPE_NOT_ALLOWED",
            )

        return ValidationResult(
            is_valid=True,
            media_type=self.get_media_type(mime_type),
            mime_type=mime_type,
            extension=extension,
            size=file_size,
        )

    def _detect_mime_type(self, file: BinaryIO) -> str | None:
        """Detect MIME type from file content using libmagic.

        The file position is restored to the beginning afterwards so the
        file can be stored straight away.
        """
        file.seek(0)
        header = file.read(HEADER_SIZE)
        file.seek(0)

        if not header:
            return None

        try:
            return self._magic.from_buffer(header)
        except magic.MagicException:
            return None

    @staticmethod
    def get_extension(filename: str) -> str:
        return os.path.splitext(filename)[1].lower()

    @staticmethod
    def get_media_type(mime_type: str) -> str | None:
        """Map a MIME type to its media category, or None if not allowed."""
        for media_type, allowed_types in ALLOWED_MIME_TYPES.items():
            if mime_type in allowed_types:
                return media_type
        return None

    @staticmethod
    def _get_size(file: BinaryIO) -> int:
        size = getattr(file, "size", None)
        if size is not None:
            return size
        file.seek(0, 2)  # Seek to end
        size = file.tell()
        file.seek(0)
        return size


# =============================================================================
# Convenience Function
# =============================================================================


def validate_file_upload(file: BinaryIO) -> ValidationResult:
    """Validate a file upload using default settings."""
    validator = MediaValidator()
    return validator.validate(file)
