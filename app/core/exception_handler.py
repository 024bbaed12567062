"""
DRF exception handler for application and storage errors.

Registered as REST_FRAMEWORK["EXCEPTION_HANDLER"]. DRF's own exceptions
(authentication, throttling, serializer validation) keep their default
rendering; everything else is translated here:

    BaseApplicationError         -> exc.status_code, exc.to_dict()
    django.db.IntegrityError     -> 409 CONSTRAINT_VIOLATION
    OperationalError/InterfaceError -> 503 STORAGE_UNAVAILABLE
"""

import logging

from django.db import IntegrityError, InterfaceError, OperationalError
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    StorageUnavailableError,
)

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    view_name = view.__class__.__name__ if view is not None else "unknown"

    if isinstance(exc, IntegrityError):
        logger.warning(f"Constraint violation in {view_name}: {exc}")
        exc = ConflictError("Request conflicts with existing data")
    elif isinstance(exc, (OperationalError, InterfaceError)):
        logger.error(f"Storage unavailable in {view_name}: {exc}", exc_info=True)
        exc = StorageUnavailableError("Storage is temporarily unavailable, retry later")

    if isinstance(exc, BaseApplicationError):
        headers = {"Retry-After": "5"} if exc.status_code == 503 else None
        return Response(exc.to_dict(), status=exc.status_code, headers=headers)

    return None
