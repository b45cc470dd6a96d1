# backend/exceptions.py

"""
DRF exception handler for ledger engine errors.

- validation kind (LedgerValidationError, Django ValidationError) -> 400
- missing document                                             -> 404
- state kind (LedgerStateError), duplicate reference,
  missing semantic account                                     -> 409
Everything else falls through to DRF's default handling.
"""

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from accounting.services.exceptions import (
    AccountResolutionError,
    DocumentNotFoundError,
    IdempotencyError,
    LedgerStateError,
    LedgerValidationError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = (
    (LedgerValidationError, status.HTTP_400_BAD_REQUEST),
    (DocumentNotFoundError, status.HTTP_404_NOT_FOUND),
    (LedgerStateError, status.HTTP_409_CONFLICT),
    (IdempotencyError, status.HTTP_409_CONFLICT),
    (AccountResolutionError, status.HTTP_409_CONFLICT),
)


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, DjangoValidationError):
        detail = exc.message_dict if hasattr(exc, "error_dict") else {"detail": exc.messages}
        return Response(detail, status=status.HTTP_400_BAD_REQUEST)

    for error_class, http_status in STATUS_BY_ERROR:
        if isinstance(exc, error_class):
            view = context.get("view")
            logger.warning(
                "Request rejected",
                extra={
                    "view": type(view).__name__ if view else None,
                    "error": type(exc).__name__,
                    "status": http_status,
                },
            )
            return Response(
                {"detail": str(exc), "error": type(exc).__name__},
                status=http_status,
            )

    return None
