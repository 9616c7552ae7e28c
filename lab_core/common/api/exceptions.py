# lab_core/common/api/exceptions.py

from __future__ import annotations

import logging
import uuid
from typing import Any, Tuple

from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException, NotAuthenticated, PermissionDenied, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)

# Checked in order; first isinstance match wins.
ERROR_CODES: Tuple[Tuple[type, str], ...] = (
    (ValidationError, "validation_error"),
    (NotAuthenticated, "not_authenticated"),
    (PermissionDenied, "permission_denied"),
    (Http404, "not_found"),
)


def ensure_request_id(request) -> str:
    """Returns request.request_id, assigning a fresh hex id on first use."""
    rid = getattr(request, "request_id", None) if request is not None else None
    if not rid:
        rid = uuid.uuid4().hex
        if request is not None:
            request.request_id = rid
    return rid


def build_error_envelope(*, request=None, code: str, message: str, details: Any = None) -> dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details,
            "request_id": ensure_request_id(request),
        }
    }


class ConflictError(APIException):
    """
    409 for uniqueness violations the store could not resolve on its own:
    duplicate tariff name per kind, or a price upsert that lost its retry.
    """
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict."
    default_code = "conflict"

    def __init__(self, detail=None, code=None):
        super().__init__(detail=detail or self.default_detail, code=code or self.default_code)


class DanglingReferenceError(APIException):
    """
    Deleting a tariff that is still in use.

    Carries the blocking references and the number of price entries so the
    admin screen can tell the operator what to detach first.
    """
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Tariff is still referenced and cannot be deleted."
    default_code = "dangling_reference"

    def __init__(self, *, references: list[dict] | None = None, price_entry_count: int = 0, detail=None):
        super().__init__(detail=detail or self.default_detail, code=self.default_code)
        self.blocking_references = list(references or [])
        self.price_entry_count = int(price_entry_count)
        # Raw dict so ints/lists survive into the envelope untouched.
        self.detail = {
            "detail": str(detail or self.default_detail),
            "references": self.blocking_references,
            "price_entries": self.price_entry_count,
        }


def error_code_for(exc: Exception) -> str:
    for exc_type, code in ERROR_CODES:
        if isinstance(exc, exc_type):
            return code
    if isinstance(exc, APIException):
        return getattr(exc, "default_code", None) or "api_error"
    return "error"


def split_message(data: Any) -> Tuple[str, Any]:
    """
    {"detail": "..."}          -> ("...", None)
    {"detail": "...", **rest}  -> ("...", rest)
    anything else              -> ("Request failed.", data)
    """
    if isinstance(data, dict) and "detail" in data:
        rest = {k: v for k, v in data.items() if k != "detail"}
        return str(data["detail"]), (rest or None)
    return "Request failed.", data


def api_exception_handler(exc: Exception, context: dict[str, Any]):
    request = context.get("request")
    response = drf_exception_handler(exc, context)

    if response is None:
        logger.exception("Unhandled API error", exc_info=exc)
        return Response(
            build_error_envelope(request=request, code="server_error", message="Unexpected server error."),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    message, details = split_message(response.data)
    return Response(
        build_error_envelope(request=request, code=error_code_for(exc), message=message, details=details),
        status=response.status_code,
        headers=response.headers,
    )
