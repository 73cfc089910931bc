"""Map policy failures and framework errors to JSON error bodies.

Every error response carries ``{"detail": ..., "code": ...}``; conflicts
add the violated ``invariant`` and validation failures add ``errors``.
"""
from __future__ import annotations

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from policy.exceptions import (
    ConflictError,
    ForbiddenByOwnership,
    ForbiddenByRole,
    PolicyError,
    RuleViolation,
    Unauthenticated,
)

logger = logging.getLogger(__name__)

POLICY_STATUS = {
    Unauthenticated: status.HTTP_401_UNAUTHORIZED,
    ForbiddenByRole: status.HTTP_403_FORBIDDEN,
    ForbiddenByOwnership: status.HTTP_403_FORBIDDEN,
    ConflictError: status.HTTP_409_CONFLICT,
    RuleViolation: status.HTTP_400_BAD_REQUEST,
}


def _policy_response(exc: PolicyError, context) -> Response:
    code = next((s for cls, s in POLICY_STATUS.items() if isinstance(exc, cls)), status.HTTP_400_BAD_REQUEST)
    body = {"detail": exc.message, "code": exc.code, **exc.details}
    if isinstance(exc, RuleViolation) and exc.field:
        body["errors"] = {exc.field: [exc.message]}
    request = context.get("request")
    view = context.get("view")
    logger.info(
        "Policy rejection %s on %s %s (view=%s user=%s)",
        exc.code,
        getattr(request, "method", "?"),
        getattr(request, "path", "?"),
        type(view).__name__ if view else "?",
        getattr(getattr(request, "user", None), "pk", None),
    )
    response = Response(body, status=code)
    if isinstance(exc, Unauthenticated):
        response["WWW-Authenticate"] = "Token"
    return response


def policy_exception_handler(exc, context):
    """DRF exception handler aware of `policy.exceptions`."""
    if isinstance(exc, PolicyError):
        return _policy_response(exc, context)

    if isinstance(exc, DjangoValidationError):
        exc = exceptions.ValidationError(
            exc.message_dict if hasattr(exc, "error_dict") else {"non_field_errors": exc.messages}
        )
    elif isinstance(exc, IntegrityError):
        # A uniqueness race that slipped past the pre-write checks
        logger.warning("Integrity error mapped to conflict: %s", exc)
        return _policy_response(
            ConflictError("The write conflicts with an existing record.", invariant="integrity"), context
        )

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, exceptions.ValidationError):
        response.data = {"detail": "Invalid input.", "code": "invalid", "errors": response.data}
    elif isinstance(exc, exceptions.APIException) and isinstance(response.data, dict):
        response.data.setdefault("code", exc.default_code)
    elif isinstance(response.data, dict):
        # Http404 / PermissionDenied from Django are converted by DRF.
        response.data.setdefault("code", "not_found" if response.status_code == 404 else "permission_denied")
    return response
