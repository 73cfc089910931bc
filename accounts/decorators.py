"""Role-based access decorators for API view methods."""
from __future__ import annotations

import logging
from functools import wraps

from policy.exceptions import ForbiddenByRole
from policy.identity import resolve_identity
from policy.ownership import ensure_role

logger = logging.getLogger(__name__)


def role_required(*roles: str):
    """Require the caller to hold one of `roles`.

    Wraps a viewset method or action (``self, request, ...``). The
    identity is resolved first, so missing or disabled users are rejected
    before the role is looked at.
    """

    def decorator(view_method):
        @wraps(view_method)
        def _wrapped(self, request, *args, **kwargs):
            identity = resolve_identity(request)
            try:
                ensure_role(identity, *roles)
            except ForbiddenByRole:
                logger.info(
                    "Role denied: user=%s role=%s action=%s allowed=%s",
                    identity.id,
                    identity.role,
                    view_method.__name__,
                    ",".join(roles),
                )
                raise
            return view_method(self, request, *args, **kwargs)

        _wrapped.allowed_roles = tuple(roles)
        return _wrapped

    return decorator
