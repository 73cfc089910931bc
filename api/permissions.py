"""Custom permissions for REST API v1."""
from __future__ import annotations

from rest_framework.permissions import BasePermission

from policy.exceptions import Unauthenticated


class IsActiveIdentity(BasePermission):
    """Authenticated and not deactivated.

    Role checks are made per action by `accounts.decorators.role_required`;
    this only guarantees that an identity exists before any policy runs.
    """

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        if not user.is_active:
            raise Unauthenticated("User account is disabled.")
        return True


class PublicReadOnly(BasePermission):
    """Anyone may read; writes need an active identity."""

    def has_permission(self, request, view):
        if request.method in ("GET", "HEAD", "OPTIONS"):
            return True
        return IsActiveIdentity().has_permission(request, view)
