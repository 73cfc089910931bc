"""Typed failures raised by the policy layer.

The policy layer never builds HTTP responses; `api.exceptions` maps these
to status codes at the API boundary.
"""
from __future__ import annotations

from typing import Any, Iterable


class PolicyError(Exception):
    """Base class for every policy failure."""

    code = "policy_error"

    def __init__(self, message: str = "", **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class Unauthenticated(PolicyError):
    code = "not_authenticated"

    def __init__(self, message: str = "Authentication credentials were not provided or are no longer valid.") -> None:
        super().__init__(message)


class ForbiddenByRole(PolicyError):
    """The caller's role may not invoke this action at all."""

    code = "forbidden_by_role"

    def __init__(self, role: str | None, allowed: Iterable[str]) -> None:
        allowed = sorted(str(r) for r in allowed)
        super().__init__(
            "Access denied. Insufficient permissions.",
            user_role=role,
            expected_roles=allowed,
        )
        self.role = role
        self.allowed = allowed


class ForbiddenByOwnership(PolicyError):
    """The role is allowed in general, but not on this instance."""

    code = "forbidden_by_ownership"

    def __init__(self, message: str = "Access denied.") -> None:
        super().__init__(message)


class ConflictError(PolicyError):
    """A cross-record invariant would be violated by the write."""

    code = "conflict"

    def __init__(self, message: str, invariant: str, **details: Any) -> None:
        super().__init__(message, invariant=invariant, **details)
        self.invariant = invariant


class RuleViolation(PolicyError):
    """Malformed or out-of-range input detected by a domain rule."""

    code = "invalid"

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field
