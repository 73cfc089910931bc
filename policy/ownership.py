"""Write capabilities: role gates and per-instance ownership.

Ownership is read from a single owner field per entity kind, so the same
check serves courses, assignments, announcements and materials.
Timetable entries have no owner; any teacher may edit them.
"""
from __future__ import annotations

from typing import Iterable

from .exceptions import ForbiddenByOwnership, ForbiddenByRole
from .identity import Identity
from .visibility import EntityKind, is_visible, kind_of

OWNER_FIELDS: dict[EntityKind, str | None] = {
    EntityKind.COURSE: "teacher_id",
    EntityKind.ASSIGNMENT: "teacher_id",
    EntityKind.ANNOUNCEMENT: "author_id",
    EntityKind.MATERIAL: "teacher_id",
    EntityKind.TIMETABLE: None,
}


def owner_id(instance) -> int | None:
    field = OWNER_FIELDS[kind_of(instance)]
    return getattr(instance, field) if field else None


def can_mutate(identity: Identity, instance) -> bool:
    """Whether `identity` may edit or delete `instance`.

    Admins may mutate anything and students nothing; teachers need to own
    the instance unless its kind has no owner field.
    """
    if not identity.active:
        return False
    if identity.is_admin:
        return True
    if not identity.is_teacher:
        return False
    if OWNER_FIELDS[kind_of(instance)] is None:
        return True
    return owner_id(instance) == identity.id


def has_role(identity: Identity, roles: Iterable[str]) -> bool:
    return str(identity.role) in {str(r) for r in roles}


def ensure_role(identity: Identity, *roles: str) -> None:
    if not has_role(identity, roles):
        raise ForbiddenByRole(identity.role, roles)


def ensure_can_mutate(identity: Identity, instance) -> None:
    if not can_mutate(identity, instance):
        raise ForbiddenByOwnership()


def ensure_can_read(identity: Identity, instance) -> None:
    """Reject reads of an existing record that lies outside the caller's scope."""
    if not is_visible(identity, instance):
        raise ForbiddenByOwnership()
