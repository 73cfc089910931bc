"""Resolved caller identity.

`Identity` is an immutable snapshot of the authenticated user and the
relational data the visibility policy needs (enrolled/taught courses and
their semesters). It is built once per request.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from accounts.models import Role
from courses.models import Course

from .exceptions import Unauthenticated


@dataclass(frozen=True)
class Identity:
    id: int
    role: str
    active: bool = True
    name: str = ""
    email: str = ""
    enrolled_course_ids: frozenset[int] = field(default_factory=frozenset)
    teaching_course_ids: frozenset[int] = field(default_factory=frozenset)
    enrolled_semester_ids: frozenset[int] = field(default_factory=frozenset)
    teaching_semester_ids: frozenset[int] = field(default_factory=frozenset)
    current_semester_id: int | None = None

    @property
    def is_student(self) -> bool:
        return self.role == Role.STUDENT

    @property
    def is_teacher(self) -> bool:
        return self.role == Role.TEACHER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @classmethod
    def from_user(cls, user) -> "Identity":
        """Build an identity from an authenticated Django user.

        Students carry their enrolments, teachers the courses they teach;
        admins need neither since their scope is unrestricted.
        """
        if user is None or not getattr(user, "is_authenticated", False):
            raise Unauthenticated()
        profile = getattr(user, "profile", None)
        role = str(getattr(profile, "role", None) or Role.STUDENT)

        enrolled: list[tuple[int, int]] = []
        teaching: list[tuple[int, int]] = []
        if role == Role.STUDENT:
            enrolled = list(Course.objects.filter(students=user).values_list("id", "semester_id"))
        elif role == Role.TEACHER:
            teaching = list(Course.objects.filter(teacher=user).values_list("id", "semester_id"))

        return cls(
            id=user.pk,
            role=role,
            active=bool(user.is_active),
            name=profile.display_name if profile else user.get_username(),
            email=user.email or "",
            enrolled_course_ids=frozenset(cid for cid, _ in enrolled),
            teaching_course_ids=frozenset(cid for cid, _ in teaching),
            enrolled_semester_ids=frozenset(sid for _, sid in enrolled if sid is not None),
            teaching_semester_ids=frozenset(sid for _, sid in teaching if sid is not None),
            current_semester_id=getattr(profile, "current_semester_id", None),
        )


def resolve_identity(request) -> Identity:
    """Return the identity for `request`, failing closed.

    The result is cached on the request so role checks, scoping and
    ownership checks within one request agree on the same snapshot.
    """
    user = getattr(request, "user", None)
    cached = getattr(request, "_edutrack_identity", None)
    if cached is not None and user is not None and cached.id == user.pk:
        return cached
    identity = Identity.from_user(user)
    if not identity.active:
        raise Unauthenticated("User account is disabled.")
    request._edutrack_identity = identity
    return identity
