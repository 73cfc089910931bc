"""Visibility policy: which records an identity may read.

Every entity kind follows the same three tiers: students are scoped to
their enrolments, teachers to what they own or teach, admins see
everything. The rules live in one table keyed by ``(EntityKind, role)``;
each rule maps an `Identity` to a Django ``Q`` predicate.

A rule that needs relational data the identity does not carry (a student
with no enrolments, say) yields an empty predicate. Empty scope is a
normal result, not an error.
"""
from __future__ import annotations

import enum
from datetime import datetime
from typing import Callable

from django.db.models import Q, QuerySet
from django.utils import timezone

from accounts.models import Role

from .identity import Identity


class EntityKind(str, enum.Enum):
    COURSE = "course"
    ASSIGNMENT = "assignment"
    ANNOUNCEMENT = "announcement"
    MATERIAL = "material"
    TIMETABLE = "timetable_entry"


_MODEL_KINDS = {
    "courses.course": EntityKind.COURSE,
    "assignments.assignment": EntityKind.ASSIGNMENT,
    "activity.announcement": EntityKind.ANNOUNCEMENT,
    "materials.material": EntityKind.MATERIAL,
    "timetable.timetableentry": EntityKind.TIMETABLE,
}

# Matches no row; Django short-circuits an empty IN without querying.
NOTHING = Q(pk__in=[])
EVERYTHING = Q()

Rule = Callable[[Identity, datetime], Q]

# Role keys are plain strings so lookups by a stored role value match.
STUDENT, TEACHER, ADMIN = Role.STUDENT.value, Role.TEACHER.value, Role.ADMIN.value


def kind_of(obj) -> EntityKind:
    """Entity kind for a model instance or model class."""
    label = obj._meta.label_lower
    try:
        return _MODEL_KINDS[label]
    except KeyError:
        raise LookupError(f"No visibility rules for {label}") from None


def _within(field: str, ids: frozenset[int]) -> Q:
    return Q(**{f"{field}__in": sorted(ids)}) if ids else NOTHING


def _not_expired(now: datetime) -> Q:
    return Q(expiry_date__gt=now) | Q(expiry_date__isnull=True)


# Courses: browsing is open to every active course; mutation is separate.
def _course_browse(identity: Identity, now: datetime) -> Q:
    return Q(is_active=True)


def _assignment_student(identity: Identity, now: datetime) -> Q:
    return Q(is_active=True) & _within("course_id", identity.enrolled_course_ids)


def _assignment_teacher(identity: Identity, now: datetime) -> Q:
    own = Q(teacher_id=identity.id)
    if identity.teaching_course_ids:
        own |= _within("course_id", identity.teaching_course_ids)
    return Q(is_active=True) & own


def _assignment_admin(identity: Identity, now: datetime) -> Q:
    return Q(is_active=True)


def _announcement_student(identity: Identity, now: datetime) -> Q:
    return (
        _within("semester_id", identity.enrolled_semester_ids)
        & Q(is_published=True, is_active=True)
        & _not_expired(now)
    )


def _announcement_teacher(identity: Identity, now: datetime) -> Q:
    return _within("semester_id", identity.teaching_semester_ids) & Q(is_published=True, is_active=True)


def _material_student(identity: Identity, now: datetime) -> Q:
    return _within("course_id", identity.enrolled_course_ids) & Q(is_active=True)


def _material_teacher(identity: Identity, now: datetime) -> Q:
    # Own uploads only, even when browsing
    return Q(teacher_id=identity.id, is_active=True)


def _timetable_student(identity: Identity, now: datetime) -> Q:
    return _within("course_id", identity.enrolled_course_ids) & Q(is_active=True)


def _timetable_teacher(identity: Identity, now: datetime) -> Q:
    # A teacher without assigned courses sees the whole timetable.
    if not identity.teaching_course_ids:
        return Q(is_active=True)
    return _within("course_id", identity.teaching_course_ids) & Q(is_active=True)


def _unrestricted(identity: Identity, now: datetime) -> Q:
    return EVERYTHING


RULES: dict[tuple[EntityKind, str], Rule] = {
    (EntityKind.COURSE, STUDENT): _course_browse,
    (EntityKind.COURSE, TEACHER): _course_browse,
    (EntityKind.COURSE, ADMIN): _unrestricted,
    (EntityKind.ASSIGNMENT, STUDENT): _assignment_student,
    (EntityKind.ASSIGNMENT, TEACHER): _assignment_teacher,
    (EntityKind.ASSIGNMENT, ADMIN): _assignment_admin,
    (EntityKind.ANNOUNCEMENT, STUDENT): _announcement_student,
    (EntityKind.ANNOUNCEMENT, TEACHER): _announcement_teacher,
    (EntityKind.ANNOUNCEMENT, ADMIN): _unrestricted,
    (EntityKind.MATERIAL, STUDENT): _material_student,
    (EntityKind.MATERIAL, TEACHER): _material_teacher,
    (EntityKind.MATERIAL, ADMIN): _unrestricted,
    (EntityKind.TIMETABLE, STUDENT): _timetable_student,
    (EntityKind.TIMETABLE, TEACHER): _timetable_teacher,
    (EntityKind.TIMETABLE, ADMIN): _unrestricted,
}


def scope_filter(kind: EntityKind, identity: Identity, now: datetime | None = None) -> Q:
    """Predicate restricting `kind` to what `identity` may read.

    Inactive identities and roles without a rule see nothing.
    """
    if not identity.active:
        return NOTHING
    rule = RULES.get((EntityKind(kind), str(identity.role)))
    if rule is None:
        return NOTHING
    return rule(identity, now or timezone.now())


def scope(kind: EntityKind, identity: Identity, queryset: QuerySet, now: datetime | None = None) -> QuerySet:
    return queryset.filter(scope_filter(kind, identity, now))


def is_visible(identity: Identity, instance, now: datetime | None = None) -> bool:
    """Whether a single stored instance falls inside the identity's scope."""
    kind = kind_of(instance)
    manager = type(instance)._default_manager
    return manager.filter(pk=instance.pk).filter(scope_filter(kind, identity, now)).exists()
