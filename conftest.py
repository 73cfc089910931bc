from __future__ import annotations

import logging
from datetime import time, timedelta

import pytest
from django.contrib.auth.models import User
from django.core.cache import cache
from django.utils import timezone
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient

from accounts.models import Role
from courses.models import Course, Semester


@pytest.fixture(autouse=True)
def silence_django_request_logger():
    """Reduce noise from expected 4xx in passing tests.

    Many tests intentionally exercise 400/403/409 paths. Django logs these
    at WARNING via 'django.request'; lower that logger to ERROR meanwhile.
    """
    logger = logging.getLogger("django.request")
    old = logger.level
    logger.setLevel(logging.ERROR)
    try:
        yield
    finally:
        logger.setLevel(old)


@pytest.fixture(autouse=True)
def reset_throttles():
    # Throttle history lives in the default cache.
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path / "media"
    return settings.MEDIA_ROOT


def make_user(username: str, role: str = Role.STUDENT, **extra) -> User:
    user = User.objects.create_user(username=username, password="pw", email=f"{username}@example.com", **extra)
    if role != user.profile.role:
        user.profile.role = role
        user.profile.save()
    return user


def api_client_for(user: User | None) -> APIClient:
    client = APIClient()
    if user is not None:
        token, _ = Token.objects.get_or_create(user=user)
        client.credentials(HTTP_AUTHORIZATION=f"Token {token.key}")
    return client


@pytest.fixture
def user_factory(db):
    return make_user


@pytest.fixture
def client_for(db):
    return api_client_for


@pytest.fixture
def student(db):
    return make_user("stud", Role.STUDENT)


@pytest.fixture
def teacher(db):
    return make_user("teach", Role.TEACHER)


@pytest.fixture
def admin_user(db):
    return make_user("boss", Role.ADMIN)


@pytest.fixture
def semester_factory(db):
    def _make(number: int, **extra) -> Semester:
        extra.setdefault("name", f"Semester {number}")
        extra.setdefault("academic_year", "2025-2026")
        return Semester.objects.create(number=number, **extra)

    return _make


@pytest.fixture
def course_factory(db, semester_factory):
    def _make(code: str, semester: Semester | None = None, teacher: User | None = None, **extra) -> Course:
        if semester is None:
            semester = Semester.objects.filter(number=1).first() or semester_factory(1)
        extra.setdefault("name", f"Course {code}")
        extra.setdefault("department", "Computing")
        return Course.objects.create(code=code, semester=semester, teacher=teacher, **extra)

    return _make


@pytest.fixture
def assignment_factory(db):
    from assignments.models import Assignment

    def _make(course: Course, teacher: User | None = None, **extra) -> Assignment:
        extra.setdefault("title", "Essay")
        extra.setdefault("due_date", timezone.now() + timedelta(days=7))
        extra.setdefault("max_points", 100)
        return Assignment.objects.create(course=course, teacher=teacher or course.teacher, **extra)

    return _make


@pytest.fixture
def entry_factory(db):
    from timetable.models import TimetableEntry

    def _make(course: Course, teacher: User, day: str = "Monday", start: str = "09:00", end: str = "10:00", **extra):
        extra.setdefault("room", "101")
        return TimetableEntry.objects.create(
            course=course,
            teacher=teacher,
            day=day,
            start_time=time.fromisoformat(start),
            end_time=time.fromisoformat(end),
            **extra,
        )

    return _make
