from __future__ import annotations

import pytest
from django.db import IntegrityError, transaction

from courses.models import Course, Semester


@pytest.mark.django_db
def test_code_is_upper_cased_and_unique_per_semester(course_factory, semester_factory):
    s1 = semester_factory(1)
    c = course_factory("  ab12 ", semester=s1)
    assert c.code == "AB12"
    with pytest.raises(IntegrityError), transaction.atomic():
        Course.objects.create(code="AB12", name="dup", semester=s1)


@pytest.mark.django_db
def test_semester_number_unique_in_db(semester_factory):
    semester_factory(7)
    with pytest.raises(IntegrityError), transaction.atomic():
        Semester.objects.create(number=7, name="dup", academic_year="2025-2026")


@pytest.mark.django_db
def test_semester_delete_protected_by_courses(course_factory, semester_factory):
    from django.db.models import ProtectedError

    s = semester_factory(2)
    course_factory("P1", semester=s)
    with pytest.raises(ProtectedError):
        s.delete()
