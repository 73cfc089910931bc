"""Course services: enrolment, teaching assignment and teaching stats."""
from __future__ import annotations

import logging
from typing import Iterable

from django.db import transaction
from django.db.models import Count

from policy.rules import check_enrollment

from .models import Course

logger = logging.getLogger(__name__)


@transaction.atomic
def enroll_student(course: Course, student) -> Course:
    """Add `student` to the course roster.

    The course row is locked so concurrent enrolments cannot overfill it.
    """
    course = Course.objects.select_for_update().get(pk=course.pk)
    check_enrollment(course, student.pk)
    course.students.add(student)
    logger.info("Enrolled user=%s in course=%s", student.pk, course.pk)
    return course


@transaction.atomic
def set_teaching_courses(teacher, course_ids: Iterable[int]) -> list[Course]:
    """Make `course_ids` exactly the set of courses `teacher` teaches.

    Courses dropped from the set are left without a teacher.
    """
    wanted = {int(cid) for cid in course_ids}
    Course.objects.filter(teacher=teacher).exclude(pk__in=wanted).update(teacher=None)
    Course.objects.filter(pk__in=wanted).update(teacher=teacher)
    logger.info("Teaching courses for user=%s set to %s", teacher.pk, sorted(wanted))
    return list(Course.objects.filter(teacher=teacher).select_related("semester"))


def teacher_stats(teacher) -> dict[str, int]:
    courses = list(
        Course.objects.filter(teacher=teacher, is_active=True).annotate(student_count=Count("students"))
    )
    total_students = sum(c.student_count for c in courses)
    return {
        "total_courses": len(courses),
        "total_students": total_students,
        "total_credits": sum(c.credits for c in courses),
        "core_courses": sum(1 for c in courses if c.is_core),
        "average_enrollment": round(total_students / len(courses)) if courses else 0,
    }
