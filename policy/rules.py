"""Cross-record invariants checked before a write is committed.

- Timetable entries sharing a teacher, or a course and room, must not
  overlap on the same day (half-open intervals: touching is allowed).
- At most one semester is current and it must be active; switching is
  a single transaction.
- Semester numbers and (course code, semester) pairs are unique.
- One submission per (assignment, student); grades stay in range, also
  when an assignment's max_points is lowered.
- Enrolment is once per course and bounded by the course capacity.
"""
from __future__ import annotations

from datetime import time

from django.db import transaction
from django.db.models import Q, QuerySet

from assignments.models import Grade, Submission
from courses.models import Course, Semester
from timetable.models import TimetableEntry

from .exceptions import ConflictError, RuleViolation


def intervals_overlap(a_start: time, a_end: time, b_start: time, b_end: time) -> bool:
    """Half-open overlap: [a_start, a_end) meets [b_start, b_end)."""
    return a_start < b_end and a_end > b_start


def check_time_range(start: time, end: time) -> None:
    if start >= end:
        raise RuleViolation("Start time must be before end time.", field="end_time")


def find_timetable_conflicts(
    *,
    day: str,
    start_time: time,
    end_time: time,
    course_id: int,
    teacher_id: int,
    room: str,
    exclude_id: int | None = None,
) -> QuerySet:
    """Active entries on `day` that would clash with the candidate slot."""
    qs = TimetableEntry.objects.filter(
        day=day,
        is_active=True,
        start_time__lt=end_time,
        end_time__gt=start_time,
    ).filter(Q(teacher_id=teacher_id) | Q(course_id=course_id, room=room))
    if exclude_id is not None:
        qs = qs.exclude(pk=exclude_id)
    return qs


def check_timetable_conflict(**candidate) -> None:
    check_time_range(candidate["start_time"], candidate["end_time"])
    clash = find_timetable_conflicts(**candidate).order_by("start_time").first()
    if clash is not None:
        raise ConflictError(
            "Time conflict detected. Teacher or room is already booked during this time.",
            invariant="timetable_overlap",
            conflicting_entry=clash.pk,
        )


def set_current_semester(semester: Semester) -> Semester:
    """Make `semester` the only current one."""
    with transaction.atomic():
        Semester.objects.exclude(pk=semester.pk).filter(is_current=True).update(is_current=False)
        semester.is_current = True
        semester.save(update_fields=["is_current", "updated_at"])
    return semester


def check_semester_number_unique(number: int, exclude_id: int | None = None) -> None:
    qs = Semester.objects.filter(number=number)
    if exclude_id is not None:
        qs = qs.exclude(pk=exclude_id)
    if qs.exists():
        raise ConflictError("Semester with this number already exists.", invariant="semester_number")


def check_course_code_unique(code: str, semester_id: int, exclude_id: int | None = None) -> None:
    qs = Course.objects.filter(code=Course.normalise_code(code), semester_id=semester_id)
    if exclude_id is not None:
        qs = qs.exclude(pk=exclude_id)
    if qs.exists():
        raise ConflictError("Course code already exists for this semester.", invariant="course_code")


def check_single_submission(assignment_id: int, student_id: int) -> None:
    if Submission.objects.filter(assignment_id=assignment_id, student_id=student_id).exists():
        raise ConflictError("Assignment already submitted.", invariant="duplicate_submission")


def check_grade_range(grade, max_points) -> None:
    if grade is None:
        raise RuleViolation("A grade is required.", field="grade")
    if not 0 <= grade <= max_points:
        raise RuleViolation(f"Grade must be between 0 and {max_points}.", field="grade")


def check_max_points_covers_grades(assignment_id: int, max_points: int) -> None:
    """Lowering the ceiling must not strand grades already recorded above it."""
    too_high = Submission.objects.filter(assignment_id=assignment_id, grade__gt=max_points).exists()
    if too_high or Grade.objects.filter(assignment_id=assignment_id, grade__gt=max_points).exists():
        raise RuleViolation(
            f"Existing grades exceed {max_points} points; regrade them first.", field="max_points"
        )


def check_can_be_current(is_active: bool) -> None:
    if not is_active:
        raise RuleViolation("Inactive semesters cannot be made current.", field="is_active")


def check_enrollment(course: Course, student_id: int) -> None:
    if not course.is_active:
        raise RuleViolation("Course is not open for enrolment.", field="course")
    if course.students.filter(pk=student_id).exists():
        raise ConflictError("Already enrolled in this course.", invariant="already_enrolled")
    if course.students.count() >= course.max_enrollment:
        raise ConflictError("Course is full.", invariant="course_full")
