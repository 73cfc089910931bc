from __future__ import annotations

import logging
from datetime import datetime, time
from pathlib import Path

from django.db import IntegrityError, transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone

from policy.rules import check_grade_range, check_single_submission

from .models import Assignment, Grade, Submission

logger = logging.getLogger(__name__)


def combine_due(due_date, due_time: time | None = None) -> datetime:
    """Merge an optional time of day into the due date.

    A bare date without a time is taken at midnight in the current timezone.
    """
    if isinstance(due_date, datetime):
        value = due_date
        if due_time is not None:
            value = value.replace(hour=due_time.hour, minute=due_time.minute, second=0, microsecond=0)
    else:
        value = datetime.combine(due_date, due_time or time.min)
    if timezone.is_naive(value):
        value = timezone.make_aware(value)
    return value


@transaction.atomic
def submit(assignment: Assignment, student, upload) -> Submission:
    """Record the student's one submission for `assignment`.

    Raises `ConflictError` when the student already submitted; the
    existing submission is left untouched.
    """
    # Serialise concurrent submissions for the same assignment.
    Assignment.objects.select_for_update().get(pk=assignment.pk)
    check_single_submission(assignment.pk, student.pk)
    submission = Submission(
        assignment=assignment,
        student=student,
        file=upload,
        original_name=Path(getattr(upload, "name", "") or "").name,
    )
    submission.full_clean(exclude=["assignment", "student"])
    try:
        submission.save()
    except IntegrityError:
        submission.file.delete(save=False)
        raise
    logger.info("Submission stored: assignment=%s student=%s", assignment.pk, student.pk)
    return submission


@transaction.atomic
def grade_submission(assignment: Assignment, student_id: int, grade, grader, feedback: str = "") -> Submission:
    check_grade_range(grade, assignment.max_points)
    submission = get_object_or_404(
        Submission.objects.select_for_update(), assignment=assignment, student_id=student_id
    )
    submission.grade = grade
    submission.feedback = feedback or ""
    submission.graded_at = timezone.now()
    submission.graded_by = grader
    submission.save(update_fields=["grade", "feedback", "graded_at", "graded_by"])
    logger.info(
        "Graded assignment=%s student=%s grade=%s by=%s", assignment.pk, student_id, grade, grader.pk
    )
    return submission


@transaction.atomic
def upsert_grade(assignment: Assignment, student, grade) -> tuple[Grade, bool]:
    """Create or replace the gradebook record for (assignment, student)."""
    check_grade_range(grade, assignment.max_points)
    record, created = Grade.objects.select_for_update().update_or_create(
        assignment=assignment, student=student, defaults={"grade": grade}
    )
    logger.info(
        "Gradebook %s: assignment=%s student=%s grade=%s",
        "created" if created else "updated",
        assignment.pk,
        student.pk,
        grade,
    )
    return record, created
