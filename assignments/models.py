from __future__ import annotations

from pathlib import Path

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from courses.models import Course, Semester


def validate_submission_file(file) -> None:
    size = getattr(file, "size", None)
    limit = settings.EDUTRACK_SUBMISSION_MAX_BYTES
    if size is not None and size > limit:
        raise ValidationError(f"File too large (max {limit // (1024 * 1024)} MB)")


class Assignment(models.Model):
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="assignments")
    # Copied from the course at creation so semester queries need no join.
    semester = models.ForeignKey(Semester, on_delete=models.PROTECT, related_name="assignments")
    teacher = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="authored_assignments")
    due_date = models.DateTimeField()
    max_points = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["due_date", "id"]
        indexes = [models.Index(fields=["course", "is_active"], name="assignment_course_active_idx")]

    def __str__(self) -> str:  # pragma: no cover
        return self.title

    def save(self, *args, **kwargs):
        if self.semester_id is None and self.course_id is not None:
            self.semester_id = self.course.semester_id
        super().save(*args, **kwargs)


class Submission(models.Model):
    """A student's single hand-in for an assignment."""

    assignment = models.ForeignKey(Assignment, on_delete=models.CASCADE, related_name="submissions")
    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="submissions")
    file = models.FileField(upload_to="assignment_submissions/", validators=[validate_submission_file])
    original_name = models.CharField(max_length=255, blank=True)
    submitted_at = models.DateTimeField(default=timezone.now)
    grade = models.FloatField(null=True, blank=True)
    feedback = models.TextField(blank=True)
    graded_at = models.DateTimeField(null=True, blank=True)
    graded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="graded_submissions",
    )

    class Meta:
        ordering = ["submitted_at", "id"]
        constraints = [
            models.UniqueConstraint(fields=["assignment", "student"], name="one_submission_per_student"),
            models.CheckConstraint(
                condition=models.Q(grade__isnull=True) | models.Q(grade__gte=0),
                name="submission_grade_non_negative",
            ),
        ]

    def save(self, *args, **kwargs):
        if not self.original_name and self.file:
            self.original_name = Path(self.file.name or "").name
        super().save(*args, **kwargs)

    def __str__(self) -> str:  # pragma: no cover
        return f"Submission {self.student_id} on {self.assignment_id}"


class Grade(models.Model):
    """Gradebook record for a student on an assignment.

    Kept separately from the submission so grades can be recorded for
    work handed in outside the platform.
    """

    assignment = models.ForeignKey(Assignment, on_delete=models.CASCADE, related_name="grades")
    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="grades")
    grade = models.FloatField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        unique_together = ("assignment", "student")
        indexes = [models.Index(fields=["student", "assignment"], name="grade_student_assignment_idx")]

    def __str__(self) -> str:  # pragma: no cover
        return f"Grade {self.student_id}/{self.assignment_id}: {self.grade}"
