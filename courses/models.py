"""Semesters and courses.

`Semester` carries the current-semester flag: saving a current semester
clears the flag on every other row in the same transaction. `Course`
belongs to one semester, has an optional teacher and holds its enrolled
students as a many-to-many set.
"""
from __future__ import annotations

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models, transaction


class Semester(models.Model):
    number = models.PositiveSmallIntegerField(
        unique=True, validators=[MinValueValidator(1), MaxValueValidator(8)]
    )
    name = models.CharField(max_length=100)
    academic_year = models.CharField(max_length=20)
    is_active = models.BooleanField(default=True)
    is_current = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["number"]
        indexes = [models.Index(fields=["is_active", "is_current"], name="semester_active_current_idx")]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.name} ({self.academic_year})"

    def save(self, *args, **kwargs):
        with transaction.atomic():
            if self.is_current:
                Semester.objects.exclude(pk=self.pk).filter(is_current=True).update(is_current=False)
            super().save(*args, **kwargs)


class Course(models.Model):
    """A course offered in one semester."""

    name = models.CharField(max_length=200)
    code = models.CharField(max_length=20)
    description = models.TextField(blank=True)
    semester = models.ForeignKey(Semester, on_delete=models.PROTECT, related_name="courses")
    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="teaching_courses",
    )
    students = models.ManyToManyField(settings.AUTH_USER_MODEL, blank=True, related_name="enrolled_courses")
    prerequisites = models.ManyToManyField("self", symmetrical=False, blank=True, related_name="required_by")
    credits = models.PositiveSmallIntegerField(
        default=3, validators=[MinValueValidator(1), MaxValueValidator(6)]
    )
    department = models.CharField(max_length=100, blank=True)
    is_core = models.BooleanField(default=True)
    max_enrollment = models.PositiveIntegerField(default=60, validators=[MinValueValidator(1)])
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["code"]
        constraints = [
            models.UniqueConstraint(fields=["code", "semester"], name="course_code_per_semester"),
        ]
        indexes = [
            models.Index(fields=["semester", "department"], name="course_semester_dept_idx"),
            models.Index(fields=["teacher", "semester"], name="course_teacher_semester_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code} {self.name}"

    @staticmethod
    def normalise_code(code: str) -> str:
        return (code or "").strip().upper()

    def save(self, *args, **kwargs):
        self.code = self.normalise_code(self.code)
        super().save(*args, **kwargs)

    @property
    def enrolled_count(self) -> int:
        return self.students.count()
