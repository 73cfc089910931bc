"""Weekly timetable entries.

An entry books a teacher and a room for a course on one weekday, over
the half-open interval ``[start_time, end_time)``. Overlap checks live in
`policy.rules`; the model only guarantees ``start_time < end_time``.
"""
from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Case, IntegerField, Value, When

from courses.models import Course


class Day(models.TextChoices):
    MONDAY = "Monday", "Monday"
    TUESDAY = "Tuesday", "Tuesday"
    WEDNESDAY = "Wednesday", "Wednesday"
    THURSDAY = "Thursday", "Thursday"
    FRIDAY = "Friday", "Friday"
    SATURDAY = "Saturday", "Saturday"
    SUNDAY = "Sunday", "Sunday"


class EntryType(models.TextChoices):
    LECTURE = "lecture", "Lecture"
    LAB = "lab", "Lab"
    TUTORIAL = "tutorial", "Tutorial"
    EXAM = "exam", "Exam"


class TimetableQuerySet(models.QuerySet):
    def in_week_order(self):
        """Monday to Sunday, then by start time."""
        day_index = Case(
            *[When(day=value, then=Value(i)) for i, value in enumerate(Day.values)],
            output_field=IntegerField(),
        )
        return self.alias(day_index=day_index).order_by("day_index", "start_time", "id")


class TimetableEntry(models.Model):
    day = models.CharField(max_length=10, choices=Day.choices)
    start_time = models.TimeField()
    end_time = models.TimeField()
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="timetable_entries")
    teacher = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="timetable_entries")
    room = models.CharField(max_length=50)
    type = models.CharField(max_length=10, choices=EntryType.choices, default=EntryType.LECTURE)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TimetableQuerySet.as_manager()

    class Meta:
        ordering = ["day", "start_time"]
        verbose_name_plural = "timetable entries"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(start_time__lt=models.F("end_time")),
                name="timetable_start_before_end",
            ),
        ]
        indexes = [
            models.Index(fields=["day", "start_time"], name="timetable_day_start_idx"),
            models.Index(fields=["teacher", "day"], name="timetable_teacher_day_idx"),
            models.Index(fields=["course", "day"], name="timetable_course_day_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.day} {self.start_time:%H:%M}-{self.end_time:%H:%M} {self.room}"
