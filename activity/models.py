"""Activity models: semester announcements, read receipts and attachments."""
from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from courses.models import Semester


def default_expiry():
    return timezone.now() + timedelta(days=settings.EDUTRACK_ANNOUNCEMENT_TTL_DAYS)


def validate_attachment(file) -> None:
    size = getattr(file, "size", None)
    limit = settings.EDUTRACK_ATTACHMENT_MAX_BYTES
    if size is not None and size > limit:
        raise ValidationError(f"File too large (max {limit // (1024 * 1024)} MB)")
    ext = Path(getattr(file, "name", "")).suffix.lower()
    if ext not in settings.EDUTRACK_ATTACHMENT_ALLOWED_EXT:
        raise ValidationError("Only images and document files are allowed")


class Priority(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    URGENT = "urgent", "Urgent"


# Listing order: most pressing first.
PRIORITY_RANK = {
    Priority.URGENT: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


class AnnouncementType(models.TextChoices):
    GENERAL = "general", "General"
    ACADEMIC = "academic", "Academic"
    EVENT = "event", "Event"
    EXAM = "exam", "Exam"
    ASSIGNMENT = "assignment", "Assignment"


class Announcement(models.Model):
    title = models.CharField(max_length=200)
    content = models.TextField()
    semester = models.ForeignKey(Semester, on_delete=models.CASCADE, related_name="announcements")
    author = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="announcements")
    priority = models.CharField(max_length=10, choices=Priority.choices, default=Priority.MEDIUM)
    type = models.CharField(max_length=16, choices=AnnouncementType.choices, default=AnnouncementType.GENERAL)
    is_active = models.BooleanField(default=True)
    is_published = models.BooleanField(default=True)
    publish_date = models.DateTimeField(default=timezone.now)
    expiry_date = models.DateTimeField(null=True, blank=True, default=default_expiry)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-publish_date", "-id"]
        indexes = [
            models.Index(fields=["semester", "is_active", "is_published"], name="announcement_visible_idx"),
            models.Index(fields=["expiry_date"], name="announcement_expiry_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return self.title

    @property
    def is_expired(self) -> bool:
        return self.expiry_date is not None and self.expiry_date < timezone.now()


class AnnouncementRead(models.Model):
    announcement = models.ForeignKey(Announcement, on_delete=models.CASCADE, related_name="reads")
    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="announcement_reads")
    read_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["read_at"]
        unique_together = ("announcement", "student")

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.student_id} read {self.announcement_id}"


class AnnouncementAttachment(models.Model):
    announcement = models.ForeignKey(Announcement, on_delete=models.CASCADE, related_name="attachments")
    file = models.FileField(upload_to="announcements/", validators=[validate_attachment])
    original_name = models.CharField(max_length=255, blank=True)
    size_bytes = models.PositiveIntegerField(default=0)
    uploaded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]

    def save(self, *args, **kwargs):
        self.size_bytes = getattr(self.file, "size", self.size_bytes) or 0
        if not self.original_name:
            self.original_name = Path(getattr(self.file, "name", "")).name
        super().save(*args, **kwargs)

    def __str__(self) -> str:  # pragma: no cover
        return self.original_name or self.file.name
