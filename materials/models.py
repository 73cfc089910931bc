"""Materials models and validators.

Defines `Material`, a file a teacher uploads to a course. Uploads are
checked against the configured size cap and extension allow-list
(`EDUTRACK_MATERIAL_MAX_BYTES`, `EDUTRACK_MATERIAL_ALLOWED_EXT`).
Deleting a material only clears `is_active`.
"""
from __future__ import annotations

import mimetypes
from pathlib import Path

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F

from courses.models import Course, Semester


def validate_upload(file) -> None:
    """Validate file size and extension.

    Only the uploaded size and filename are inspected; MIME is guessed
    from the name when saving, for display.
    """
    size = getattr(file, "size", None)
    limit = settings.EDUTRACK_MATERIAL_MAX_BYTES
    if size is not None and size > limit:
        raise ValidationError(f"File too large (max {limit // (1024 * 1024)} MB)")
    ext = Path(getattr(file, "name", "")).suffix.lower()
    if ext not in settings.EDUTRACK_MATERIAL_ALLOWED_EXT:
        raise ValidationError("File type not allowed")


def parse_tags(raw) -> list[str]:
    """Accept a list or a comma-separated string; drop blanks and duplicates."""
    if raw is None:
        return []
    items = raw.split(",") if isinstance(raw, str) else raw
    tags: list[str] = []
    for item in items:
        tag = str(item).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


class Material(models.Model):
    """A file attached to a course, uploaded by a teacher."""

    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="materials")
    semester = models.ForeignKey(Semester, on_delete=models.PROTECT, related_name="materials")
    teacher = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="materials")
    file = models.FileField(upload_to="materials/", validators=[validate_upload])
    original_name = models.CharField(max_length=255, blank=True)
    size_bytes = models.PositiveIntegerField(default=0)
    mime = models.CharField(max_length=100, blank=True)
    tags = models.JSONField(default=list, blank=True)
    download_count = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["course", "is_active"], name="material_course_active_idx"),
            models.Index(fields=["teacher", "is_active"], name="material_teacher_active_idx"),
        ]

    def save(self, *args, **kwargs):
        # Derive size and MIME on save for display and quick checks.
        f = self.file
        if f:
            self.size_bytes = getattr(f, "size", self.size_bytes) or 0
            self.mime = mimetypes.guess_type(f.name or "")[0] or ""
            if not self.original_name:
                self.original_name = Path(f.name or "").name
        if self.semester_id is None and self.course_id is not None:
            self.semester_id = self.course.semester_id
        self.tags = parse_tags(self.tags)
        super().save(*args, **kwargs)

    def record_download(self) -> None:
        """Increment the counter in the database so concurrent downloads all count."""
        Material.objects.filter(pk=self.pk).update(download_count=F("download_count") + 1)
        self.refresh_from_db(fields=["download_count"])

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.title} ({self.course_id})"
