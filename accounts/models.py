"""Accounts models: user profile and roles.

Defines a `UserProfile` associated one-to-one with Django's `User`,
capturing the role (student/teacher/admin), contact fields and the
student's selected semester. The profile is created automatically on
user creation.
"""
from __future__ import annotations

from django.conf import settings
from django.db import models


class Role(models.TextChoices):
    """Platform roles used by the visibility policy and role guards."""

    STUDENT = "student", "Student"
    TEACHER = "teacher", "Teacher"
    ADMIN = "admin", "Admin"


class UserProfile(models.Model):
    """Profile linked to a Django auth user.

    - `role`: authorisation tier for every API action
    - `current_semester`: chosen once by students via the selection flow
    - Enrolled and taught courses live on `courses.Course`
    """

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="profile")
    role = models.CharField(max_length=16, choices=Role.choices, default=Role.STUDENT)

    full_name = models.CharField(max_length=200, blank=True)
    phone = models.CharField(max_length=50, blank=True)
    department = models.CharField(max_length=100, blank=True)
    student_number = models.CharField(max_length=50, blank=True)
    instructor_id = models.CharField(max_length=50, blank=True, null=True, unique=True)

    current_semester = models.ForeignKey(
        "courses.Semester",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="selected_by",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:  # pragma: no cover (string repr convenience)
        return f"Profile<{self.user.username}:{self.role}>"

    @property
    def display_name(self) -> str:
        return self.full_name or self.user.get_full_name() or self.user.username
