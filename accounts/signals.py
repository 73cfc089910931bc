"""Signals for automatic profile management.

On user creation, create a `UserProfile`: superusers become admins,
everyone else starts as a student. Student numbers and instructor ids are
filled in whenever a profile holds the matching role without one.
"""
from django.conf import settings
from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from .models import Role, UserProfile


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_user_profile(sender, instance, created: bool, **kwargs):
    if created:
        role = Role.ADMIN if instance.is_superuser else Role.STUDENT
        UserProfile.objects.create(user=instance, role=role, full_name=instance.get_full_name())


@receiver(pre_save, sender=UserProfile)
def ensure_role_identifiers(sender, instance: UserProfile, **kwargs):
    """Students get an S-prefixed number, teachers an I-prefixed id."""
    if not instance.user_id:
        return
    if instance.role == Role.STUDENT and not instance.student_number:
        instance.student_number = f"S{instance.user_id:07d}"
    elif instance.role == Role.TEACHER and not instance.instructor_id:
        instance.instructor_id = f"I{instance.user_id:07d}"
