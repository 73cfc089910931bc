"""Announcement read tracking."""
from __future__ import annotations

from django.db.models import Case, Exists, IntegerField, OuterRef, QuerySet, Value, When

from .models import PRIORITY_RANK, Announcement, AnnouncementRead


def mark_read(announcement: Announcement, student) -> AnnouncementRead:
    """Idempotent: a second call keeps the first read time."""
    read, _ = AnnouncementRead.objects.get_or_create(announcement=announcement, student=student)
    return read


def by_priority(queryset: QuerySet) -> QuerySet:
    """Urgent first, then high, medium, low; newest first within a priority."""
    rank = Case(
        *[When(priority=value, then=Value(i)) for value, i in PRIORITY_RANK.items()],
        default=Value(len(PRIORITY_RANK)),
        output_field=IntegerField(),
    )
    return queryset.alias(priority_rank=rank).order_by("priority_rank", "-publish_date", "-id")


def with_read_flag(queryset: QuerySet, user) -> QuerySet:
    return queryset.annotate(
        is_read=Exists(AnnouncementRead.objects.filter(announcement=OuterRef("pk"), student=user)),
    )


def unread_for(queryset: QuerySet, user) -> QuerySet:
    return queryset.exclude(reads__student=user)
