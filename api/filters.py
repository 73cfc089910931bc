"""Query-parameter filters for list endpoints.

Filters only narrow what the visibility policy already allows; they are
applied after scoping.
"""
from __future__ import annotations

import django_filters

from activity.models import Announcement
from assignments.models import Assignment, Grade
from courses.models import Course
from materials.models import Material
from timetable.models import TimetableEntry


class CourseFilter(django_filters.FilterSet):
    semester_number = django_filters.NumberFilter(field_name="semester__number")
    department = django_filters.CharFilter(lookup_expr="iexact")

    class Meta:
        model = Course
        fields = ["semester", "semester_number", "department", "is_core", "teacher"]


class AssignmentFilter(django_filters.FilterSet):
    semester_number = django_filters.NumberFilter(field_name="semester__number")
    due_after = django_filters.IsoDateTimeFilter(field_name="due_date", lookup_expr="gte")
    due_before = django_filters.IsoDateTimeFilter(field_name="due_date", lookup_expr="lte")

    class Meta:
        model = Assignment
        fields = ["course", "semester", "semester_number"]


class GradeFilter(django_filters.FilterSet):
    class Meta:
        model = Grade
        fields = ["student", "assignment"]


class AnnouncementFilter(django_filters.FilterSet):
    class Meta:
        model = Announcement
        fields = ["semester", "priority", "type"]


class MaterialFilter(django_filters.FilterSet):
    semester_number = django_filters.NumberFilter(field_name="semester__number")

    class Meta:
        model = Material
        fields = ["course", "semester", "teacher", "semester_number"]


class TimetableFilter(django_filters.FilterSet):
    class Meta:
        model = TimetableEntry
        fields = ["day", "course", "teacher", "type"]
