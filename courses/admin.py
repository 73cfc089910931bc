from django.contrib import admin

from .models import Course, Semester


@admin.register(Semester)
class SemesterAdmin(admin.ModelAdmin):
    list_display = ("number", "name", "academic_year", "is_active", "is_current")
    list_filter = ("is_active", "is_current")


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "semester", "teacher", "credits", "max_enrollment", "is_active")
    list_filter = ("semester", "department", "is_core", "is_active")
    search_fields = ("code", "name", "teacher__username")
    filter_horizontal = ("students", "prerequisites")
