from django.contrib import admin

from .models import Assignment, Grade, Submission


class SubmissionInline(admin.TabularInline):
    model = Submission
    extra = 0
    fields = ("student", "file", "submitted_at", "grade", "graded_by", "graded_at")
    readonly_fields = ("submitted_at",)


@admin.register(Assignment)
class AssignmentAdmin(admin.ModelAdmin):
    list_display = ("title", "course", "teacher", "due_date", "max_points", "is_active")
    list_filter = ("course", "semester", "is_active")
    search_fields = ("title", "course__code", "course__name")
    inlines = [SubmissionInline]


@admin.register(Grade)
class GradeAdmin(admin.ModelAdmin):
    list_display = ("assignment", "student", "grade", "updated_at")
    list_filter = ("assignment__course",)
    search_fields = ("student__username", "assignment__title")
