from django.contrib import admin

from .models import TimetableEntry


@admin.register(TimetableEntry)
class TimetableEntryAdmin(admin.ModelAdmin):
    list_display = ("day", "start_time", "end_time", "course", "teacher", "room", "type", "is_active")
    list_filter = ("day", "type", "is_active")
    search_fields = ("room", "course__code", "course__name", "teacher__username")
