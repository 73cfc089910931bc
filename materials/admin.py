from django.contrib import admin

from .models import Material


@admin.register(Material)
class MaterialAdmin(admin.ModelAdmin):
    list_display = ("title", "course", "teacher", "size_bytes", "download_count", "is_active", "created_at")
    list_filter = ("is_active", "semester")
    search_fields = ("title", "description", "course__code", "teacher__username")
