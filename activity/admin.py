from django.contrib import admin

from .models import Announcement, AnnouncementAttachment


class AttachmentInline(admin.TabularInline):
    model = AnnouncementAttachment
    extra = 0


@admin.register(Announcement)
class AnnouncementAdmin(admin.ModelAdmin):
    list_display = ("title", "semester", "author", "priority", "type", "is_published", "is_active", "publish_date")
    list_filter = ("priority", "type", "is_published", "is_active", "semester")
    search_fields = ("title", "content", "author__username")
    inlines = [AttachmentInline]
