from django.contrib import admin

from .models import UserProfile


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "role", "full_name", "student_number", "instructor_id", "current_semester")
    list_filter = ("role", "current_semester")
    search_fields = ("user__username", "user__email", "full_name", "student_number", "instructor_id")
