"""
Django admin configuration for learning models.
"""

from django.contrib import admin

from learning.models import Course, Enrollment


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ["title", "price_paisa", "instructor", "is_published", "total_enrollments"]
    list_filter = ["is_published"]
    search_fields = ["title", "slug"]
    prepopulated_fields = {"slug": ("title",)}
    readonly_fields = ["total_enrollments", "created_at", "updated_at"]


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ["id", "user", "course", "status", "affiliate", "activated_at"]
    list_filter = ["status"]
    search_fields = ["user__email", "course__title"]
    raw_id_fields = ["user", "course", "affiliate"]
    readonly_fields = ["activated_at", "created_at", "updated_at"]
