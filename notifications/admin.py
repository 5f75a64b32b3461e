from django.contrib import admin
from .models import Notification

@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "title", "channel", "status", "is_read", "created_at")
    search_fields = ("user__email", "title")
    list_filter = ("channel", "status", "created_at")
    date_hierarchy = "created_at"
