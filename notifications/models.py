from django.conf import settings
from django.db import models


class Notification(models.Model):
    CHANNEL_CHOICES = [("in_app", "In-app"), ("email", "Email")]
    STATUS_CHOICES = [("queued", "Queued"), ("sent", "Sent"), ("failed", "Failed")]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notifications")
    title = models.CharField(max_length=200)
    message = models.TextField(blank=True)
    channel = models.CharField(max_length=16, choices=CHANNEL_CHOICES, default="in_app")
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default="queued")
    error = models.TextField(blank=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created_at",)
        indexes = [models.Index(fields=["user", "created_at"], name="notification_user_created_idx")]

    def __str__(self):
        return f"{self.user_id} [{self.status}] {self.title}"
