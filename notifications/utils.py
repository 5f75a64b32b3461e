import logging

from django.conf import settings
from django.core.mail import send_mail

from .models import Notification

logger = logging.getLogger(__name__)


def notify(user, title: str, message: str):
    """
    Fire-and-forget: store the notification and, when NOTIFY_BY_EMAIL is on,
    mail it. Never raises.
    """
    email = getattr(user, "email", "") or ""
    by_email = bool(getattr(settings, "NOTIFY_BY_EMAIL", False)) and bool(email)
    try:
        note = Notification.objects.create(
            user=user, title=title, message=message,
            channel="email" if by_email else "in_app",
            status="queued" if by_email else "sent",
        )
    except Exception:
        logger.exception("could not store notification for user %s", getattr(user, "pk", None))
        return None

    if by_email:
        try:
            send_mail(title, message, None, [email], fail_silently=False)
            note.status = "sent"
        except Exception as e:
            note.status = "failed"
            note.error = str(e)
            logger.warning("notification email to user %s failed: %s", user.pk, e)
        note.save(update_fields=["status", "error"])
    return note
