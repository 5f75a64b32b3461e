from django.core.management.base import BaseCommand

from payments.tasks import expire_registrations


class Command(BaseCommand):
    help = "Expire provider registrations whose paid window has ended."

    def handle(self, *args, **opts):
        count = expire_registrations()
        self.stdout.write(self.style.SUCCESS(f"Expired {count} registration(s)."))
