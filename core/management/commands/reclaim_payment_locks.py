from django.core.management.base import BaseCommand

from payments.tasks import reclaim_payment_locks


class Command(BaseCommand):
    help = "Delete expired payment lock leases."

    def handle(self, *args, **opts):
        count = reclaim_payment_locks()
        self.stdout.write(self.style.SUCCESS(f"Reclaimed {count} expired lock(s)."))
