from django.core.management.base import BaseCommand

from payments.tasks import purge_webhook_receipts


class Command(BaseCommand):
    help = "Delete webhook receipts older than the retention period."

    def add_arguments(self, parser):
        parser.add_argument("--hours", type=int, default=None,
                            help="Override WEBHOOK_RECEIPT_RETENTION_HOURS")

    def handle(self, *args, **opts):
        count = purge_webhook_receipts(opts["hours"])
        self.stdout.write(self.style.SUCCESS(f"Purged {count} receipt(s)."))
