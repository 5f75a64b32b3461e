from django.core.management.base import BaseCommand

from payments.tasks import expire_pending_attempts


class Command(BaseCommand):
    help = "Mark pending payments older than the timeout as expired."

    def add_arguments(self, parser):
        parser.add_argument("--timeout-mins", type=int, default=None,
                            help="Override PAYMENT_PENDING_TIMEOUT_MINUTES")

    def handle(self, *args, **opts):
        count = expire_pending_attempts(opts["timeout_mins"])
        self.stdout.write(self.style.SUCCESS(f"Expired {count} pending payment(s)."))
