# core/management/commands/reconcile_payments.py
from django.core.management.base import BaseCommand

from payments.tasks import reconcile_payments


class Command(BaseCommand):
    help = "Re-apply accepted gateway callbacks that never activated; optionally re-query the gateway."

    def add_arguments(self, parser):
        parser.add_argument("--requery", action="store_true",
                            help="Also ask the gateway about stale pending payments")
        parser.add_argument("--age-mins", type=int, default=2,
                            help="Only requery payments older than N minutes (default: 2)")
        parser.add_argument("--max", type=int, default=200,
                            help="Max receipts/payments to process per pass (default: 200)")

    def handle(self, *args, **opts):
        stats = reconcile_payments(requery=opts["requery"], age_minutes=opts["age_mins"], limit=opts["max"])
        msg = (f"Done. Replayed {stats['replayed']} receipt(s), requeried {stats['requeried']} payment(s). "
               f"Changed {stats['changed']}, errors {stats['errors']}.")
        if stats["errors"]:
            self.stderr.write(msg)
        else:
            self.stdout.write(self.style.SUCCESS(msg))
