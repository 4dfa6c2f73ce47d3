"""Replay every variant's ledger and compare it with its stock record.

Exits with an error when any record drifted from its transactions, so it can
run as a scheduled check.
"""

from django.core.management.base import BaseCommand, CommandError
from inventory import ledger
from inventory.models import StockRecord


class Command(BaseCommand):
    help = "Check that each stock record equals the replay of its transactions."

    def add_arguments(self, parser):
        parser.add_argument("--variant", type=int, action="append", dest="variants", help="Only check this variant")

    def handle(self, *args, **options):
        qs = StockRecord.objects.order_by("variant_id").values_list("variant_id", flat=True)
        if options.get("variants"):
            qs = qs.filter(variant_id__in=options["variants"])

        checked = 0
        drifted = []
        for variant_id in qs.iterator():
            result = ledger.reconcile(variant_id)
            checked += 1
            if not result.is_consistent:
                drifted.append(result)
                self.stdout.write(
                    self.style.WARNING(
                        f"variant {variant_id}: on_hand {result.on_hand} vs {result.replayed_on_hand}, "
                        f"reserved {result.reserved} vs {result.replayed_reserved}, "
                        f"broken links {result.broken_links}"
                    )
                )

        if drifted:
            raise CommandError(f"{len(drifted)} of {checked} stock records drifted from their ledger")
        self.stdout.write(self.style.SUCCESS(f"Reconciled {checked} stock records."))
