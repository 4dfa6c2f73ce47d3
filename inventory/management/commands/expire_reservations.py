import logging

from django.core.management.base import BaseCommand
from django.utils import timezone
from inventory.exceptions import AlreadyConfirmed, AlreadyReleased
from inventory.selectors import expired_reservations
from inventory.services import release_reservation

logger = logging.getLogger("aurea.inventory")


class Command(BaseCommand):
    help = "Release reserved stock whose expires_at timestamp has passed."

    def handle(self, *args, **options):
        now = timezone.now()
        count = 0
        # Each release locks stock record then reservation in its own transaction
        for reservation in expired_reservations(now).iterator():
            try:
                release_reservation(
                    variant_id=reservation.variant_id,
                    reference=reservation.reference,
                    note="Reservation expired",
                )
            except (AlreadyReleased, AlreadyConfirmed):
                # Settled by an order flow between the query and the lock
                logger.info(
                    "inventory.expiry_skipped",
                    extra={"event": "inventory.expiry_skipped", "reservation_id": reservation.id},
                )
                continue
            count += 1
        self.stdout.write(self.style.SUCCESS(f"Expired reservations released: {count}"))
