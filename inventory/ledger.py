"""Ledger store and transaction log.

Every change to a ``StockRecord`` goes through ``commit``: the row is locked,
the deltas are validated against the stock invariants, and exactly one
``InventoryTransaction`` is appended inside the same database transaction.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.db import transaction
from django.db.models import QuerySet

from .exceptions import InvalidState, NotFound
from .models import InventoryTransaction, StockRecord, StockReservation, check_transaction_shape

logger = logging.getLogger("aurea.inventory")


@dataclass(frozen=True)
class LedgerChange:
    record: StockRecord
    before_quantity: int
    after_quantity: int
    before_reserved: int
    after_reserved: int

    @property
    def quantity_delta(self) -> int:
        return self.after_quantity - self.before_quantity

    @property
    def reserved_delta(self) -> int:
        return self.after_reserved - self.before_reserved


@dataclass(frozen=True)
class Reconciliation:
    """Result of replaying a variant's transactions against its stock record."""

    variant_id: int
    on_hand: int
    reserved: int
    replayed_on_hand: int
    replayed_reserved: int
    transaction_count: int
    broken_links: int = 0

    @property
    def is_consistent(self) -> bool:
        return (
            self.on_hand == self.replayed_on_hand
            and self.reserved == self.replayed_reserved
            and self.broken_links == 0
        )


def actor_label(user) -> str:
    if user is not None and getattr(user, "is_authenticated", False):
        return user.get_username()
    return "system"


def get_stock(variant_id: int) -> StockRecord:
    try:
        return StockRecord.objects.select_related("variant", "variant__product").get(variant_id=variant_id)
    except StockRecord.DoesNotExist:
        raise NotFound(f"No stock record for variant {variant_id}", code="variantNotFound")


def lock_stock(variant_id: int) -> StockRecord:
    """Return the stock record locked for update. Must run inside an atomic block."""
    try:
        return StockRecord.objects.select_for_update().select_related("variant").get(variant_id=variant_id)
    except StockRecord.DoesNotExist:
        raise NotFound(f"No stock record for variant {variant_id}", code="variantNotFound")


@transaction.atomic
def apply_delta(
    *, variant_id: int, quantity_delta: int, reserved_delta: int, record: Optional[StockRecord] = None
) -> LedgerChange:
    """Add both deltas to the stock record, refusing any result that breaks the invariants.

    The record is left untouched when ``InvalidState`` is raised.
    """
    if record is None:
        record = lock_stock(variant_id)
    before_quantity = int(record.quantity_on_hand)
    before_reserved = int(record.quantity_reserved)
    after_quantity = before_quantity + int(quantity_delta)
    after_reserved = before_reserved + int(reserved_delta)

    if after_quantity < 0:
        raise InvalidState("Quantity on hand cannot go negative", code="negativeOnHand")
    if after_reserved < 0:
        raise InvalidState("Reserved quantity cannot go negative", code="negativeReserved")
    if after_reserved > after_quantity:
        raise InvalidState("Reserved quantity cannot exceed quantity on hand", code="reservedExceedsOnHand")

    record.quantity_on_hand = after_quantity
    record.quantity_reserved = after_reserved
    record.save(update_fields=["quantity_on_hand", "quantity_reserved", "updated_at"])
    return LedgerChange(
        record=record,
        before_quantity=before_quantity,
        after_quantity=after_quantity,
        before_reserved=before_reserved,
        after_reserved=after_reserved,
    )


def append(
    *,
    change: LedgerChange,
    transaction_type: str,
    reference: str = "",
    note: str = "",
    unit_cost: Optional[Decimal] = None,
    reservation: Optional[StockReservation] = None,
    performed_by=None,
) -> InventoryTransaction:
    """Write the log row describing ``change``. Existing rows are never touched."""
    check_transaction_shape(transaction_type, change.quantity_delta, change.reserved_delta)
    user = performed_by if getattr(performed_by, "is_authenticated", False) else None
    return InventoryTransaction.objects.create(
        variant_id=change.record.variant_id,
        stock_record=change.record,
        type=transaction_type,
        quantity_delta=change.quantity_delta,
        before_quantity=change.before_quantity,
        after_quantity=change.after_quantity,
        before_reserved=change.before_reserved,
        after_reserved=change.after_reserved,
        unit_cost=unit_cost,
        reference=reference or "",
        note=note or "",
        reservation=reservation,
        performed_by=user,
        performed_by_label=actor_label(performed_by),
    )


@transaction.atomic
def commit(
    *,
    variant_id: int,
    transaction_type: str,
    quantity_delta: int,
    reserved_delta: int = 0,
    record: Optional[StockRecord] = None,
    **fields,
) -> InventoryTransaction:
    """Apply a delta and append its transaction as one atomic unit."""
    # Shape is checked before any write so a malformed request never reaches the row
    check_transaction_shape(transaction_type, quantity_delta, reserved_delta)
    change = apply_delta(
        variant_id=variant_id, quantity_delta=quantity_delta, reserved_delta=reserved_delta, record=record
    )
    return append(change=change, transaction_type=transaction_type, **fields)


def list_by_variant(variant_id: int) -> QuerySet[InventoryTransaction]:
    """Newest-first history for a variant."""
    return (
        InventoryTransaction.objects.filter(variant_id=variant_id)
        .select_related("performed_by")
        .order_by("-created_at", "-id")
    )


def replay(variant_id: int) -> tuple[int, int, int, int]:
    """Fold the variant's transactions oldest-first from zero.

    Returns ``(on_hand, reserved, count, broken_links)`` where ``broken_links``
    counts rows whose before snapshot does not match the running balance.
    """
    on_hand = reserved = count = broken = 0
    rows = (
        InventoryTransaction.objects.filter(variant_id=variant_id)
        .order_by("id")
        .values_list("quantity_delta", "before_quantity", "before_reserved", "after_reserved")
    )
    for quantity_delta, before_quantity, before_reserved, after_reserved in rows.iterator():
        if before_quantity != on_hand or before_reserved != reserved:
            broken += 1
        on_hand += quantity_delta
        reserved += after_reserved - before_reserved
        count += 1
    return on_hand, reserved, count, broken


def reconcile(variant_id: int) -> Reconciliation:
    record = get_stock(variant_id)
    on_hand, reserved, count, broken = replay(variant_id)
    result = Reconciliation(
        variant_id=variant_id,
        on_hand=int(record.quantity_on_hand),
        reserved=int(record.quantity_reserved),
        replayed_on_hand=on_hand,
        replayed_reserved=reserved,
        transaction_count=count,
        broken_links=broken,
    )
    if not result.is_consistent:
        logger.warning(
            "inventory.reconcile_drift",
            extra={
                "event": "inventory.reconcile_drift",
                "variant_id": variant_id,
                "on_hand": result.on_hand,
                "replayed_on_hand": on_hand,
                "reserved": result.reserved,
                "replayed_reserved": reserved,
                "broken_links": broken,
            },
        )
    return result


# EOF
