"""Inventory services: transactional ledger mutations.

Each public function validates its input, locks the variant's stock record,
and commits one ledger transaction. Validation failures raise before any
write, so a rejected call leaves the ledger unchanged.
"""

import functools
import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional

from catalog.models import ProductVariant
from common.choices import TransactionType
from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from . import ledger
from .cache import invalidate_stock
from .exceptions import InsufficientStock, InvalidState, InventoryError, NotFound, ValidationError
from .models import InventoryTransaction, StockRecord, StockReservation

logger = logging.getLogger("aurea.inventory")

# Manual adjustment subtypes and the sign each one requires (None: either sign)
ADJUSTMENT_TYPES = {
    TransactionType.ADJUST: None,
    TransactionType.DAMAGED: -1,
    TransactionType.RETURN: 1,
}


@dataclass(frozen=True)
class CostDiscrepancy:
    previous_cost: Decimal
    unit_cost: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class ImportResult:
    transaction: InventoryTransaction
    warning: Optional[CostDiscrepancy] = None


def _log_rejections(operation: str):
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except InventoryError as exc:
                logger.warning(
                    "inventory.rejected",
                    extra={
                        "event": "inventory.rejected",
                        "operation": operation,
                        "variant_id": kwargs.get("variant_id"),
                        "code": exc.code,
                    },
                )
                raise

        return wrapper

    return decorator


def _log_committed(event: str, tx: InventoryTransaction, **extra) -> None:
    logger.info(
        event,
        extra={
            "event": event,
            "variant_id": tx.variant_id,
            "transaction_id": tx.id,
            "type": tx.type,
            "quantity_delta": tx.quantity_delta,
            "reserved_delta": tx.reserved_delta,
            "performed_by": tx.performed_by_label,
            **extra,
        },
    )


def _as_int(value, *, code: str) -> int:
    if isinstance(value, bool) or value is None:
        raise ValidationError("A whole-number quantity is required", code=code)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("A whole-number quantity is required", code=code)


def _as_price(value) -> Optional[Decimal]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite():
        return None
    return price.quantize(Decimal("0.01"))


def cost_discrepancy(previous_cost: Optional[Decimal], unit_cost: Decimal) -> Optional[CostDiscrepancy]:
    """Flag an import whose unit cost strays too far from the last known cost.

    Advisory only: the caller decides whether to surface it, the import is never blocked.
    """
    if not previous_cost or previous_cost <= 0:
        return None
    ratio = Decimal(str(getattr(settings, "INVENTORY_COST_DISCREPANCY_RATIO", 0.5)))
    difference = abs(unit_cost - previous_cost) / previous_cost
    if difference <= ratio:
        return None
    return CostDiscrepancy(
        previous_cost=previous_cost,
        unit_cost=unit_cost,
        percentage=(difference * 100).quantize(Decimal("0.01")),
    )


@transaction.atomic
def open_stock_record(
    *, variant_id: int, quantity: int = 0, reorder_level: Optional[int] = None, performed_by=None
) -> InventoryTransaction:
    """Create the stock record of a new variant with its opening balance transaction."""
    qty = _as_int(quantity, code="invalidOpeningBalance")
    if qty < 0:
        raise ValidationError("Opening balance cannot be negative", code="invalidOpeningBalance")
    if not ProductVariant.objects.filter(id=variant_id).exists():
        raise NotFound(f"Variant {variant_id} does not exist", code="variantNotFound")
    if StockRecord.objects.filter(variant_id=variant_id).exists():
        raise InvalidState(f"Variant {variant_id} already has a stock record", code="stockRecordExists")
    try:
        with transaction.atomic():
            StockRecord.objects.create(variant_id=variant_id, reorder_level=reorder_level)
    except IntegrityError:
        raise InvalidState(f"Variant {variant_id} already has a stock record", code="stockRecordExists")

    record = ledger.lock_stock(variant_id)
    tx = ledger.commit(
        variant_id=variant_id,
        transaction_type=TransactionType.OPENING_BALANCE,
        quantity_delta=qty,
        record=record,
        note="Opening balance",
        performed_by=performed_by,
    )
    invalidate_stock(variant_id)
    _log_committed("inventory.opened", tx)
    return tx


@_log_rejections("adjust")
@transaction.atomic
def adjust_stock(
    *,
    variant_id: int,
    quantity_delta: int,
    reason: str,
    transaction_type: str = TransactionType.ADJUST,
    reference: str = "",
    performed_by=None,
) -> InventoryTransaction:
    """Manual correction (stocktake, loss, damage, customer return).

    ``quantity_delta`` is signed. DAMAGED only decreases, RETURN only increases.
    """
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A reason is required for stock adjustments", code="reasonRequired")
    delta = _as_int(quantity_delta, code="quantityRequired")
    if delta == 0:
        raise ValidationError("Adjustment quantity must not be zero", code="quantityRequired")
    if transaction_type not in ADJUSTMENT_TYPES:
        raise ValidationError(f"{transaction_type} is not an adjustment type", code="invalidAdjustmentType")
    sign = ADJUSTMENT_TYPES[transaction_type]
    if sign is not None and delta * sign < 0:
        raise ValidationError(
            f"{transaction_type} adjustments must {'decrease' if sign < 0 else 'increase'} stock",
            code="invalidAdjustmentType",
        )

    record = ledger.lock_stock(variant_id)
    if int(record.quantity_on_hand) + delta < 0:
        raise ValidationError(
            f"Adjustment would leave {int(record.quantity_on_hand) + delta} units on hand",
            code="wouldGoNegative",
        )
    tx = ledger.commit(
        variant_id=variant_id,
        transaction_type=transaction_type,
        quantity_delta=delta,
        record=record,
        reference=reference,
        note=reason,
        performed_by=performed_by,
    )
    invalidate_stock(variant_id)
    _log_committed("inventory.adjusted", tx)
    return tx


@_log_rejections("import")
@transaction.atomic
def import_stock(
    *,
    variant_id: int,
    quantity: int,
    unit_cost,
    note: str = "",
    reference: str = "",
    performed_by=None,
) -> ImportResult:
    """Record supplier intake. The unit cost becomes the variant's cost price."""
    qty = _as_int(quantity, code="quantityRequired")
    if qty <= 0:
        raise ValidationError("Import quantity must be positive", code="quantityRequired")
    cost = _as_price(unit_cost)
    if cost is None or cost <= 0:
        raise ValidationError("A positive import price is required", code="importPriceRequired")

    record = ledger.lock_stock(variant_id)
    variant = ProductVariant.objects.select_for_update().get(id=variant_id)
    warning = cost_discrepancy(variant.cost_price, cost)

    tx = ledger.commit(
        variant_id=variant_id,
        transaction_type=TransactionType.IMPORT,
        quantity_delta=qty,
        record=record,
        unit_cost=cost,
        reference=reference,
        note=(note or "").strip(),
        performed_by=performed_by,
    )
    variant.cost_price = cost
    variant.save(update_fields=["cost_price", "updated_at"])
    invalidate_stock(variant_id)
    _log_committed(
        "inventory.imported",
        tx,
        unit_cost=str(cost),
        cost_warning=warning is not None,
    )
    return ImportResult(transaction=tx, warning=warning)


def _reservation_for_update(*, variant_id: int, reference: str) -> StockReservation:
    qs = StockReservation.objects.select_for_update().filter(variant_id=variant_id, reference=reference)
    reservation = qs.filter(state=StockReservation.STATE_RESERVED).first()
    if reservation is None:
        reservation = qs.order_by("-id").first()
    if reservation is None:
        raise NotFound(f"No reservation {reference!r} for variant {variant_id}", code="reservationNotFound")
    return reservation


def _check_reservation_quantity(reservation: StockReservation, quantity) -> None:
    if quantity is None:
        return
    if _as_int(quantity, code="quantityMismatch") != int(reservation.quantity):
        raise ValidationError(
            f"Reservation {reservation.reference} holds {reservation.quantity} units",
            code="quantityMismatch",
        )


def _default_expiry():
    minutes = int(getattr(settings, "INVENTORY_RESERVATION_TTL_MINUTES", 30) or 0)
    if minutes <= 0:
        return None
    return timezone.now() + timedelta(minutes=minutes)


@_log_rejections("reserve")
@transaction.atomic
def reserve_stock(
    *, variant_id: int, quantity: int, reference: str, expires_at=None, performed_by=None
) -> InventoryTransaction:
    """Hold available stock against an order. On-hand quantity is unchanged."""
    qty = _as_int(quantity, code="quantityRequired")
    if qty <= 0:
        raise ValidationError("Reservation quantity must be positive", code="quantityRequired")
    reference = (reference or "").strip()
    if not reference:
        raise ValidationError("A reservation reference is required", code="referenceRequired")
    if expires_at is not None and expires_at <= timezone.now():
        raise ValidationError("Reservation expiry must be in the future", code="invalidExpiry")

    record = ledger.lock_stock(variant_id)
    if record.available_stock < qty:
        raise InsufficientStock(f"Only {record.available_stock} units available to reserve")
    if StockReservation.objects.filter(
        variant_id=variant_id, reference=reference, state=StockReservation.STATE_RESERVED
    ).exists():
        raise InvalidState(f"Reservation {reference!r} is already open", code="reservationExists")

    reservation = StockReservation.objects.create(
        variant_id=variant_id,
        quantity=qty,
        reference=reference,
        expires_at=expires_at or _default_expiry(),
        state=StockReservation.STATE_RESERVED,
    )
    tx = ledger.commit(
        variant_id=variant_id,
        transaction_type=TransactionType.RESERVE,
        quantity_delta=0,
        reserved_delta=qty,
        record=record,
        reference=reference,
        reservation=reservation,
        performed_by=performed_by,
    )
    invalidate_stock(variant_id)
    _log_committed("inventory.reserved", tx, reference=reference)
    return tx


@_log_rejections("release")
@transaction.atomic
def release_reservation(
    *, variant_id: int, reference: str, quantity=None, note: str = "", performed_by=None
) -> InventoryTransaction:
    """Return reserved units to available stock (order cancelled or expired).

    A reservation is released at most once; a repeat raises ``AlreadyReleased``.
    """
    record = ledger.lock_stock(variant_id)
    reservation = _reservation_for_update(variant_id=variant_id, reference=(reference or "").strip())
    reservation.ensure_can_transition(StockReservation.STATE_RELEASED)
    _check_reservation_quantity(reservation, quantity)

    tx = ledger.commit(
        variant_id=variant_id,
        transaction_type=TransactionType.RELEASE,
        quantity_delta=0,
        reserved_delta=-int(reservation.quantity),
        record=record,
        reference=reservation.reference,
        note=(note or "").strip(),
        reservation=reservation,
        performed_by=performed_by,
    )
    reservation.state = StockReservation.STATE_RELEASED
    reservation.save(update_fields=["state", "updated_at"])
    invalidate_stock(variant_id)
    _log_committed("inventory.released", tx, reference=reservation.reference)
    return tx


@_log_rejections("confirm")
@transaction.atomic
def confirm_reservation(
    *, variant_id: int, reference: str, quantity=None, note: str = "", performed_by=None
) -> InventoryTransaction:
    """Turn a reservation into a permanent decrease of on-hand stock."""
    record = ledger.lock_stock(variant_id)
    reservation = _reservation_for_update(variant_id=variant_id, reference=(reference or "").strip())
    reservation.ensure_can_transition(StockReservation.STATE_CONFIRMED)
    _check_reservation_quantity(reservation, quantity)

    qty = int(reservation.quantity)
    tx = ledger.commit(
        variant_id=variant_id,
        transaction_type=TransactionType.CONFIRM,
        quantity_delta=-qty,
        reserved_delta=-qty,
        record=record,
        reference=reservation.reference,
        note=(note or "").strip(),
        reservation=reservation,
        performed_by=performed_by,
    )
    reservation.state = StockReservation.STATE_CONFIRMED
    reservation.save(update_fields=["state", "updated_at"])
    invalidate_stock(variant_id)
    _log_committed("inventory.confirmed", tx, reference=reservation.reference)
    return tx


@transaction.atomic
def set_reorder_level(*, variant_id: int, reorder_level: Optional[int]) -> StockRecord:
    """Change the low-stock threshold of a variant. Quantities are not touched."""
    if reorder_level is not None:
        reorder_level = _as_int(reorder_level, code="invalidReorderLevel")
        if reorder_level < 0:
            raise ValidationError("Reorder level cannot be negative", code="invalidReorderLevel")
    record = ledger.lock_stock(variant_id)
    record.reorder_level = reorder_level
    record.save(update_fields=["reorder_level", "updated_at"])
    invalidate_stock(variant_id)
    return record


# EOF
