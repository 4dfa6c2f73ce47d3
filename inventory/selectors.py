"""Selectors for the inventory domain (read side).

Querysets feeding the admin inventory table and the transaction history
drawer. No side effects.
"""

from typing import Optional

from catalog.models import ProductAttributeValue, ProductVariant
from common.choices import StockStatus
from django.conf import settings
from django.db.models import F, Prefetch, Q, QuerySet, Value
from django.db.models.functions import Coalesce

from . import ledger
from .exceptions import NotFound
from .models import InventoryTransaction, StockRecord, StockReservation


def low_stock_threshold() -> int:
    return int(getattr(settings, "INVENTORY_LOW_STOCK_THRESHOLD", 10))


def stock_status(record: StockRecord) -> str:
    threshold = record.reorder_level if record.reorder_level is not None else low_stock_threshold()
    available = record.available_stock
    if available <= 0:
        return StockStatus.OUT
    if available <= threshold:
        return StockStatus.LOW
    return StockStatus.OK


def list_stock(
    *,
    keyword: Optional[str] = None,
    status: Optional[str] = None,
    include_archived: bool = False,
) -> QuerySet[StockRecord]:
    """Current stock per variant with optional keyword and status filters.

    ``keyword`` matches SKU, barcode or product title, case-insensitively.
    ``status`` is one of ``out``, ``low``, ``ok``.
    """

    qs = (
        StockRecord.objects.select_related("variant", "variant__product")
        .prefetch_related(
            Prefetch(
                "variant__attribute_values",
                queryset=ProductAttributeValue.objects.select_related("attribute"),
            )
        )
        .annotate(
            available=F("quantity_on_hand") - F("quantity_reserved"),
            threshold=Coalesce("reorder_level", Value(low_stock_threshold())),
        )
    )
    if not include_archived:
        qs = qs.filter(variant__status=ProductVariant.STATUS_ACTIVE)

    keyword = (keyword or "").strip()
    if keyword:
        qs = qs.filter(
            Q(variant__sku__icontains=keyword)
            | Q(variant__barcode__icontains=keyword)
            | Q(variant__product__title__icontains=keyword)
        )

    if status == StockStatus.OUT:
        qs = qs.filter(available__lte=0)
    elif status == StockStatus.LOW:
        qs = qs.filter(available__gt=0, available__lte=F("threshold"))
    elif status == StockStatus.OK:
        qs = qs.filter(available__gt=F("threshold"))

    return qs.order_by("variant__product__title", "variant__sku")


def get_history(variant_id: int) -> QuerySet[InventoryTransaction]:
    """Newest-first ledger rows for a variant; unknown variants raise ``NotFound``."""

    if not StockRecord.objects.filter(variant_id=variant_id).exists():
        raise NotFound(f"No stock record for variant {variant_id}", code="variantNotFound")
    return ledger.list_by_variant(variant_id)


def list_reservations(*, variant_id: Optional[int] = None, state: Optional[str] = None):
    qs = StockReservation.objects.select_related("variant").order_by("-created_at", "-id")
    if variant_id is not None:
        qs = qs.filter(variant_id=variant_id)
    if state:
        qs = qs.filter(state=state)
    return qs


def expired_reservations(now) -> QuerySet[StockReservation]:
    return StockReservation.objects.filter(state=StockReservation.STATE_RESERVED, expires_at__lt=now).order_by("id")


# EOF
