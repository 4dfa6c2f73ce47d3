"""Read-through cache of per-variant stock snapshots.

Entries are dropped after every committed ledger mutation for the variant,
so a cached snapshot is never older than the last successful write.
"""

from django.conf import settings
from django.core.cache import cache
from django.db import transaction

from . import ledger


def stock_cache_key(variant_id: int) -> str:
    return f"inventory:stock:{int(variant_id)}"


def snapshot_for(record) -> dict:
    return {
        "variant_id": record.variant_id,
        "sku": record.variant.sku,
        "quantity_on_hand": int(record.quantity_on_hand),
        "quantity_reserved": int(record.quantity_reserved),
        "available_stock": record.available_stock,
        "reorder_level": record.reorder_level,
        "updated_at": record.updated_at.isoformat() if record.updated_at else None,
    }


def get_stock_snapshot(variant_id: int) -> dict:
    key = stock_cache_key(variant_id)
    snapshot = cache.get(key)
    if snapshot is None:
        snapshot = snapshot_for(ledger.get_stock(variant_id))
        cache.set(key, snapshot, getattr(settings, "INVENTORY_STOCK_CACHE_TTL", 300))
    return snapshot


def invalidate_stock(variant_id: int) -> None:
    key = stock_cache_key(variant_id)
    transaction.on_commit(lambda: cache.delete(key))
