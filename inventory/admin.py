"""Admin registrations for inventory app.

Ledger rows are read-only here; every change goes through the services.
"""

from django.contrib import admin

from .models import IdempotencyKey, InventoryTransaction, StockRecord, StockReservation


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StockRecord)
class StockRecordAdmin(ReadOnlyAdmin):
    list_display = ("id", "variant", "quantity_on_hand", "quantity_reserved", "reorder_level", "updated_at")
    search_fields = ("variant__sku", "variant__barcode")


@admin.register(InventoryTransaction)
class InventoryTransactionAdmin(ReadOnlyAdmin):
    list_display = (
        "id",
        "variant",
        "type",
        "quantity_delta",
        "before_quantity",
        "after_quantity",
        "reference",
        "performed_by_label",
        "created_at",
    )
    list_filter = ("type",)
    search_fields = ("variant__sku", "reference", "note")


@admin.register(StockReservation)
class StockReservationAdmin(ReadOnlyAdmin):
    list_display = ("id", "variant", "quantity", "state", "reference", "expires_at", "created_at")
    list_filter = ("state",)
    search_fields = ("variant__sku", "reference")


@admin.register(IdempotencyKey)
class IdempotencyKeyAdmin(ReadOnlyAdmin):
    list_display = ("id", "key", "scope", "method", "path", "response_code", "expires_at")
    search_fields = ("key", "path")


# EOF
