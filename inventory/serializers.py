"""Serializers for the inventory domain.

Read serializers render ledger rows with the camelCase keys used by the admin
frontend. Write serializers only check payload shape; business rules (reason
required, non-negative stock, positive import price) live in the services so
they produce the ledger's error codes.
"""

from common.choices import TransactionType
from rest_framework import serializers

from .models import InventoryTransaction, StockRecord, StockReservation
from .selectors import stock_status


class StockRecordSerializer(serializers.ModelSerializer):
    """Read-only representation of stock for a variant.

    Exposes computed ``availableStock`` and the variant/product metadata the
    inventory table displays.
    """

    variantId = serializers.IntegerField(source="variant_id", read_only=True)
    productId = serializers.IntegerField(source="variant.product_id", read_only=True)
    productName = serializers.CharField(source="variant.product.title", read_only=True)
    sku = serializers.CharField(source="variant.sku", read_only=True)
    barcode = serializers.CharField(source="variant.barcode", read_only=True)
    attributes = serializers.SerializerMethodField()
    price = serializers.DecimalField(source="variant.price", max_digits=12, decimal_places=2, read_only=True)
    costPrice = serializers.DecimalField(
        source="variant.cost_price", max_digits=12, decimal_places=2, read_only=True
    )
    variantStatus = serializers.CharField(source="variant.status", read_only=True)
    quantity = serializers.IntegerField(source="quantity_on_hand", read_only=True)
    reservedQuantity = serializers.IntegerField(source="quantity_reserved", read_only=True)
    availableStock = serializers.IntegerField(source="available_stock", read_only=True)
    reorderLevel = serializers.IntegerField(source="reorder_level", read_only=True, allow_null=True)
    stockStatus = serializers.SerializerMethodField()
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = StockRecord
        fields = [
            "id",
            "variantId",
            "productId",
            "productName",
            "sku",
            "barcode",
            "attributes",
            "price",
            "costPrice",
            "variantStatus",
            "quantity",
            "reservedQuantity",
            "availableStock",
            "reorderLevel",
            "stockStatus",
            "updatedAt",
        ]
        read_only_fields = fields

    def get_attributes(self, obj) -> dict:
        return obj.variant.attributes

    def get_stockStatus(self, obj) -> str:
        return str(stock_status(obj))


class StockSnapshotSerializer(serializers.Serializer):
    """Renders the cached stock snapshot dict."""

    variantId = serializers.IntegerField(source="variant_id")
    sku = serializers.CharField()
    quantity = serializers.IntegerField(source="quantity_on_hand")
    reservedQuantity = serializers.IntegerField(source="quantity_reserved")
    availableStock = serializers.IntegerField(source="available_stock")
    reorderLevel = serializers.IntegerField(source="reorder_level", allow_null=True)
    updatedAt = serializers.CharField(source="updated_at", allow_null=True)


class TransactionSerializer(serializers.ModelSerializer):
    """Read-only ledger row.

    Stock deltas and reservation deltas are reported separately: a RESERVE
    row has ``quantityDelta == 0`` yet changes ``availableStock``.
    """

    variantId = serializers.IntegerField(source="variant_id", read_only=True)
    quantityDelta = serializers.IntegerField(source="quantity_delta", read_only=True)
    reservedDelta = serializers.IntegerField(source="reserved_delta", read_only=True)
    availableDelta = serializers.IntegerField(source="available_delta", read_only=True)
    beforeQuantity = serializers.IntegerField(source="before_quantity", read_only=True)
    afterQuantity = serializers.IntegerField(source="after_quantity", read_only=True)
    beforeReserved = serializers.IntegerField(source="before_reserved", read_only=True)
    afterReserved = serializers.IntegerField(source="after_reserved", read_only=True)
    isReservation = serializers.BooleanField(source="is_reservation_event", read_only=True)
    unitCost = serializers.DecimalField(
        source="unit_cost", max_digits=12, decimal_places=2, read_only=True, allow_null=True
    )
    performedBy = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = InventoryTransaction
        fields = [
            "id",
            "variantId",
            "type",
            "quantityDelta",
            "reservedDelta",
            "availableDelta",
            "beforeQuantity",
            "afterQuantity",
            "beforeReserved",
            "afterReserved",
            "isReservation",
            "unitCost",
            "reference",
            "note",
            "performedBy",
            "createdAt",
        ]
        read_only_fields = fields

    def get_performedBy(self, obj) -> dict:
        user = obj.performed_by
        return {
            "id": getattr(user, "id", None),
            "username": obj.performed_by_label,
            "email": getattr(user, "email", None) or None,
        }


class ReservationSerializer(serializers.ModelSerializer):
    """Read-only representation of a reservation unit."""

    variantId = serializers.IntegerField(source="variant_id", read_only=True)
    expiresAt = serializers.DateTimeField(source="expires_at", read_only=True, allow_null=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = StockReservation
        fields = ["id", "variantId", "quantity", "reference", "state", "expiresAt", "createdAt"]
        read_only_fields = fields


class AdjustStockSerializer(serializers.Serializer):
    variantId = serializers.IntegerField(source="variant_id")
    quantityDelta = serializers.IntegerField(source="quantity_delta", required=False, default=0)
    reason = serializers.CharField(
        allow_blank=True, required=False, default="", max_length=500, trim_whitespace=False
    )
    type = serializers.CharField(source="transaction_type", required=False, default=TransactionType.ADJUST.value)


class ImportStockSerializer(serializers.Serializer):
    variantId = serializers.IntegerField(source="variant_id")
    quantity = serializers.IntegerField(required=False, default=0)
    importPrice = serializers.DecimalField(
        source="unit_cost", max_digits=12, decimal_places=2, required=False, allow_null=True, default=None
    )
    note = serializers.CharField(allow_blank=True, required=False, default="", max_length=500)
    reference = serializers.CharField(allow_blank=True, required=False, default="", max_length=120)


class ReserveStockSerializer(serializers.Serializer):
    variantId = serializers.IntegerField(source="variant_id")
    quantity = serializers.IntegerField(required=False, default=0)
    reference = serializers.CharField(allow_blank=True, required=False, default="", max_length=120)
    expiresAt = serializers.DateTimeField(source="expires_at", required=False, allow_null=True, default=None)


class ReservationTransitionSerializer(serializers.Serializer):
    variantId = serializers.IntegerField(source="variant_id")
    reference = serializers.CharField(allow_blank=True, required=False, default="", max_length=120)
    quantity = serializers.IntegerField(required=False, allow_null=True, default=None)
    note = serializers.CharField(allow_blank=True, required=False, default="", max_length=500)


class ReorderLevelSerializer(serializers.Serializer):
    reorderLevel = serializers.IntegerField(source="reorder_level", allow_null=True)


# EOF
