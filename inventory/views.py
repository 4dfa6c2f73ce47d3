"""Inventory API endpoints.

Read endpoints list stock and ledger history; write endpoints call the
ledger services and return the stock before -> after so the admin UI can
update without refetching. Mutations accept an ``Idempotency-Key`` header.
"""

from common.api import EnvelopePagination, envelope, error_body
from common.choices import ReservationState, StockStatus, TransactionType
from django_filters import rest_framework as filters
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema
from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from . import selectors, services
from .cache import get_stock_snapshot
from .exceptions import InventoryError, ValidationError
from .idempotency import compute_request_hash, with_idempotency
from .models import InventoryTransaction
from .serializers import (
    AdjustStockSerializer,
    ImportStockSerializer,
    ReorderLevelSerializer,
    ReservationSerializer,
    ReservationTransitionSerializer,
    ReserveStockSerializer,
    StockRecordSerializer,
    StockSnapshotSerializer,
    TransactionSerializer,
)
from .throttling import InventoryScopedRateThrottle

IDEMPOTENCY_HEADER = OpenApiParameter(
    name="Idempotency-Key",
    location=OpenApiParameter.HEADER,
    required=False,
    description="Makes the request idempotent within scope+path+method",
    type=str,
)

STOCK_EXAMPLE = {
    "id": 1,
    "variantId": 10,
    "productId": 3,
    "productName": "Silk Scarf",
    "sku": "SCARF-RED",
    "barcode": "8930000000010",
    "attributes": {"color": "red"},
    "price": "350000.00",
    "costPrice": "120000.00",
    "variantStatus": "active",
    "quantity": 10,
    "reservedQuantity": 3,
    "availableStock": 7,
    "reorderLevel": None,
    "stockStatus": "low",
    "updatedAt": "2025-01-01T12:00:00Z",
}

TRANSACTION_EXAMPLE = {
    "id": 41,
    "variantId": 10,
    "type": "RESERVE",
    "quantityDelta": 0,
    "reservedDelta": 3,
    "availableDelta": -3,
    "beforeQuantity": 10,
    "afterQuantity": 10,
    "beforeReserved": 0,
    "afterReserved": 3,
    "isReservation": True,
    "unitCost": None,
    "reference": "ORD-1",
    "note": "",
    "performedBy": {"id": 1, "username": "admin", "email": "admin@example.com"},
    "createdAt": "2025-01-01T12:00:00Z",
}


def _stock_data(variant_id: int) -> dict:
    record = selectors.list_stock(include_archived=True).get(variant_id=variant_id)
    return StockRecordSerializer(record).data


def _mutation_data(tx, **extra) -> dict:
    data = {"stock": _stock_data(tx.variant_id), "transaction": TransactionSerializer(tx).data}
    data.update(extra)
    return data


def _warning_data(warning) -> dict | None:
    if warning is None:
        return None
    return {
        "code": "costDiscrepancy",
        "message": f"Import price differs from the last cost by {warning.percentage}%",
        "previousCost": str(warning.previous_cost),
        "unitCost": str(warning.unit_cost),
        "percentage": str(warning.percentage),
    }


class InventoryHealthView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = []

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Inventory health",
        description="Simple healthcheck endpoint for the inventory app",
        examples=[OpenApiExample("Health OK", value={"status": "ok", "app": "inventory"})],
    )
    def get(self, request):
        return Response({"status": "ok", "app": "inventory"})


class StockListView(generics.ListAPIView):
    permission_classes = [IsAdminUser]
    throttle_classes = [InventoryScopedRateThrottle]
    throttle_scope = "inventory"
    serializer_class = StockRecordSerializer
    pagination_class = EnvelopePagination

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List stock",
        description=(
            "Current stock per variant. `keyword` matches SKU, barcode or product name; "
            "`status` is one of out, low, ok. `page` is zero-based."
        ),
        parameters=[
            OpenApiParameter(name="keyword", required=False, type=str),
            OpenApiParameter(name="status", required=False, type=str, enum=[s.value for s in StockStatus]),
            OpenApiParameter(name="includeArchived", required=False, type=bool),
            OpenApiParameter(name="page", required=False, type=int),
            OpenApiParameter(name="size", required=False, type=int),
        ],
        examples=[
            OpenApiExample(
                "Stock page",
                value={
                    "data": [STOCK_EXAMPLE],
                    "meta": {"page": 0, "size": 20, "totalElements": 1, "totalPages": 1},
                    "error": None,
                },
                response_only=True,
            )
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        params = self.request.query_params
        stock_status = params.get("status") or None
        if stock_status and stock_status not in StockStatus.values:
            raise ValidationError(f"Unknown stock status {stock_status!r}", code="invalidStockStatus")
        return selectors.list_stock(
            keyword=params.get("keyword"),
            status=stock_status,
            include_archived=params.get("includeArchived", "").lower() in ("1", "true", "yes"),
        )


class StockDetailView(APIView):
    """Cached stock snapshot of one variant; PATCH changes its reorder level."""

    permission_classes = [IsAdminUser]
    throttle_classes = [InventoryScopedRateThrottle]
    throttle_scope = "inventory"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Get stock of a variant",
        description="Served from the read-through cache; dropped after every committed mutation.",
        responses={200: StockSnapshotSerializer},
    )
    def get(self, request, variant_id: int):
        snapshot = get_stock_snapshot(variant_id)
        return Response(envelope(StockSnapshotSerializer(snapshot).data))

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Set reorder level",
        description="Changes the low-stock threshold of a variant. `null` falls back to the global threshold.",
        request=ReorderLevelSerializer,
        responses={200: StockRecordSerializer},
    )
    def patch(self, request, variant_id: int):
        serializer = ReorderLevelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.set_reorder_level(variant_id=variant_id, **serializer.validated_data)
        return Response(envelope(_stock_data(variant_id)))


class TransactionFilterSet(filters.FilterSet):
    type = filters.ChoiceFilter(field_name="type", choices=TransactionType.choices)
    reference = filters.CharFilter(field_name="reference")
    createdAfter = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    createdBefore = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lt")

    class Meta:
        model = InventoryTransaction
        fields = ["type", "reference"]


class TransactionHistoryView(generics.ListAPIView):
    permission_classes = [IsAdminUser]
    throttle_classes = [InventoryScopedRateThrottle]
    throttle_scope = "inventory"
    serializer_class = TransactionSerializer
    pagination_class = EnvelopePagination
    filterset_class = TransactionFilterSet
    filter_backends = [filters.DjangoFilterBackend]

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Transaction history",
        description="Newest-first ledger rows of a variant. `page` is zero-based.",
        parameters=[
            OpenApiParameter(name="type", required=False, type=str, enum=list(TransactionType.values)),
            OpenApiParameter(name="reference", required=False, type=str),
            OpenApiParameter(name="createdAfter", required=False, type=OpenApiTypes.DATETIME),
            OpenApiParameter(name="createdBefore", required=False, type=OpenApiTypes.DATETIME),
            OpenApiParameter(name="page", required=False, type=int),
            OpenApiParameter(name="size", required=False, type=int),
        ],
        examples=[
            OpenApiExample(
                "History page",
                value={
                    "data": [TRANSACTION_EXAMPLE],
                    "meta": {"page": 0, "size": 20, "totalElements": 1, "totalPages": 1},
                    "error": None,
                },
                response_only=True,
            )
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        return selectors.get_history(self.kwargs["variant_id"])


class LedgerMutationView(APIView):
    """Shared POST flow: validate the payload, run the service, envelope the result.

    Domain errors are rendered inside the handler so that an idempotent
    replay returns the same failure instead of leaving the key in progress.
    """

    permission_classes = [IsAdminUser]
    throttle_classes = [InventoryScopedRateThrottle]
    throttle_scope = "inventory_write"
    serializer_class = None
    success_status = status.HTTP_200_OK

    def perform(self, request, data: dict) -> dict:
        raise NotImplementedError

    def post(self, request):
        serializer = self.serializer_class(data=request.data)
        serializer.is_valid(raise_exception=True)

        def _handler():
            try:
                data = self.perform(request, dict(serializer.validated_data))
            except InventoryError as exc:
                return envelope(error=error_body(exc.code, exc.message)), exc.status_code
            return envelope(data), self.success_status

        idem_key = request.headers.get("Idempotency-Key")
        if idem_key:
            body, code = with_idempotency(
                key=idem_key,
                user=request.user,
                path=str(request.path),
                method=str(request.method),
                request_hash=compute_request_hash(getattr(request, "data", None)),
                handler=_handler,
            )
            return Response(body, status=code)

        body, code = _handler()
        return Response(body, status=code)


class AdjustStockView(LedgerMutationView):
    serializer_class = AdjustStockSerializer

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Adjust stock",
        description=(
            "Manual correction with a required reason. `type` is ADJUST (either sign), "
            "DAMAGED (decrease) or RETURN (increase)."
        ),
        request=AdjustStockSerializer,
        parameters=[IDEMPOTENCY_HEADER],
        examples=[
            OpenApiExample(
                "Stocktake correction",
                value={"variantId": 10, "quantityDelta": -2, "reason": "Stocktake", "type": "ADJUST"},
                request_only=True,
            ),
            OpenApiExample(
                "Would go negative",
                value={
                    "data": None,
                    "meta": None,
                    "error": {"code": "wouldGoNegative", "message": "Adjustment would leave -1 units on hand"},
                },
                response_only=True,
                status_codes=["400"],
            ),
        ],
    )
    def post(self, request):
        return super().post(request)

    def perform(self, request, data):
        tx = services.adjust_stock(performed_by=request.user, **data)
        return _mutation_data(tx)


class ImportStockView(LedgerMutationView):
    serializer_class = ImportStockSerializer
    success_status = status.HTTP_201_CREATED

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Import stock",
        description=(
            "Supplier intake. The import price becomes the variant's cost price. A `warning` is "
            "returned when it differs from the previous cost by more than the configured ratio."
        ),
        request=ImportStockSerializer,
        parameters=[IDEMPOTENCY_HEADER],
        examples=[
            OpenApiExample(
                "Import",
                value={"variantId": 10, "quantity": 5, "importPrice": "120000.00", "note": "PO-77"},
                request_only=True,
            ),
        ],
    )
    def post(self, request):
        return super().post(request)

    def perform(self, request, data):
        result = services.import_stock(performed_by=request.user, **data)
        return _mutation_data(result.transaction, warning=_warning_data(result.warning))


class ReservationView(LedgerMutationView):
    """GET lists reservations, POST reserves stock against a reference."""

    serializer_class = ReserveStockSerializer
    success_status = status.HTTP_201_CREATED
    pagination_class = EnvelopePagination

    def get_throttles(self):
        self.throttle_scope = "inventory" if self.request.method == "GET" else "inventory_write"
        return super().get_throttles()

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List reservations",
        parameters=[
            OpenApiParameter(name="variantId", required=False, type=int),
            OpenApiParameter(name="state", required=False, type=str, enum=list(ReservationState.values)),
            OpenApiParameter(name="page", required=False, type=int),
            OpenApiParameter(name="size", required=False, type=int),
        ],
        responses={200: ReservationSerializer(many=True)},
    )
    def get(self, request):
        variant_id = request.query_params.get("variantId")
        if variant_id is not None and not variant_id.isdigit():
            raise ValidationError("variantId must be a number", code="validationError")
        state = request.query_params.get("state") or None
        if state is not None and state not in ReservationState.values:
            raise ValidationError(f"Unknown reservation state {state!r}", code="invalidReservationState")
        qs = selectors.list_reservations(
            variant_id=int(variant_id) if variant_id else None,
            state=state,
        )
        paginator = self.pagination_class()
        page = paginator.paginate_queryset(qs, request, view=self)
        return paginator.get_paginated_response(ReservationSerializer(page, many=True).data)

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Reserve stock",
        description="Holds available stock for an order reference. On-hand quantity is unchanged.",
        request=ReserveStockSerializer,
        parameters=[IDEMPOTENCY_HEADER],
        examples=[
            OpenApiExample(
                "Reserve",
                value={"variantId": 10, "quantity": 3, "reference": "ORD-1"},
                request_only=True,
            ),
            OpenApiExample(
                "Reserved",
                value={
                    "data": {"stock": STOCK_EXAMPLE, "transaction": TRANSACTION_EXAMPLE},
                    "meta": None,
                    "error": None,
                },
                response_only=True,
                status_codes=["201"],
            ),
        ],
    )
    def post(self, request):
        return super().post(request)

    def perform(self, request, data):
        tx = services.reserve_stock(performed_by=request.user, **data)
        return _mutation_data(tx, reservation=ReservationSerializer(tx.reservation).data)


class ReleaseReservationView(LedgerMutationView):
    serializer_class = ReservationTransitionSerializer

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Release reservation",
        description="Returns reserved units to available stock. A second release answers 409 alreadyReleased.",
        request=ReservationTransitionSerializer,
        parameters=[IDEMPOTENCY_HEADER],
    )
    def post(self, request):
        return super().post(request)

    def perform(self, request, data):
        tx = services.release_reservation(performed_by=request.user, **data)
        return _mutation_data(tx, reservation=ReservationSerializer(tx.reservation).data)


class ConfirmReservationView(LedgerMutationView):
    serializer_class = ReservationTransitionSerializer

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Confirm reservation",
        description="Turns the reservation into a permanent decrease of on-hand stock.",
        request=ReservationTransitionSerializer,
        parameters=[IDEMPOTENCY_HEADER],
    )
    def post(self, request):
        return super().post(request)

    def perform(self, request, data):
        tx = services.confirm_reservation(performed_by=request.user, **data)
        return _mutation_data(tx, reservation=ReservationSerializer(tx.reservation).data)


# EOF
