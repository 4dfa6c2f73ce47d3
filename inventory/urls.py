from django.urls import path

from .views import (
    AdjustStockView,
    ConfirmReservationView,
    ImportStockView,
    InventoryHealthView,
    ReleaseReservationView,
    ReservationView,
    StockDetailView,
    StockListView,
    TransactionHistoryView,
)

urlpatterns = [
    path("inventory/health", InventoryHealthView.as_view(), name="inventory-health"),
    path("inventory", StockListView.as_view(), name="inventory-list"),
    # Mutations
    path("inventory/adjust", AdjustStockView.as_view(), name="inventory-adjust"),
    path("inventory/import", ImportStockView.as_view(), name="inventory-import"),
    path("inventory/reservations", ReservationView.as_view(), name="inventory-reservations"),
    path("inventory/reservations/release", ReleaseReservationView.as_view(), name="inventory-reservation-release"),
    path("inventory/reservations/confirm", ConfirmReservationView.as_view(), name="inventory-reservation-confirm"),
    # Per variant
    path("inventory/<int:variant_id>", StockDetailView.as_view(), name="inventory-detail"),
    path("inventory/<int:variant_id>/transactions", TransactionHistoryView.as_view(), name="inventory-transactions"),
]

# EOF
