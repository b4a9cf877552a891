from django.urls import path

from .views import (
    AdjustmentView,
    InventoryHealthView,
    LedgerAuditView,
    LowStockListView,
    OutOfStockListView,
    ProductInventoryView,
    ProductVariantsView,
    RecordSalesView,
    StockCheckView,
    TransactionListView,
    VariantDetailView,
)

urlpatterns = [
    path("health/", InventoryHealthView.as_view(), name="inventory-health"),
    # Variants
    path("products/<str:product_id>/variants/", ProductVariantsView.as_view(), name="product-variants"),
    path("products/<str:product_id>/inventory/", ProductInventoryView.as_view(), name="product-inventory"),
    path("variants/<int:variant_id>/", VariantDetailView.as_view(), name="variant-detail"),
    # Stock movements
    path("adjustments/", AdjustmentView.as_view(), name="inventory-adjustment"),
    path("sales/", RecordSalesView.as_view(), name="inventory-sales"),
    path("stock-check/", StockCheckView.as_view(), name="stock-check"),
    # Reporting
    path("low-stock/", LowStockListView.as_view(), name="low-stock-list"),
    path("out-of-stock/", OutOfStockListView.as_view(), name="out-of-stock-list"),
    path("transactions/", TransactionListView.as_view(), name="transaction-list"),
    path("ledger-audit/", LedgerAuditView.as_view(), name="ledger-audit"),
]

# EOF
