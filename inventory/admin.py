"""Admin registrations for inventory app.

Stock counts are read-only here: changing them outside ``apply_adjustment``
would leave the ledger out of step with the counter.
"""

from django.contrib import admin

from .models import InventoryTransaction, ProductVariant


class InventoryTransactionInline(admin.TabularInline):
    model = InventoryTransaction
    extra = 0
    can_delete = False
    fields = ("created_at", "transaction_type", "quantity_change", "previous_count", "resulting_count", "reference")
    readonly_fields = fields
    ordering = ("-created_at",)

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(ProductVariant)
class ProductVariantAdmin(admin.ModelAdmin):
    list_display = ("sku", "product_id", "color", "size", "inventory_count", "low_stock_threshold", "is_active")
    list_filter = ("is_active",)
    search_fields = ("sku", "product_id")
    readonly_fields = ("sku", "color_code", "size_code", "inventory_count", "initial_count", "created_at", "updated_at")
    inlines = [InventoryTransactionInline]

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(InventoryTransaction)
class InventoryTransactionAdmin(admin.ModelAdmin):
    list_display = ("id", "variant", "transaction_type", "quantity_change", "resulting_count", "reference", "created_at")
    list_filter = ("transaction_type",)
    search_fields = ("variant__sku", "product_id", "reference")
    date_hierarchy = "created_at"

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# EOF
