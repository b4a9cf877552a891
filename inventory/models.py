"""Inventory models: product variants and the stock transaction ledger.

Stock is tracked per (product, color, size) variant. ``inventory_count`` is
only ever changed by ``inventory.services.apply_adjustment``, which pairs each
change with an ``InventoryTransaction`` row.
"""

from common.choices import TransactionType
from django.db import models

from .exceptions import LedgerImmutable


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class ProductVariant(TimeStampedModel):
    """Color/size instance of a catalog product with its own stock counter."""

    # Opaque reference owned by the catalog service
    product_id = models.CharField(max_length=64)
    color = models.CharField(max_length=100)
    size = models.CharField(max_length=50)
    color_code = models.CharField(max_length=100)
    size_code = models.CharField(max_length=50)
    sku = models.CharField(max_length=220, db_index=True)
    inventory_count = models.IntegerField(default=0)
    initial_count = models.IntegerField(default=0)
    low_stock_threshold = models.PositiveIntegerField(default=5)
    price_adjustment = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["product_id", "color_code", "size_code"]
        constraints = [
            models.UniqueConstraint(
                fields=["product_id", "color_code", "size_code"],
                name="unique_variant_per_product_option",
            ),
            models.CheckConstraint(name="variant_inventory_non_negative", condition=models.Q(inventory_count__gte=0)),
            models.CheckConstraint(name="variant_initial_non_negative", condition=models.Q(initial_count__gte=0)),
        ]
        indexes = [
            models.Index(fields=["product_id", "is_active"], name="inventory_p_product_0b5c1e_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.sku} q={self.inventory_count}"

    @property
    def is_low_stock(self) -> bool:
        return self.inventory_count <= self.low_stock_threshold

    @property
    def is_out_of_stock(self) -> bool:
        return self.inventory_count <= 0


class InventoryTransaction(models.Model):
    """Append-only record of one stock change on a variant."""

    TYPE_RESTOCK = TransactionType.RESTOCK
    TYPE_SALE = TransactionType.SALE
    TYPE_RETURN = TransactionType.RETURN
    TYPE_ADJUSTMENT = TransactionType.ADJUSTMENT
    TYPE_CHOICES = TransactionType.choices

    variant = models.ForeignKey(ProductVariant, on_delete=models.PROTECT, related_name="transactions")
    product_id = models.CharField(max_length=64)
    color = models.CharField(max_length=100)
    size = models.CharField(max_length=50)
    quantity_change = models.IntegerField()  # signed: +added, -consumed
    transaction_type = models.CharField(max_length=16, choices=TYPE_CHOICES)
    previous_count = models.IntegerField()
    resulting_count = models.IntegerField()
    notes = models.TextField(blank=True)
    reference = models.CharField(max_length=120, blank=True)
    created_by = models.CharField(max_length=64, blank=True)
    idempotency_key = models.CharField(max_length=128, null=True, blank=True, unique=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.CheckConstraint(name="transaction_non_zero", condition=~models.Q(quantity_change=0)),
            models.CheckConstraint(name="transaction_result_non_negative", condition=models.Q(resulting_count__gte=0)),
            models.CheckConstraint(
                name="transaction_counts_consistent",
                condition=models.Q(resulting_count=models.F("previous_count") + models.F("quantity_change")),
            ),
        ]
        indexes = [
            models.Index(fields=["variant", "created_at"], name="inventory_i_variant_4f2a9d_idx"),
            models.Index(fields=["product_id", "transaction_type"], name="inventory_i_product_8c7e31_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.transaction_type} {self.quantity_change} for {self.variant_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise LedgerImmutable("Inventory transactions cannot be modified")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise LedgerImmutable("Inventory transactions cannot be deleted")


# EOF
