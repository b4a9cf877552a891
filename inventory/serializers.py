"""Serializers for the inventory API.

Read serializers expose variants and ledger rows; write serializers validate
request payloads and turn them into service commands.
"""

from common.choices import ReconciliationStatus, TransactionType
from rest_framework import serializers

from .commands import INT_MAX, INT_MIN, AdjustmentCommand, BulkTarget, SaleLine, StockCheckRequest
from .models import InventoryTransaction, ProductVariant


class ProductVariantSerializer(serializers.ModelSerializer):
    """Read-only representation of a variant and its stock counter."""

    class Meta:
        model = ProductVariant
        fields = [
            "id",
            "product_id",
            "color",
            "size",
            "sku",
            "inventory_count",
            "low_stock_threshold",
            "price_adjustment",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class VariantStockSerializer(serializers.Serializer):
    """Variant plus derived stock flags, flattened into one object."""

    available_stock = serializers.IntegerField(read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)
    is_out_of_stock = serializers.BooleanField(read_only=True)

    def to_representation(self, instance):
        data = ProductVariantSerializer(instance.variant, context=self.context).data
        data.update(super().to_representation(instance))
        return data


class InventoryTransactionSerializer(serializers.ModelSerializer):
    """Read-only representation of ledger entries."""

    sku = serializers.CharField(source="variant.sku", read_only=True)

    class Meta:
        model = InventoryTransaction
        fields = [
            "id",
            "variant",
            "sku",
            "product_id",
            "color",
            "size",
            "quantity_change",
            "transaction_type",
            "previous_count",
            "resulting_count",
            "notes",
            "reference",
            "created_by",
            "created_at",
        ]
        read_only_fields = fields


class VariantCountSerializer(serializers.Serializer):
    color = serializers.CharField(max_length=100)
    size = serializers.CharField(max_length=50)
    inventory_count = serializers.IntegerField(min_value=0, max_value=INT_MAX)


class CreateVariantsSerializer(serializers.Serializer):
    """Provision variants for a product.

    Accepts either ``colors``/``sizes`` lists or a single ``color``/``size``.
    ``variant_inventory`` sets a starting count per color/size pair; other
    pairs start at ``inventory_count``.
    """

    colors = serializers.ListField(child=serializers.CharField(max_length=100), required=False)
    sizes = serializers.ListField(child=serializers.CharField(max_length=50), required=False)
    color = serializers.CharField(max_length=100, required=False)
    size = serializers.CharField(max_length=50, required=False)
    inventory_count = serializers.IntegerField(min_value=0, max_value=INT_MAX, default=0)
    variant_inventory = VariantCountSerializer(many=True, required=False)
    low_stock_threshold = serializers.IntegerField(min_value=0, max_value=INT_MAX, required=False)
    price_adjustment = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)

    def validate(self, attrs):
        color = attrs.pop("color", None)
        size = attrs.pop("size", None)
        colors = attrs.get("colors") or ([color] if color else [])
        sizes = attrs.get("sizes") or ([size] if size else [])
        if not colors:
            raise serializers.ValidationError({"colors": "At least one color is required."})
        if not sizes:
            raise serializers.ValidationError({"sizes": "At least one size is required."})
        attrs["colors"] = colors
        attrs["sizes"] = sizes
        attrs["initial_counts"] = {
            (row["color"], row["size"]): row["inventory_count"] for row in attrs.pop("variant_inventory", [])
        }
        return attrs


class UpdateVariantSerializer(serializers.Serializer):
    """Editable, non-stock variant attributes."""

    low_stock_threshold = serializers.IntegerField(min_value=0, max_value=INT_MAX, required=False)
    price_adjustment = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    is_active = serializers.BooleanField(required=False)

    def validate(self, attrs):
        unknown = set(self.initial_data) - set(self.fields)
        if unknown:
            raise serializers.ValidationError({name: "This field cannot be updated." for name in sorted(unknown)})
        return attrs


class AdjustmentSerializer(serializers.Serializer):
    product_id = serializers.CharField(max_length=64)
    color = serializers.CharField(max_length=100)
    size = serializers.CharField(max_length=50)
    quantity_change = serializers.IntegerField(min_value=INT_MIN, max_value=INT_MAX)
    transaction_type = serializers.ChoiceField(choices=TransactionType.choices)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    reference = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")

    def to_command(self, *, acting_user_id="", idempotency_key=None) -> AdjustmentCommand:
        data = self.validated_data
        return AdjustmentCommand(
            product_id=data["product_id"],
            color=data["color"],
            size=data["size"],
            quantity_change=data["quantity_change"],
            transaction_type=data["transaction_type"],
            notes=data["notes"],
            reference=data["reference"],
            acting_user_id=acting_user_id,
            idempotency_key=idempotency_key,
        )


class StockCheckItemSerializer(serializers.Serializer):
    product_id = serializers.CharField(max_length=64)
    color = serializers.CharField(max_length=100)
    size = serializers.CharField(max_length=50)
    requested_quantity = serializers.IntegerField(min_value=1, max_value=INT_MAX)


class StockCheckSerializer(serializers.Serializer):
    items = StockCheckItemSerializer(many=True, allow_empty=False)

    def to_requests(self) -> list[StockCheckRequest]:
        return [StockCheckRequest(**item) for item in self.validated_data["items"]]


class StockCheckResultSerializer(serializers.Serializer):
    product_id = serializers.CharField()
    color = serializers.CharField()
    size = serializers.CharField()
    requested_quantity = serializers.IntegerField()
    available = serializers.BooleanField()
    current_stock = serializers.IntegerField()


class BulkTargetSerializer(serializers.Serializer):
    color = serializers.CharField(max_length=100)
    size = serializers.CharField(max_length=50)
    inventory_count = serializers.IntegerField(min_value=0)


class BulkSetCountsSerializer(serializers.Serializer):
    variants = BulkTargetSerializer(many=True, allow_empty=False)

    def to_targets(self) -> list[BulkTarget]:
        return [BulkTarget(**item) for item in self.validated_data["variants"]]


class ReconciliationOutcomeSerializer(serializers.Serializer):
    color = serializers.CharField()
    size = serializers.CharField()
    status = serializers.ChoiceField(choices=ReconciliationStatus.choices)
    variant = ProductVariantSerializer(allow_null=True)
    error_code = serializers.CharField(allow_blank=True)
    detail = serializers.CharField(allow_blank=True)


class SaleLineSerializer(serializers.Serializer):
    product_id = serializers.CharField(max_length=64)
    color = serializers.CharField(max_length=100)
    size = serializers.CharField(max_length=50)
    quantity = serializers.IntegerField(min_value=1, max_value=INT_MAX)


class RecordSalesSerializer(serializers.Serializer):
    reference = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")
    items = SaleLineSerializer(many=True, allow_empty=False)

    def to_lines(self) -> list[SaleLine]:
        return [SaleLine(**item) for item in self.validated_data["items"]]


# EOF
