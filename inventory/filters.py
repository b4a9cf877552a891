"""FilterSets for inventory list endpoints."""

import django_filters
from common.choices import TransactionType

from .models import InventoryTransaction, ProductVariant


class InventoryTransactionFilter(django_filters.FilterSet):
    product_id = django_filters.CharFilter(field_name="product_id")
    variant = django_filters.NumberFilter(field_name="variant_id")
    sku = django_filters.CharFilter(field_name="variant__sku", lookup_expr="iexact")
    transaction_type = django_filters.ChoiceFilter(choices=TransactionType.choices)
    created_after = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    created_before = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = InventoryTransaction
        fields = ["product_id", "variant", "sku", "transaction_type", "created_after", "created_before"]


class LowStockFilter(django_filters.FilterSet):
    product_id = django_filters.CharFilter(field_name="product_id")
    color = django_filters.CharFilter(field_name="color_code", method="filter_option")
    size = django_filters.CharFilter(field_name="size_code", method="filter_option")

    class Meta:
        model = ProductVariant
        fields = ["product_id", "color", "size"]

    def filter_option(self, queryset, name, value):
        return queryset.filter(**{name: " ".join(value.split()).upper()})
