"""Selectors for inventory: read-only queries over variants and the ledger.

Nothing here writes or locks; results are point-in-time snapshots.
"""

from dataclasses import dataclass

from django.conf import settings
from django.db.models import Count, F, Q, Sum, Value
from django.db.models.functions import Coalesce

from .commands import StockCheckRequest, StockCheckResult, require_int
from .exceptions import InvalidInput, VariantNotFound, translate_storage_errors
from .keys import normalize_product_id, variant_key
from .models import InventoryTransaction, ProductVariant


@dataclass(frozen=True)
class VariantStock:
    variant: ProductVariant
    available_stock: int
    is_low_stock: bool
    is_out_of_stock: bool


@translate_storage_errors
def get_product_variants(product_id) -> list[ProductVariant]:
    """All variants for a product regardless of ``is_active``, by color then size."""
    product_id = normalize_product_id(product_id)
    return list(ProductVariant.objects.filter(product_id=product_id).order_by("color_code", "size_code"))


def get_product_variants_with_stock(product_id) -> list[VariantStock]:
    return [
        VariantStock(
            variant=v,
            available_stock=v.inventory_count,
            is_low_stock=v.is_low_stock,
            is_out_of_stock=v.is_out_of_stock,
        )
        for v in get_product_variants(product_id)
    ]


@translate_storage_errors
def get_variant(product_id, color, size) -> ProductVariant:
    key = variant_key(product_id, color, size)
    try:
        return ProductVariant.objects.get(product_id=key.product_id, color_code=key.color, size_code=key.size)
    except ProductVariant.DoesNotExist:
        raise VariantNotFound(f"No variant {key}") from None


@translate_storage_errors
def get_variant_by_id(variant_id: int) -> ProductVariant:
    try:
        return ProductVariant.objects.get(pk=variant_id)
    except ProductVariant.DoesNotExist:
        raise VariantNotFound(f"No variant with id {variant_id}") from None


@translate_storage_errors
def check_stock(requests) -> list[StockCheckResult]:
    """Report, per requested line, whether current stock covers the quantity.

    Missing or inactive variants are reported unavailable with zero stock.
    This is not a reservation: a later sale can still fail.
    """

    requests = list(requests or [])
    if not requests:
        raise InvalidInput("At least one stock check item is required")
    limit = int(getattr(settings, "INVENTORY_STOCK_CHECK_MAX_ITEMS", 100))
    if len(requests) > limit:
        raise InvalidInput(f"At most {limit} stock check items per request")

    keys = []
    for req in requests:
        if not isinstance(req, StockCheckRequest):
            raise InvalidInput("Stock check items must be StockCheckRequest instances")
        keys.append(variant_key(req.product_id, req.color, req.size))

    lookup = Q()
    for key in set(keys):
        lookup |= Q(product_id=key.product_id, color_code=key.color, size_code=key.size)
    found = {
        (v.product_id, v.color_code, v.size_code): v
        for v in ProductVariant.objects.filter(lookup).only(
            "product_id", "color_code", "size_code", "inventory_count", "is_active"
        )
    }

    results = []
    for req, key in zip(requests, keys):
        variant = found.get(tuple(key))
        current = variant.inventory_count if variant is not None and variant.is_active else 0
        results.append(
            StockCheckResult(
                product_id=key.product_id,
                color=req.color,
                size=req.size,
                requested_quantity=req.requested_quantity,
                available=variant is not None and variant.is_active and current >= req.requested_quantity,
                current_stock=current,
            )
        )
    return results


def low_stock_variants(threshold: int | None = None, product_id=None):
    """Active variants at or below their (or the given) low-stock threshold."""

    qs = ProductVariant.objects.filter(is_active=True)
    if product_id is not None:
        qs = qs.filter(product_id=normalize_product_id(product_id))
    if threshold is None:
        qs = qs.filter(inventory_count__lte=F("low_stock_threshold"))
    else:
        if require_int(threshold, name="threshold") < 0:
            raise InvalidInput("threshold must not be negative")
        qs = qs.filter(inventory_count__lte=threshold)
    return qs.order_by("inventory_count", "product_id", "color_code", "size_code")


def out_of_stock_variants(product_id=None):
    """Active variants with nothing left to sell."""
    qs = ProductVariant.objects.filter(is_active=True, inventory_count=0)
    if product_id is not None:
        qs = qs.filter(product_id=normalize_product_id(product_id))
    return qs.order_by("product_id", "color_code", "size_code")


@translate_storage_errors
def product_inventory_total(product_id) -> dict:
    """Stock summed over every variant of a product, active or not."""
    product_id = normalize_product_id(product_id)
    totals = ProductVariant.objects.filter(product_id=product_id).aggregate(
        total_inventory=Coalesce(Sum("inventory_count"), Value(0)),
        variant_count=Count("id"),
        active_inventory=Coalesce(Sum("inventory_count", filter=Q(is_active=True)), Value(0)),
    )
    return {"product_id": product_id, **totals}


def list_transactions(*, product_id=None, variant_id=None, transaction_type=None):
    qs = InventoryTransaction.objects.select_related("variant").order_by("-created_at", "-id")
    if product_id:
        qs = qs.filter(product_id=product_id)
    if variant_id:
        qs = qs.filter(variant_id=variant_id)
    if transaction_type:
        qs = qs.filter(transaction_type=transaction_type)
    return qs


@translate_storage_errors
def ledger_discrepancies(product_id=None) -> list[dict]:
    """Variants whose counter does not equal initial count plus ledger total."""

    qs = ProductVariant.objects.annotate(ledger_total=Coalesce(Sum("transactions__quantity_change"), Value(0)))
    if product_id is not None:
        qs = qs.filter(product_id=normalize_product_id(product_id))
    qs = qs.exclude(inventory_count=F("initial_count") + F("ledger_total")).order_by("product_id", "id")
    return [
        {
            "variant_id": v.id,
            "sku": v.sku,
            "initial_count": v.initial_count,
            "ledger_total": int(v.ledger_total),
            "inventory_count": v.inventory_count,
            "expected_count": v.initial_count + int(v.ledger_total),
        }
        for v in qs
    ]


# EOF
