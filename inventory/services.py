"""Inventory services: variant provisioning and transactional stock changes.

``apply_adjustment`` is the only code path that writes ``inventory_count``.
It guards the read-modify-write with a conditional update on the prior count
and retries when another writer got there first, so concurrent adjustments on
the same variant never lose a delta.
"""

import logging
from decimal import Decimal, InvalidOperation

from common.choices import ReconciliationStatus, TransactionType
from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from .commands import INT_MAX, AdjustmentCommand, BulkTarget, ReconciliationOutcome, SaleLine, require_int
from .exceptions import (
    IdempotencyConflict,
    InsufficientStock,
    InvalidInput,
    InventoryError,
    StorageError,
    VariantNotFound,
    translate_storage_errors,
)
from .keys import VariantKey, derive_sku, normalize_option, normalize_product_id, variant_key
from .models import InventoryTransaction, ProductVariant

logger = logging.getLogger("storefront.inventory")

BULK_UPDATE_NOTE = "Bulk inventory update"


class _StaleCount(Exception):
    """The counter changed between read and conditional write."""


def _non_negative(value, *, name: str) -> int:
    if require_int(value, name=name) < 0:
        raise InvalidInput(f"{name} must not be negative")
    return value


# DecimalField(max_digits=12, decimal_places=2)
PRICE_ADJUSTMENT_LIMIT = Decimal("10") ** 10


def _decimal_or_none(value, *, name: str):
    if value is None or value == "":
        return None
    try:
        amount = Decimal(str(value)).quantize(Decimal("0.01"))
    except InvalidOperation:
        raise InvalidInput(f"{name} must be a decimal number") from None
    if not amount.is_finite() or abs(amount) >= PRICE_ADJUSTMENT_LIMIT:
        raise InvalidInput(f"{name} must be below {PRICE_ADJUSTMENT_LIMIT} in absolute value")
    return amount


def _unique_options(values, *, field: str) -> list[tuple[str, str]]:
    """Return (code, display) pairs, first spelling wins for duplicate codes."""
    if isinstance(values, str) or not values:
        raise InvalidInput(f"{field}s must be a non-empty list")
    seen = {}
    for value in values:
        code = normalize_option(value, field=field)
        seen.setdefault(code, " ".join(value.split()))
    return list(seen.items())


def _read_variant(key: VariantKey) -> ProductVariant:
    try:
        return ProductVariant.objects.get(product_id=key.product_id, color_code=key.color, size_code=key.size)
    except ProductVariant.DoesNotExist:
        raise VariantNotFound(f"No variant {key}") from None


# Provisioning


def _pair_counts(initial_counts, color_options, size_options) -> dict[tuple[str, str], int]:
    """Normalize a {(color, size): count} mapping against the requested pairs."""
    if not initial_counts:
        return {}
    requested = {(c, s) for c, _ in color_options for s, _ in size_options}
    counts = {}
    for (color, size), count in dict(initial_counts).items():
        pair = (normalize_option(color, field="color"), normalize_option(size, field="size"))
        if pair not in requested:
            raise InvalidInput(f"No requested variant for color {color!r} and size {size!r}")
        counts[pair] = _non_negative(count, name="inventory_count")
    return counts


@translate_storage_errors
def create_variants(
    *,
    product_id,
    colors,
    sizes,
    initial_count: int = 0,
    initial_counts=None,
    low_stock_threshold: int | None = None,
    price_adjustment=None,
) -> list[ProductVariant]:
    """Materialize one variant per (color, size) pair not yet present.

    ``initial_counts`` maps (color, size) to a starting count for that pair;
    pairs it does not name start at ``initial_count``. Existing pairs are left
    untouched, so re-provisioning is idempotent. Returns only the variants
    created by this call.
    """

    product_id = normalize_product_id(product_id)
    color_options = _unique_options(colors, field="color")
    size_options = _unique_options(sizes, field="size")
    initial_count = _non_negative(initial_count, name="initial_count")
    pair_counts = _pair_counts(initial_counts, color_options, size_options)
    if low_stock_threshold is None:
        low_stock_threshold = getattr(settings, "INVENTORY_DEFAULT_LOW_STOCK_THRESHOLD", 5)
    low_stock_threshold = _non_negative(low_stock_threshold, name="low_stock_threshold")
    price_adjustment = _decimal_or_none(price_adjustment, name="price_adjustment")
    requested = len(color_options) * len(size_options)

    with transaction.atomic():
        existing = set(ProductVariant.objects.filter(product_id=product_id).values_list("color_code", "size_code"))
        pending = []
        for color_code, color in color_options:
            for size_code, size in size_options:
                if (color_code, size_code) in existing:
                    continue
                count = pair_counts.get((color_code, size_code), initial_count)
                pending.append(
                    ProductVariant(
                        product_id=product_id,
                        color=color,
                        size=size,
                        color_code=color_code,
                        size_code=size_code,
                        sku=derive_sku(product_id, color_code, size_code),
                        inventory_count=count,
                        initial_count=count,
                        low_stock_threshold=low_stock_threshold,
                        price_adjustment=price_adjustment,
                    )
                )
        if pending:
            # A concurrent provisioning call may have inserted some pairs already
            ProductVariant.objects.bulk_create(pending, ignore_conflicts=True)

    if not pending:
        logger.info(
            "inventory.variants_unchanged",
            extra={"event": "inventory.variants_unchanged", "product_id": product_id, "skipped": requested},
        )
        return []

    wanted = {(v.color_code, v.size_code) for v in pending}
    created = [
        v
        for v in ProductVariant.objects.filter(product_id=product_id)
        if (v.color_code, v.size_code) in wanted
    ]
    logger.info(
        "inventory.variants_created",
        extra={
            "event": "inventory.variants_created",
            "product_id": product_id,
            "count": len(created),
            "skipped": requested - len(created),
            "total_inventory": sum(v.inventory_count for v in created),
        },
    )
    return created


EDITABLE_VARIANT_FIELDS = ("low_stock_threshold", "price_adjustment", "is_active")


@translate_storage_errors
def update_variant(*, variant_id: int, **changes) -> ProductVariant:
    """Edit the non-stock attributes of a variant.

    ``inventory_count`` is not editable here; stock only moves
    through ``apply_adjustment``.
    """

    unknown = set(changes) - set(EDITABLE_VARIANT_FIELDS)
    if unknown:
        raise InvalidInput(f"Cannot update field(s): {', '.join(sorted(unknown))}")
    try:
        variant = ProductVariant.objects.get(pk=variant_id)
    except ProductVariant.DoesNotExist:
        raise VariantNotFound(f"No variant with id {variant_id}") from None

    if "low_stock_threshold" in changes:
        variant.low_stock_threshold = _non_negative(changes["low_stock_threshold"], name="low_stock_threshold")
    if "price_adjustment" in changes:
        variant.price_adjustment = _decimal_or_none(changes["price_adjustment"], name="price_adjustment")
    if "is_active" in changes:
        if not isinstance(changes["is_active"], bool):
            raise InvalidInput("is_active must be a boolean")
        variant.is_active = changes["is_active"]
    if changes:
        # update_fields keeps this save from clobbering a concurrent stock change
        variant.save(update_fields=[*changes.keys(), "updated_at"])
        logger.info(
            "inventory.variant_updated",
            extra={"event": "inventory.variant_updated", "variant_id": variant.id, "fields": sorted(changes)},
        )
    return variant


def deactivate_variant(*, variant_id: int) -> ProductVariant:
    """Soft delete: variants referenced by the ledger are never removed."""
    return update_variant(variant_id=variant_id, is_active=False)


# Stock adjustment


def _replay_idempotent(command: AdjustmentCommand):
    previous = (
        InventoryTransaction.objects.select_related("variant")
        .filter(idempotency_key=command.idempotency_key)
        .first()
    )
    if previous is None:
        return None
    variant = previous.variant
    same_request = (
        variant.product_id == command.key.product_id
        and variant.color_code == command.key.color
        and variant.size_code == command.key.size
        and previous.quantity_change == command.quantity_change
        and previous.transaction_type == command.transaction_type
    )
    if not same_request:
        raise IdempotencyConflict("Idempotency key reused with a different adjustment")
    logger.info(
        "inventory.adjustment_replayed",
        extra={
            "event": "inventory.adjustment_replayed",
            "variant_id": variant.id,
            "transaction_id": previous.id,
            "idempotency_key": command.idempotency_key,
        },
    )
    return variant


def _apply_once(command: AdjustmentCommand) -> tuple[ProductVariant, InventoryTransaction | None]:
    if command.idempotency_key:
        replayed = _replay_idempotent(command)
        if replayed is not None:
            return replayed, None

    variant = _read_variant(command.key)
    prior = variant.inventory_count
    new_count = prior + command.quantity_change
    if new_count < 0:
        logger.info(
            "inventory.adjustment_rejected",
            extra={
                "event": "inventory.adjustment_rejected",
                "variant_id": variant.id,
                "sku": variant.sku,
                "quantity_change": command.quantity_change,
                "transaction_type": str(command.transaction_type),
                "inventory_count": prior,
            },
        )
        raise InsufficientStock(
            f"Insufficient stock for {variant.sku}: requested {-command.quantity_change}, available {prior}",
            requested=-command.quantity_change,
            available=prior,
        )
    if new_count > INT_MAX:
        raise InvalidInput(f"inventory_count for {variant.sku} would exceed {INT_MAX}")

    now = timezone.now()
    matched = ProductVariant.objects.filter(pk=variant.pk, inventory_count=prior).update(
        inventory_count=new_count, updated_at=now
    )
    if not matched:
        raise _StaleCount()

    entry = InventoryTransaction.objects.create(
        variant=variant,
        product_id=variant.product_id,
        color=variant.color,
        size=variant.size,
        quantity_change=command.quantity_change,
        transaction_type=command.transaction_type,
        previous_count=prior,
        resulting_count=new_count,
        notes=command.notes,
        reference=command.reference,
        created_by=command.acting_user_id,
        idempotency_key=command.idempotency_key,
    )
    variant.inventory_count = new_count
    variant.updated_at = now
    return variant, entry


@translate_storage_errors
def apply_adjustment(command: AdjustmentCommand) -> ProductVariant:
    """Apply a signed stock change and append the matching ledger entry.

    The counter update and the ledger append commit together or not at all.
    Raises VariantNotFound, InsufficientStock (the count would go negative),
    IdempotencyConflict, or StorageError when conflicts persist past
    ``INVENTORY_ADJUSTMENT_MAX_RETRIES`` attempts.
    """

    max_attempts = max(1, int(getattr(settings, "INVENTORY_ADJUSTMENT_MAX_RETRIES", 5)))
    for attempt in range(1, max_attempts + 1):
        try:
            with transaction.atomic():
                variant, entry = _apply_once(command)
        except _StaleCount:
            logger.info(
                "inventory.adjustment_conflict",
                extra={"event": "inventory.adjustment_conflict", "variant_key": str(command.key), "attempt": attempt},
            )
            continue
        except IntegrityError:
            # Lost a race on the idempotency key; the next attempt replays the winner
            if not command.idempotency_key:
                raise
            continue

        if entry is not None:
            logger.info(
                "inventory.adjusted",
                extra={
                    "event": "inventory.adjusted",
                    "variant_id": variant.id,
                    "sku": variant.sku,
                    "transaction_id": entry.id,
                    "transaction_type": str(command.transaction_type),
                    "quantity_change": command.quantity_change,
                    "previous_count": entry.previous_count,
                    "inventory_count": entry.resulting_count,
                    "user_id": command.acting_user_id or None,
                    "attempt": attempt,
                },
            )
        return variant

    logger.warning(
        "inventory.adjustment_gave_up",
        extra={"event": "inventory.adjustment_gave_up", "variant_key": str(command.key), "attempts": max_attempts},
    )
    raise StorageError(f"Too many concurrent updates on {command.key}; retry later")


# Bulk reconciliation


@translate_storage_errors
def _reconcile_target(product_id: str, target: BulkTarget, acting_user_id: str) -> ReconciliationOutcome:
    count = _non_negative(target.inventory_count, name="inventory_count")
    key = variant_key(product_id, target.color, target.size)
    try:
        current = _read_variant(key)
    except VariantNotFound:
        return ReconciliationOutcome(
            color=target.color,
            size=target.size,
            status=ReconciliationStatus.SKIPPED,
            detail="No variant for this color/size",
        )
    delta = count - current.inventory_count
    if delta == 0:
        return ReconciliationOutcome(
            color=target.color, size=target.size, status=ReconciliationStatus.UNCHANGED, variant=current
        )
    variant = apply_adjustment(
        AdjustmentCommand(
            product_id=product_id,
            color=target.color,
            size=target.size,
            quantity_change=delta,
            transaction_type=TransactionType.ADJUSTMENT,
            notes=BULK_UPDATE_NOTE,
            acting_user_id=acting_user_id,
        )
    )
    return ReconciliationOutcome(color=target.color, size=target.size, status=ReconciliationStatus.UPDATED, variant=variant)


def bulk_set_counts(*, product_id, targets, acting_user_id: str = "") -> list[ReconciliationOutcome]:
    """Bring each listed variant to an absolute stock count.

    Every target is reconciled independently through ``apply_adjustment``;
    a failure on one target is reported in its outcome and does not stop
    the others. Targets with no matching variant are skipped, not created.
    """

    product_id = normalize_product_id(product_id)
    targets = list(targets or [])
    if not targets:
        raise InvalidInput("At least one target is required")
    limit = int(getattr(settings, "INVENTORY_BULK_MAX_TARGETS", 500))
    if len(targets) > limit:
        raise InvalidInput(f"At most {limit} targets per request")

    outcomes = []
    for target in targets:
        try:
            outcome = _reconcile_target(product_id, target, str(acting_user_id or ""))
        except InventoryError as exc:
            logger.warning(
                "inventory.reconcile_failed",
                extra={
                    "event": "inventory.reconcile_failed",
                    "product_id": product_id,
                    "color": target.color,
                    "size": target.size,
                    "error_code": exc.code,
                },
            )
            outcome = ReconciliationOutcome(
                color=target.color,
                size=target.size,
                status=ReconciliationStatus.FAILED,
                error_code=exc.code,
                detail=exc.message,
            )
        outcomes.append(outcome)

    summary = {status: 0 for status in ReconciliationStatus.values}
    for outcome in outcomes:
        summary[str(outcome.status)] += 1
    logger.info(
        "inventory.bulk_reconciled",
        extra={"event": "inventory.bulk_reconciled", "product_id": product_id, **summary},
    )
    return outcomes


# Sales


@translate_storage_errors
def record_sales(*, lines, reference: str = "", acting_user_id: str = "") -> list[ProductVariant]:
    """Consume stock for every order line, all or nothing.

    Lines for the same variant are merged. Any InsufficientStock or
    VariantNotFound rolls back the whole batch.
    """

    lines = list(lines or [])
    if not lines:
        raise InvalidInput("At least one sale line is required")

    merged: dict[VariantKey, list] = {}
    for line in lines:
        if not isinstance(line, SaleLine):
            raise InvalidInput("Sale lines must be SaleLine instances")
        if require_int(line.quantity, name="quantity") <= 0:
            raise InvalidInput("quantity must be positive")
        key = variant_key(line.product_id, line.color, line.size)
        if key in merged:
            merged[key][1] += line.quantity
        else:
            merged[key] = [line, line.quantity]

    with transaction.atomic():
        updated = [
            apply_adjustment(
                AdjustmentCommand(
                    product_id=line.product_id,
                    color=line.color,
                    size=line.size,
                    quantity_change=-quantity,
                    transaction_type=TransactionType.SALE,
                    reference=reference,
                    acting_user_id=acting_user_id,
                )
            )
            for line, quantity in merged.values()
        ]
    logger.info(
        "inventory.sale_recorded",
        extra={"event": "inventory.sale_recorded", "reference": reference, "lines": len(updated)},
    )
    return updated


# EOF
