import logging
import threading
from typing import List

import pytest
from django.db import close_old_connections, connection
from inventory import services
from inventory.commands import INT_MAX, AdjustmentCommand
from inventory.exceptions import (
    IdempotencyConflict,
    InsufficientStock,
    InvalidInput,
    LedgerImmutable,
    StorageError,
    VariantNotFound,
)
from inventory.models import InventoryTransaction, ProductVariant
from inventory.selectors import ledger_discrepancies
from inventory.services import apply_adjustment
from inventory.tests.factories import ProductVariantFactory


def _adjust(variant, change, kind="adjustment", **extra):
    return apply_adjustment(
        AdjustmentCommand(
            product_id=variant.product_id,
            color=variant.color,
            size=variant.size,
            quantity_change=change,
            transaction_type=kind,
            **extra,
        )
    )


@pytest.mark.django_db
def test_restock_increments_count_and_appends_ledger():
    variant = ProductVariantFactory(inventory_count=3)

    updated = _adjust(variant, 7, "restock", notes="PO-1", acting_user_id="42")

    assert updated.inventory_count == 10
    variant.refresh_from_db()
    assert variant.inventory_count == 10
    entry = InventoryTransaction.objects.get(variant=variant)
    assert entry.quantity_change == 7
    assert entry.previous_count == 3
    assert entry.resulting_count == 10
    assert entry.transaction_type == "restock"
    assert entry.notes == "PO-1"
    assert entry.created_by == "42"
    assert (entry.product_id, entry.color, entry.size) == (variant.product_id, "Red", "M")


@pytest.mark.django_db
def test_sale_boundary_exact_stock_allowed_one_more_rejected():
    variant = ProductVariantFactory(inventory_count=3)

    with pytest.raises(InsufficientStock) as excinfo:
        _adjust(variant, -4, "sale")
    assert excinfo.value.available == 3
    assert excinfo.value.requested == 4
    variant.refresh_from_db()
    assert variant.inventory_count == 3
    assert InventoryTransaction.objects.count() == 0

    _adjust(variant, -3, "sale")
    variant.refresh_from_db()
    assert variant.inventory_count == 0


@pytest.mark.django_db
def test_restock_from_zero():
    variant = ProductVariantFactory(inventory_count=0)
    assert _adjust(variant, 5, "restock").inventory_count == 5


@pytest.mark.django_db
def test_negative_adjustment_cannot_drive_count_below_zero():
    variant = ProductVariantFactory(inventory_count=2)
    with pytest.raises(InsufficientStock):
        _adjust(variant, -5)
    assert _adjust(variant, -2).inventory_count == 0


@pytest.mark.django_db
def test_adjustment_on_unknown_variant():
    with pytest.raises(VariantNotFound):
        apply_adjustment(
            AdjustmentCommand(product_id="nope", color="Red", size="M", quantity_change=1, transaction_type="restock")
        )


@pytest.mark.django_db
def test_ledger_reconciles_after_mixed_history():
    variant = ProductVariantFactory(inventory_count=10)
    for change, kind in [(5, "restock"), (-3, "sale"), (1, "return"), (-4, "adjustment"), (-2, "sale")]:
        _adjust(variant, change, kind)

    variant.refresh_from_db()
    total = sum(variant.transactions.values_list("quantity_change", flat=True))
    assert variant.inventory_count == 7
    assert variant.initial_count + total == variant.inventory_count
    assert ledger_discrepancies() == []


@pytest.mark.django_db
def test_ledger_entries_are_immutable():
    variant = ProductVariantFactory()
    _adjust(variant, 1, "restock")
    entry = InventoryTransaction.objects.get(variant=variant)

    entry.notes = "edited"
    with pytest.raises(LedgerImmutable):
        entry.save()
    with pytest.raises(LedgerImmutable):
        entry.delete()
    assert InventoryTransaction.objects.get(pk=entry.pk).notes == ""


def _serve_stale_first_read(monkeypatch, stale_count):
    """Make the next read return ``stale_count`` as if another writer got in right after it."""
    real_read = services._read_variant
    seen = []

    def read(key):
        snapshot = real_read(key)
        if not seen:
            snapshot.inventory_count = stale_count
        seen.append(snapshot.inventory_count)
        return snapshot

    monkeypatch.setattr(services, "_read_variant", read)
    return seen


@pytest.mark.django_db
def test_stale_read_is_retried_without_losing_either_change(monkeypatch):
    variant = ProductVariantFactory(inventory_count=10)
    # The competing sale commits first; our read still sees 10
    _adjust(variant, -3, "sale")
    seen = _serve_stale_first_read(monkeypatch, stale_count=10)

    updated = _adjust(variant, 5, "restock")

    assert seen == [10, 7]
    assert updated.inventory_count == 12
    variant.refresh_from_db()
    assert variant.inventory_count == 12
    restock = InventoryTransaction.objects.get(variant=variant, transaction_type="restock")
    assert (restock.previous_count, restock.resulting_count) == (7, 12)
    assert ledger_discrepancies() == []


@pytest.mark.django_db
def test_racing_sale_for_last_unit_loses_after_retry(monkeypatch):
    variant = ProductVariantFactory(inventory_count=1)
    # The winning sale takes the last unit; the loser read the count before it
    _adjust(variant, -1, "sale")
    seen = _serve_stale_first_read(monkeypatch, stale_count=1)

    with pytest.raises(InsufficientStock) as excinfo:
        _adjust(variant, -1, "sale")

    assert seen == [1, 0]
    assert excinfo.value.available == 0
    variant.refresh_from_db()
    assert variant.inventory_count == 0
    assert InventoryTransaction.objects.filter(variant=variant).count() == 1


@pytest.mark.django_db
def test_persistent_conflicts_give_up_with_storage_error(monkeypatch, settings):
    settings.INVENTORY_ADJUSTMENT_MAX_RETRIES = 3
    variant = ProductVariantFactory(inventory_count=10)
    real_read = services._read_variant
    attempts = []

    def always_stale(key):
        snapshot = real_read(key)
        # Every read is one step behind the stored count
        snapshot.inventory_count += 1
        attempts.append(snapshot.inventory_count)
        return snapshot

    monkeypatch.setattr(services, "_read_variant", always_stale)

    with pytest.raises(StorageError) as excinfo:
        _adjust(variant, 1, "restock")
    assert excinfo.value.retryable is True
    assert len(attempts) == 3
    variant.refresh_from_db()
    assert variant.inventory_count == 10
    assert InventoryTransaction.objects.count() == 0


@pytest.mark.django_db
def test_restock_past_column_range_is_rejected():
    variant = ProductVariantFactory(inventory_count=INT_MAX - 1)

    with pytest.raises(InvalidInput):
        _adjust(variant, 2, "restock")

    variant.refresh_from_db()
    assert variant.inventory_count == INT_MAX - 1
    assert InventoryTransaction.objects.count() == 0
    assert _adjust(variant, 1, "restock").inventory_count == INT_MAX


@pytest.mark.django_db
def test_idempotency_key_replays_without_double_applying():
    variant = ProductVariantFactory(inventory_count=4)

    first = _adjust(variant, 6, "restock", idempotency_key="po-77")
    second = _adjust(variant, 6, "restock", idempotency_key="po-77")

    assert first.inventory_count == 10
    assert second.inventory_count == 10
    assert InventoryTransaction.objects.filter(idempotency_key="po-77").count() == 1


@pytest.mark.django_db
def test_idempotency_key_reused_for_different_change_conflicts():
    variant = ProductVariantFactory(inventory_count=4)
    _adjust(variant, 6, "restock", idempotency_key="po-78")

    with pytest.raises(IdempotencyConflict):
        _adjust(variant, 2, "restock", idempotency_key="po-78")
    variant.refresh_from_db()
    assert variant.inventory_count == 10


@pytest.mark.django_db
def test_adjustment_logs_audit_event(caplog):
    variant = ProductVariantFactory(inventory_count=1)
    caplog.set_level(logging.INFO, logger="storefront.inventory")

    _adjust(variant, 2, "restock")

    records = [r for r in caplog.records if getattr(r, "event", None) == "inventory.adjusted"]
    assert len(records) == 1
    assert records[0].variant_id == variant.id
    assert records[0].inventory_count == 3


def _sale_worker(barrier: threading.Barrier, variant, successes: List[int], errors: List[Exception]):
    close_old_connections()
    barrier.wait()
    try:
        _adjust(variant, -1, "sale")
        successes.append(1)
    except Exception as exc:  # pragma: no cover
        errors.append(exc)
    finally:
        connection.close()


@pytest.mark.django_db(transaction=True)
def test_threaded_concurrent_sales_never_lose_updates(settings):
    if connection.vendor == "sqlite":
        pytest.skip("SQLite lacks real concurrent transactions; skipping threaded test.")
    settings.INVENTORY_ADJUSTMENT_MAX_RETRIES = 20
    variant = ProductVariantFactory(inventory_count=5)
    workers = 8
    barrier = threading.Barrier(workers)
    successes: List[int] = []
    errors: List[Exception] = []

    threads = [threading.Thread(target=_sale_worker, args=(barrier, variant, successes, errors)) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    variant.refresh_from_db()
    # Exactly the available stock is sold; the rest are rejected, none are lost
    assert len(successes) == 5
    assert len(errors) == 3
    assert all(isinstance(e, InsufficientStock) for e in errors)
    assert variant.inventory_count == 0
    assert InventoryTransaction.objects.filter(variant=variant).count() == 5
