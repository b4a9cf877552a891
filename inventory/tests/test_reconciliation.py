import pytest
from common.choices import ReconciliationStatus
from inventory.commands import BulkTarget
from inventory.exceptions import InvalidInput
from inventory.models import InventoryTransaction
from inventory.services import BULK_UPDATE_NOTE, bulk_set_counts
from inventory.tests.factories import ProductVariantFactory


@pytest.mark.django_db
def test_bulk_set_counts_writes_deltas_to_ledger():
    up = ProductVariantFactory(product_id="p-1", color="Red", size="S", inventory_count=4)
    down = ProductVariantFactory(product_id="p-1", color="Red", size="M", inventory_count=10)
    same = ProductVariantFactory(product_id="p-1", color="Red", size="L", inventory_count=2)

    outcomes = bulk_set_counts(
        product_id="p-1",
        targets=[
            BulkTarget(color="red", size="s", inventory_count=9),
            BulkTarget(color="Red", size="M", inventory_count=1),
            BulkTarget(color="Red", size="L", inventory_count=2),
        ],
        acting_user_id="5",
    )

    assert [o.status for o in outcomes] == [
        ReconciliationStatus.UPDATED,
        ReconciliationStatus.UPDATED,
        ReconciliationStatus.UNCHANGED,
    ]
    for variant, expected in [(up, 9), (down, 1), (same, 2)]:
        variant.refresh_from_db()
        assert variant.inventory_count == expected

    entries = {e.variant_id: e for e in InventoryTransaction.objects.all()}
    assert set(entries) == {up.id, down.id}
    assert entries[up.id].quantity_change == 5
    assert entries[down.id].quantity_change == -9
    assert entries[down.id].transaction_type == "adjustment"
    assert entries[down.id].notes == BULK_UPDATE_NOTE
    assert entries[down.id].created_by == "5"


@pytest.mark.django_db
def test_bulk_set_counts_isolates_failures():
    ok = ProductVariantFactory(product_id="p-2", color="Red", size="S", inventory_count=1)

    outcomes = bulk_set_counts(
        product_id="p-2",
        targets=[
            BulkTarget(color="Green", size="S", inventory_count=3),
            BulkTarget(color="Red", size="S", inventory_count=-1),
            BulkTarget(color="  ", size="S", inventory_count=1),
            BulkTarget(color="Red", size="S", inventory_count=2**63),
            BulkTarget(color="Red", size="S", inventory_count=6),
        ],
    )

    assert [o.status for o in outcomes] == [
        ReconciliationStatus.SKIPPED,
        ReconciliationStatus.FAILED,
        ReconciliationStatus.FAILED,
        ReconciliationStatus.FAILED,
        ReconciliationStatus.UPDATED,
    ]
    assert outcomes[0].variant is None
    assert outcomes[1].error_code == "invalid_input"
    assert outcomes[3].error_code == "invalid_input"
    assert outcomes[4].variant.inventory_count == 6
    ok.refresh_from_db()
    assert ok.inventory_count == 6


@pytest.mark.django_db
def test_bulk_set_counts_validates_batch(settings):
    with pytest.raises(InvalidInput):
        bulk_set_counts(product_id="p-3", targets=[])
    settings.INVENTORY_BULK_MAX_TARGETS = 1
    with pytest.raises(InvalidInput):
        bulk_set_counts(
            product_id="p-3",
            targets=[BulkTarget(color="Red", size="S", inventory_count=1)] * 2,
        )
