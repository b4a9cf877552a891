import pytest
from inventory.commands import StockCheckRequest
from inventory.exceptions import InvalidInput
from inventory.models import InventoryTransaction
from inventory.selectors import check_stock
from inventory.tests.factories import ProductVariantFactory


def _req(product_id, color, size, qty):
    return StockCheckRequest(product_id=product_id, color=color, size=size, requested_quantity=qty)


@pytest.mark.django_db
def test_check_stock_reports_each_line_in_order():
    ProductVariantFactory(product_id="p-1", color="Red", size="M", inventory_count=3)
    ProductVariantFactory(product_id="p-1", color="Blue", size="M", inventory_count=0)

    results = check_stock(
        [
            _req("p-1", "red", "m", 3),
            _req("p-1", "red", "m", 4),
            _req("p-1", "Blue", "M", 1),
            _req("p-1", "Green", "M", 1),
        ]
    )

    assert [r.available for r in results] == [True, False, False, False]
    assert [r.current_stock for r in results] == [3, 3, 0, 0]
    # Echoes the caller's spelling
    assert results[0].color == "red"


@pytest.mark.django_db
def test_inactive_variant_is_unavailable():
    ProductVariantFactory(product_id="p-2", inventory_count=9, is_active=False)
    [result] = check_stock([_req("p-2", "Red", "M", 1)])
    assert result.available is False
    assert result.current_stock == 0


@pytest.mark.django_db
def test_check_stock_does_not_mutate():
    variant = ProductVariantFactory(inventory_count=5)
    check_stock([_req(variant.product_id, "Red", "M", 2)])
    variant.refresh_from_db()
    assert variant.inventory_count == 5
    assert InventoryTransaction.objects.count() == 0


@pytest.mark.django_db
def test_check_stock_input_limits(settings):
    with pytest.raises(InvalidInput):
        check_stock([])
    settings.INVENTORY_STOCK_CHECK_MAX_ITEMS = 2
    with pytest.raises(InvalidInput):
        check_stock([_req("p", "Red", "M", 1)] * 3)


@pytest.mark.django_db
def test_check_stock_uses_one_query(django_assert_num_queries):
    ProductVariantFactory(product_id="p-3", color="Red", size="S")
    ProductVariantFactory(product_id="p-3", color="Red", size="L")
    with django_assert_num_queries(1):
        check_stock([_req("p-3", "Red", "S", 1), _req("p-3", "Red", "L", 1), _req("p-4", "Red", "L", 1)])
