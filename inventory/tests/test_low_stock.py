import pytest
from django.core.management import call_command
from inventory.exceptions import InvalidInput
from inventory.selectors import low_stock_variants, out_of_stock_variants
from inventory.tests.factories import ProductVariantFactory


@pytest.mark.django_db
def test_low_stock_uses_each_variant_threshold_inclusively():
    at = ProductVariantFactory(product_id="p-1", size="S", inventory_count=5, low_stock_threshold=5)
    ProductVariantFactory(product_id="p-1", size="M", inventory_count=6, low_stock_threshold=5)
    empty = ProductVariantFactory(product_id="p-1", size="L", inventory_count=0, low_stock_threshold=0)
    ProductVariantFactory(product_id="p-1", size="XL", inventory_count=1, low_stock_threshold=5, is_active=False)

    ids = list(low_stock_variants().values_list("id", flat=True))
    assert ids == [empty.id, at.id]


@pytest.mark.django_db
def test_low_stock_with_explicit_threshold_and_product():
    a = ProductVariantFactory(product_id="p-2", size="S", inventory_count=2, low_stock_threshold=0)
    ProductVariantFactory(product_id="p-2", size="M", inventory_count=3, low_stock_threshold=10)
    ProductVariantFactory(product_id="p-3", size="S", inventory_count=1)

    ids = list(low_stock_variants(threshold=2, product_id="p-2").values_list("id", flat=True))
    assert ids == [a.id]


def test_low_stock_rejects_negative_threshold():
    with pytest.raises(InvalidInput):
        low_stock_variants(threshold=-1)


@pytest.mark.django_db
def test_low_stock_report_command(capsys):
    ProductVariantFactory(product_id="p-4", size="S", inventory_count=0)
    ProductVariantFactory(product_id="p-4", size="M", inventory_count=50)

    call_command("low_stock_report")
    out = capsys.readouterr().out
    assert "[OUT] p-4-RED-S" in out
    assert "p-4-RED-M" not in out
    assert "Low-stock variants: 1" in out


def test_low_stock_rejects_threshold_outside_column_range():
    with pytest.raises(InvalidInput):
        low_stock_variants(threshold=2**31)


@pytest.mark.django_db
def test_out_of_stock_lists_active_empty_variants():
    b = ProductVariantFactory(product_id="p-5", color="Blue", size="S", inventory_count=0)
    a = ProductVariantFactory(product_id="p-4", color="Red", size="S", inventory_count=0)
    ProductVariantFactory(product_id="p-4", color="Red", size="M", inventory_count=1)
    ProductVariantFactory(product_id="p-4", color="Red", size="L", inventory_count=0, is_active=False)

    assert list(out_of_stock_variants().values_list("id", flat=True)) == [a.id, b.id]
    assert list(out_of_stock_variants(product_id="p-5").values_list("id", flat=True)) == [b.id]
