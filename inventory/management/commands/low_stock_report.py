"""Print active variants at or below their low-stock threshold.

With ``--threshold`` every active variant at or below that count is listed
instead of using each variant's own threshold.
"""

from django.core.management.base import BaseCommand, CommandError
from inventory.exceptions import InvalidInput
from inventory.selectors import low_stock_variants


class Command(BaseCommand):
    help = "List low-stock inventory variants"

    def add_arguments(self, parser):
        parser.add_argument("--threshold", type=int, default=None)
        parser.add_argument("--product-id", dest="product_id", default=None)

    def handle(self, *args, **options):
        try:
            qs = low_stock_variants(threshold=options.get("threshold"), product_id=options.get("product_id"))
        except InvalidInput as exc:
            raise CommandError(exc.message) from exc

        count = 0
        for variant in qs.iterator():
            state = "OUT" if variant.is_out_of_stock else "LOW"
            self.stdout.write(
                f"[{state}] {variant.sku} count={variant.inventory_count} threshold={variant.low_stock_threshold}"
            )
            count += 1
        self.stdout.write(self.style.SUCCESS(f"Low-stock variants: {count}"))
