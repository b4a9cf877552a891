from django.core.management.base import BaseCommand, CommandError
from inventory.selectors import ledger_discrepancies


class Command(BaseCommand):
    help = "Check that every variant's count equals its initial count plus its ledger total"

    def add_arguments(self, parser):
        parser.add_argument("--product-id", dest="product_id", default=None, help="Only audit this product")

    def handle(self, *args, **options):
        rows = ledger_discrepancies(product_id=options.get("product_id"))
        if not rows:
            self.stdout.write(self.style.SUCCESS("Inventory ledger is consistent."))
            return
        for row in rows:
            self.stdout.write(
                f"{row['sku']}: inventory_count={row['inventory_count']} "
                f"expected={row['expected_count']} "
                f"(initial={row['initial_count']}, ledger={row['ledger_total']})"
            )
        raise CommandError(f"Found {len(rows)} variant(s) out of step with the ledger.")
