import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ProductVariant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("product_id", models.CharField(max_length=64)),
                ("color", models.CharField(max_length=100)),
                ("size", models.CharField(max_length=50)),
                ("color_code", models.CharField(max_length=100)),
                ("size_code", models.CharField(max_length=50)),
                ("sku", models.CharField(db_index=True, max_length=220)),
                ("inventory_count", models.IntegerField(default=0)),
                ("initial_count", models.IntegerField(default=0)),
                ("low_stock_threshold", models.PositiveIntegerField(default=5)),
                (
                    "price_adjustment",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True),
                ),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={
                "ordering": ["product_id", "color_code", "size_code"],
                "indexes": [models.Index(fields=["product_id", "is_active"], name="inventory_p_product_0b5c1e_idx")],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("product_id", "color_code", "size_code"),
                        name="unique_variant_per_product_option",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("inventory_count__gte", 0)),
                        name="variant_inventory_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("initial_count__gte", 0)),
                        name="variant_initial_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="InventoryTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("product_id", models.CharField(max_length=64)),
                ("color", models.CharField(max_length=100)),
                ("size", models.CharField(max_length=50)),
                ("quantity_change", models.IntegerField()),
                (
                    "transaction_type",
                    models.CharField(
                        choices=[
                            ("restock", "Restock"),
                            ("sale", "Sale"),
                            ("return", "Return"),
                            ("adjustment", "Adjustment"),
                        ],
                        max_length=16,
                    ),
                ),
                ("previous_count", models.IntegerField()),
                ("resulting_count", models.IntegerField()),
                ("notes", models.TextField(blank=True)),
                ("reference", models.CharField(blank=True, max_length=120)),
                ("created_by", models.CharField(blank=True, max_length=64)),
                ("idempotency_key", models.CharField(blank=True, max_length=128, null=True, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "variant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="inventory.productvariant",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["variant", "created_at"], name="inventory_i_variant_4f2a9d_idx"),
                    models.Index(fields=["product_id", "transaction_type"], name="inventory_i_product_8c7e31_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity_change", 0), _negated=True),
                        name="transaction_non_zero",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("resulting_count__gte", 0)),
                        name="transaction_result_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("resulting_count", models.F("previous_count") + models.F("quantity_change"))
                        ),
                        name="transaction_counts_consistent",
                    ),
                ],
            },
        ),
    ]
