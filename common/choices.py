"""Shared enumerations and choices used across apps."""

from django.db import models


class TransactionType(models.TextChoices):
    """Cause of a stock change recorded in the inventory ledger."""

    RESTOCK = "restock", "Restock"
    SALE = "sale", "Sale"
    RETURN = "return", "Return"
    ADJUSTMENT = "adjustment", "Adjustment"


class ReconciliationStatus(models.TextChoices):
    """Per-target outcome of a bulk inventory update."""

    UPDATED = "updated", "Updated"
    UNCHANGED = "unchanged", "Unchanged"
    SKIPPED = "skipped", "Skipped"
    FAILED = "failed", "Failed"
