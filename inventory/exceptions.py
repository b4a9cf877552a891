"""Inventory error taxonomy.

Every failure raised by the inventory services derives from ``InventoryError``
and carries a stable ``code`` so the HTTP layer (and any other caller) can tell
"fix your input" apart from "try again" and from business rule violations.
"""

import functools

from django.db import InterfaceError, OperationalError


class InventoryError(Exception):
    """Base class for inventory failures."""

    code = "inventory_error"
    retryable = False

    def __init__(self, message: str = ""):
        self.message = message or (self.__doc__ or "").strip()
        super().__init__(self.message)


class InvalidInput(InventoryError):
    """Malformed or empty request."""

    code = "invalid_input"


class VariantNotFound(InventoryError):
    """Variant does not exist."""

    code = "variant_not_found"


class InsufficientStock(InventoryError):
    """Not enough stock to apply the requested change."""

    code = "insufficient_stock"

    def __init__(self, message: str = "", *, requested: int | None = None, available: int | None = None):
        super().__init__(message)
        self.requested = requested
        self.available = available


class IdempotencyConflict(InventoryError):
    """Idempotency key reused with a different adjustment."""

    code = "idempotency_conflict"


class LedgerImmutable(InventoryError):
    """Inventory transactions cannot be edited or deleted."""

    code = "ledger_immutable"


class StorageError(InventoryError):
    """Inventory storage is temporarily unavailable."""

    code = "storage_unavailable"
    retryable = True


def translate_storage_errors(func):
    """Re-raise transient database failures as ``StorageError``."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (OperationalError, InterfaceError) as exc:
            raise StorageError(f"Inventory storage unavailable: {exc}") from exc

    return wrapper
