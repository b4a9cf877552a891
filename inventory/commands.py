"""Validated command objects accepted by the inventory services.

Commands are built at the edge (views, management commands, other apps) and
reject malformed input before any storage access happens.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from common.choices import TransactionType

from .exceptions import InvalidInput
from .keys import VariantKey, variant_key


# Range of the IntegerField columns that store counts and deltas
INT_MIN = -(2**31)
INT_MAX = 2**31 - 1


def require_int(value, *, name: str) -> int:
    # bool is an int subclass; True/False are never valid quantities
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{name} must be an integer")
    if not INT_MIN <= value <= INT_MAX:
        raise InvalidInput(f"{name} must be between {INT_MIN} and {INT_MAX}")
    return value


def _coerce_transaction_type(value) -> TransactionType:
    try:
        return TransactionType(value)
    except ValueError:
        allowed = ", ".join(TransactionType.values)
        raise InvalidInput(f"transaction_type must be one of: {allowed}") from None


@dataclass(frozen=True)
class AdjustmentCommand:
    """A signed stock change for one variant."""

    product_id: str
    color: str
    size: str
    quantity_change: int
    transaction_type: TransactionType
    notes: str = ""
    acting_user_id: str = ""
    reference: str = ""
    idempotency_key: str | None = None
    key: VariantKey = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "key", variant_key(self.product_id, self.color, self.size))
        object.__setattr__(self, "product_id", self.key.product_id)
        object.__setattr__(self, "transaction_type", _coerce_transaction_type(self.transaction_type))
        change = require_int(self.quantity_change, name="quantity_change")
        if change == 0:
            raise InvalidInput("quantity_change must not be zero")
        if self.transaction_type == TransactionType.SALE and change > 0:
            raise InvalidInput("sale must remove stock (negative quantity_change)")
        if self.transaction_type in (TransactionType.RESTOCK, TransactionType.RETURN) and change < 0:
            raise InvalidInput(f"{self.transaction_type} must add stock (positive quantity_change)")
        object.__setattr__(self, "notes", self.notes or "")
        object.__setattr__(self, "acting_user_id", str(self.acting_user_id or ""))
        object.__setattr__(self, "reference", self.reference or "")
        if self.idempotency_key is not None:
            idem = str(self.idempotency_key).strip()
            if not idem or len(idem) > 128:
                raise InvalidInput("idempotency_key must be 1-128 characters")
            object.__setattr__(self, "idempotency_key", idem)


@dataclass(frozen=True)
class StockCheckRequest:
    product_id: str
    color: str
    size: str
    requested_quantity: int

    def __post_init__(self):
        if require_int(self.requested_quantity, name="requested_quantity") <= 0:
            raise InvalidInput("requested_quantity must be positive")


@dataclass(frozen=True)
class StockCheckResult:
    product_id: str
    color: str
    size: str
    requested_quantity: int
    available: bool
    current_stock: int


@dataclass(frozen=True)
class BulkTarget:
    """Absolute stock count to reconcile a variant to."""

    color: str
    size: str
    inventory_count: int


@dataclass(frozen=True)
class SaleLine:
    product_id: str
    color: str
    size: str
    quantity: int


@dataclass
class ReconciliationOutcome:
    color: str
    size: str
    status: str
    variant: object = None
    error_code: str = ""
    detail: str = ""
