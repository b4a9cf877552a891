"""Variant identity: normalized (product, color, size) keys and SKUs."""

from typing import NamedTuple

from .exceptions import InvalidInput

PRODUCT_ID_MAX_LENGTH = 64
OPTION_MAX_LENGTHS = {"color": 100, "size": 50}


class VariantKey(NamedTuple):
    product_id: str
    color: str
    size: str

    def __str__(self) -> str:
        return f"{self.product_id}:{self.color}:{self.size}"


def normalize_option(value, *, field: str = "option") -> str:
    """Uppercase an option value and collapse its whitespace.

    "Navy  blue " and "NAVY BLUE" normalize to the same code.
    """
    if not isinstance(value, str):
        raise InvalidInput(f"{field} must be a string")
    normalized = " ".join(value.split()).upper()
    if not normalized:
        raise InvalidInput(f"{field} must not be empty")
    max_length = OPTION_MAX_LENGTHS.get(field)
    if max_length and len(normalized) > max_length:
        raise InvalidInput(f"{field} must be at most {max_length} characters")
    return normalized


def normalize_product_id(product_id) -> str:
    if product_id is None:
        raise InvalidInput("product_id is required")
    product_id = str(product_id).strip()
    if not product_id:
        raise InvalidInput("product_id must not be empty")
    if len(product_id) > PRODUCT_ID_MAX_LENGTH:
        raise InvalidInput(f"product_id must be at most {PRODUCT_ID_MAX_LENGTH} characters")
    return product_id


def variant_key(product_id, color, size) -> VariantKey:
    return VariantKey(
        normalize_product_id(product_id),
        normalize_option(color, field="color"),
        normalize_option(size, field="size"),
    )


def derive_sku(product_id, color, size) -> str:
    key = variant_key(product_id, color, size)
    return f"{key.product_id}-{key.color}-{key.size}"
