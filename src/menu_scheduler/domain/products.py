"""Domain models for catalog products."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ProductReference:
    """Copy of a purchasable component owned by the remote catalog."""

    id: str
    name: str
    description: str
    unit_price: float
    category_id: str
