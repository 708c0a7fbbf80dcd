"""Domain models for menu combinations."""

from dataclasses import dataclass, field
from datetime import date

from menu_scheduler.domain.errors import ScheduleValidationError
from menu_scheduler.domain.products import ProductReference

SINGLE_SLOTS = ("entrada", "principio", "proteina", "bebida")


@dataclass(frozen=True)
class Combination:
    """A composed menu offering built from food-category slots."""

    id: str
    proteina: ProductReference
    entrada: ProductReference | None = None
    principio: ProductReference | None = None
    bebida: ProductReference | None = None
    acompanamiento: tuple[ProductReference, ...] = field(default_factory=tuple)
    name: str | None = None
    description: str | None = None
    special_price: float | None = None
    quantity: int | None = None
    favorite: bool = False
    special: bool = False
    special_from: date | None = None
    special_until: date | None = None

    def __post_init__(self) -> None:
        if self.proteina is None:
            raise ScheduleValidationError(
                f"Combination {self.id} requires a proteina slot"
            )
        if (
            self.special_from is not None
            and self.special_until is not None
            and self.special_from > self.special_until
        ):
            raise ScheduleValidationError(
                f"Combination {self.id} has an inverted special date range"
            )

    @property
    def products(self) -> list[ProductReference]:
        """Return every filled slot, single slots first."""
        filled = [
            product
            for product in (getattr(self, slot) for slot in SINGLE_SLOTS)
            if product is not None
        ]
        filled.extend(self.acompanamiento)
        return filled

    @property
    def base_price(self) -> float:
        """Sum of the unit prices of all filled slots."""
        return sum(product.unit_price for product in self.products)

    @property
    def price(self) -> float:
        """Price charged for the combination."""
        if self.special_price is not None:
            return self.special_price
        return self.base_price

    @property
    def display_name(self) -> str:
        """Override name, or the slot names joined."""
        if self.name:
            return self.name
        return " + ".join(product.name for product in self.products)

    def is_special_on(self, day: date) -> bool:
        """Return whether the special availability range covers the day."""
        if not self.special:
            return False
        if self.special_from is not None and day < self.special_from:
            return False
        return self.special_until is None or day <= self.special_until
