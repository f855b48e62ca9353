"""
Domain: Catalog products.

The catalog is the single source of truth for price. The ledger only reads it.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True, slots=True)
class Product:
    name: str
    unit_price: Decimal

    def __post_init__(self) -> None:
        if self.unit_price < 0:
            raise ValueError(f"unit_price must not be negative, got {self.unit_price}")
