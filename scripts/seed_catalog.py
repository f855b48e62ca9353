"""
Seed the product catalog.

Inserts or updates the products the ledger prices sales from. Prices are the
only source of truth for sale totals, so edit them here (or in the table)
rather than on the client.
"""

import sys
from decimal import Decimal
from pathlib import Path

# Add parent directory to path so we can import from repositories
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.product import Product
from repositories.product_repository import list_products, upsert_products


DEFAULT_CATALOG = [
    Product(name="Brinco", unit_price=Decimal("50.00")),
    Product(name="Colar", unit_price=Decimal("120.00")),
    Product(name="Anel", unit_price=Decimal("35.50")),
    Product(name="Pulseira", unit_price=Decimal("80.00")),
]


def seed_catalog() -> None:
    """Upsert the default catalog and print the result."""

    upsert_products(DEFAULT_CATALOG)

    print("[SUCCESS] Catalog seeded:")
    for product in list_products():
        print(f"  {product.name:<20} {product.unit_price:>10}")


if __name__ == "__main__":
    seed_catalog()
