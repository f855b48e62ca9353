"""
Product repository for reading the pricing catalog.

The `products` table is the authoritative name -> price mapping. Reads may be
served from a short-lived in-process cache (CATALOG_CACHE_TTL_SECONDS); with
the default TTL of 0 the catalog is fetched again on every call.
"""

from __future__ import annotations

import threading
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from domain.product import Product
from repositories.client import execute, get_supabase
from settings import get_settings

_PRODUCTS_TABLE: str = "products"

_cache_lock = threading.Lock()
_cache: Optional[Tuple[float, Dict[str, Decimal]]] = None
_clock = time.monotonic


def _fetch_catalog() -> Dict[str, Decimal]:
    rows = execute(
        get_supabase().table(_PRODUCTS_TABLE).select("name, price"),
        "fetch product catalog",
    )
    return {str(row["name"]): Decimal(str(row["price"])) for row in rows}


def get_catalog() -> Dict[str, Decimal]:
    """
    Get the current catalog as a mapping of product name to unit price.

    Returns:
        Dictionary mapping product name to Decimal price

    Example:
        catalog = get_catalog()
        # Returns: {'Brinco': Decimal('50.00'), 'Colar': Decimal('120.00'), ...}
    """
    global _cache

    ttl = get_settings().catalog_cache_ttl_seconds
    if ttl <= 0:
        return _fetch_catalog()

    with _cache_lock:
        now = _clock()
        if _cache is not None and now - _cache[0] < ttl:
            return dict(_cache[1])
        catalog = _fetch_catalog()
        _cache = (now, catalog)
        return dict(catalog)


def clear_catalog_cache() -> None:
    global _cache

    with _cache_lock:
        _cache = None


def list_products() -> List[Product]:
    return [Product(name=name, unit_price=price) for name, price in sorted(get_catalog().items())]


def upsert_products(products: List[Product]) -> None:
    """Insert or update catalog rows keyed by product name."""

    payload: List[dict[str, Any]] = [
        {"name": product.name, "price": str(product.unit_price)} for product in products
    ]
    execute(
        get_supabase().table(_PRODUCTS_TABLE).upsert(payload, on_conflict="name"),
        "upsert products",
    )
    clear_catalog_cache()


__all__ = [
    "get_catalog",
    "clear_catalog_cache",
    "list_products",
    "upsert_products",
]
