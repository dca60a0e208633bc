"""Helpers for data supplied by the catalog and customer directory."""

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

from pharmapos.models import CatalogItem, Customer


def to_catalog_item(raw: CatalogItem | Mapping[str, Any]) -> CatalogItem:
    """Normalise a catalog payload into a CatalogItem.

    Accepts either an existing CatalogItem or a mapping using snake_case or
    camelCase keys (``insuranceCovered``, ``totalPrice``, ``prescriptionId``).
    """
    if isinstance(raw, CatalogItem):
        return raw
    return CatalogItem.model_validate(dict(raw))


def unit_price_of(item: CatalogItem) -> Decimal:
    """Price to charge per unit: ``price``, else ``copay``, else ``total_price``."""
    for candidate in (item.price, item.copay, item.total_price):
        # Zero counts as "not set", matching the catalog's falsy fallback.
        if candidate:
            return candidate
    return Decimal(0)


def search_customers(customers: Iterable[Customer], term: str) -> list[Customer]:
    """Filter customers by case-insensitive name or phone substring."""
    term = term.strip()
    if not term:
        return list(customers)

    lowered = term.lower()
    return [
        customer
        for customer in customers
        if lowered in customer.name.lower() or term in customer.phone
    ]
