from __future__ import annotations

from services.grocery.app.services.data_base import TABLE_PRODUCTS, DataService, DataServiceError
from services.grocery.app.services.errors import ProductNotFoundError, RemoteUnavailableError
from services.grocery.app.services.pricing import from_cents
from services.grocery.app.services.records import Product

# (id, name, price_cents, unit, category_id)
DEFAULT_PRODUCTS = (
    ("bananas", "Bananas", 59, "lb", "produce"),
    ("whole-milk", "Whole Milk", 429, "gal", "dairy"),
    ("eggs-dozen", "Large Eggs", 399, "dozen", "dairy"),
    ("sourdough", "Sourdough Loaf", 549, "each", "bakery"),
    ("paper-towels", "Paper Towels", 1299, "pack", "household"),
)


def seed_default_catalog(data: DataService) -> int:
    """Insert any DEFAULT_PRODUCTS the store does not have yet. Returns how many were added."""

    existing = {row["id"] for row in data.select_rows(TABLE_PRODUCTS)}
    missing = [
        {
            "id": product_id,
            "name": name,
            "price_cents": price_cents,
            "unit": unit,
            "category_id": category_id,
        }
        for product_id, name, price_cents, unit, category_id in DEFAULT_PRODUCTS
        if product_id not in existing
    ]
    if missing:
        data.insert_rows(TABLE_PRODUCTS, missing)
    return len(missing)


def get_product(data: DataService, product_id: str) -> Product:
    """Read the live catalog price for a product. Only used when a cart line is created."""

    try:
        rows = data.select_rows(TABLE_PRODUCTS, {"id": product_id})
    except DataServiceError as e:
        raise RemoteUnavailableError("product lookup") from e

    if not rows:
        raise ProductNotFoundError(product_id)

    row = rows[0]
    return Product(
        id=row["id"],
        name=row["name"],
        price=from_cents(row["price_cents"]),
        unit=row.get("unit") or "each",
    )
