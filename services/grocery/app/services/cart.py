"""Client-local shopping cart.

The cart is a list of CartLines keyed by product id and stored as a JSON blob. Every
mutation writes the whole cart back before returning; if that write fails the in-memory
cart is left as it was, so the cart never shows a change that was not saved.
"""

from __future__ import annotations

import json
from dataclasses import replace
from decimal import Decimal, InvalidOperation

import structlog

from services.grocery.app.services.catalog import get_product
from services.grocery.app.services.data_base import BlobStore, DataService, DataServiceError
from services.grocery.app.services.errors import RemoteUnavailableError, ValidationError
from services.grocery.app.services.pricing import compute_totals, to_money
from services.grocery.app.services.records import CartLine, Product, Totals

logger = structlog.get_logger(__name__)

DEFAULT_CART_KEY = "cart"


def _encode(lines: dict[str, CartLine]) -> str:
    return json.dumps(
        [
            {
                "product_id": line.product_id,
                "name": line.name,
                "unit_price": str(line.unit_price),
                "quantity": line.quantity,
                "unit": line.unit,
            }
            for line in lines.values()
        ]
    )


def _decode(raw: str) -> dict[str, CartLine]:
    lines: dict[str, CartLine] = {}
    for item in json.loads(raw):
        quantity = int(item["quantity"])
        if quantity < 1:
            raise ValueError(f"Invalid quantity {quantity} for {item['product_id']}")
        line = CartLine(
            product_id=str(item["product_id"]),
            name=item["name"],
            unit_price=to_money(Decimal(item["unit_price"])),
            quantity=quantity,
            unit=item.get("unit") or "each",
        )
        lines[line.product_id] = line
    return lines


class Cart:
    def __init__(self, store: BlobStore, key: str = DEFAULT_CART_KEY) -> None:
        self._store = store
        self._key = key
        self._lines = self._load()

    @property
    def key(self) -> str:
        return self._key

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def is_empty(self) -> bool:
        return not self._lines

    def get(self, product_id: str) -> CartLine | None:
        return self._lines.get(product_id)

    def totals(self) -> Totals:
        return compute_totals(self._lines.values())

    def add_or_increment(self, product: Product, quantity: int = 1) -> CartLine:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1.")

        existing = self._lines.get(product.id)
        if existing is not None:
            line = replace(existing, quantity=existing.quantity + quantity)
        else:
            line = CartLine(
                product_id=product.id,
                name=product.name,
                unit_price=to_money(product.price),
                quantity=quantity,
                unit=product.unit,
            )

        self._save({**self._lines, product.id: line})
        return line

    def add_product(self, data: DataService, product_id: str, quantity: int = 1) -> CartLine:
        """Price a product from the live catalog and add it.

        An existing line keeps the price it was added at.
        """

        if quantity < 1:
            raise ValidationError("Quantity must be at least 1.")

        existing = self._lines.get(product_id)
        if existing is not None:
            product = Product(
                id=existing.product_id,
                name=existing.name,
                price=existing.unit_price,
                unit=existing.unit,
            )
        else:
            product = get_product(data, product_id)
        return self.add_or_increment(product, quantity)

    def decrement(self, product_id: str) -> CartLine | None:
        existing = self._lines.get(product_id)
        if existing is None:
            return None
        if existing.quantity <= 1:
            return existing

        line = replace(existing, quantity=existing.quantity - 1)
        self._save({**self._lines, product_id: line})
        return line

    def remove(self, product_id: str) -> None:
        if product_id not in self._lines:
            return
        self._save({pid: line for pid, line in self._lines.items() if pid != product_id})

    def clear(self) -> None:
        try:
            self._store.delete_blob(self._key)
        except DataServiceError as e:
            raise RemoteUnavailableError("clear cart") from e
        self._lines = {}

    def _save(self, lines: dict[str, CartLine]) -> None:
        try:
            self._store.write_blob(self._key, _encode(lines))
        except DataServiceError as e:
            raise RemoteUnavailableError("save cart") from e
        self._lines = lines

    def _load(self) -> dict[str, CartLine]:
        try:
            raw = self._store.read_blob(self._key)
        except DataServiceError as e:
            raise RemoteUnavailableError("load cart") from e

        if not raw:
            return {}

        try:
            return _decode(raw)
        except (ValueError, KeyError, TypeError, InvalidOperation) as e:
            logger.warning("Discarding unreadable cart", key=self._key, error=str(e))
            return {}
