from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import pytest
from services.grocery.app.services.cart import Cart
from services.grocery.app.services.data_base import TABLE_PRODUCTS, DataServiceError, Row
from services.grocery.app.services.data_memory import MemoryDataService
from services.grocery.app.services.orders import OrderService
from services.grocery.app.services.records import CheckoutContext, Product

PICKUP_TIME = datetime(2025, 4, 18, 14, 0, tzinfo=UTC)

APPLES = Product(id="p1", name="Apples", price=Decimal("10.00"), unit="bag")
BREAD = Product(id="p2", name="Bread", price=Decimal("5.00"), unit="each")


class FlakyDataService:
    """Wraps a data service and fails chosen calls.

    ``fail(operation, table, times)`` makes the next ``times`` calls of that operation
    on that table raise DataServiceError. ``before(operation, table, hook)`` runs hook
    once just before the wrapped call.
    """

    def __init__(self, inner: MemoryDataService) -> None:
        self.inner = inner
        self.name = inner.name
        self.calls: list[tuple[str, str]] = []
        self._failures: dict[tuple[str, str], int] = {}
        self._hooks: dict[tuple[str, str], Callable[[], None]] = {}

    def fail(self, operation: str, table: str, times: int = 1) -> None:
        self._failures[(operation, table)] = times

    def before(self, operation: str, table: str, hook: Callable[[], None]) -> None:
        self._hooks[(operation, table)] = hook

    def _enter(self, operation: str, table: str) -> None:
        self.calls.append((operation, table))
        hook = self._hooks.pop((operation, table), None)
        if hook is not None:
            hook()
        remaining = self._failures.get((operation, table), 0)
        if remaining > 0:
            self._failures[(operation, table)] = remaining - 1
            raise DataServiceError(f"{operation} on {table} failed")

    def writes(self, table: str) -> list[str]:
        return [op for op, t in self.calls if t == table and op not in {"select_rows", "read_blob"}]

    def get_current_user(self) -> str | None:
        return self.inner.get_current_user()

    def read_blob(self, key: str) -> str | None:
        self._enter("read_blob", "blobs")
        return self.inner.read_blob(key)

    def write_blob(self, key: str, value: str) -> None:
        self._enter("write_blob", "blobs")
        self.inner.write_blob(key, value)

    def delete_blob(self, key: str) -> None:
        self._enter("delete_blob", "blobs")
        self.inner.delete_blob(key)

    def insert_rows(self, table: str, rows: list[Row]) -> list[Row]:
        self._enter("insert_rows", table)
        return self.inner.insert_rows(table, rows)

    def update_where(self, table: str, values: Row, where: Mapping[str, Any]) -> list[Row]:
        self._enter("update_where", table)
        return self.inner.update_where(table, values, where)

    def select_rows(self, table: str, where=None, **kwargs) -> list[Row]:
        self._enter("select_rows", table)
        return self.inner.select_rows(table, where, **kwargs)

    def delete_where(self, table: str, where: Mapping[str, Any]) -> int:
        self._enter("delete_where", table)
        return self.inner.delete_where(table, where)


def seed_products(data: MemoryDataService) -> None:
    data.insert_rows(
        TABLE_PRODUCTS,
        [
            {"id": "p1", "name": "Apples", "price_cents": 1000, "unit": "bag"},
            {"id": "p2", "name": "Bread", "price_cents": 500, "unit": "each"},
        ],
    )


@pytest.fixture()
def memory() -> MemoryDataService:
    data = MemoryDataService(current_user="u-1")
    seed_products(data)
    return data


@pytest.fixture()
def data(memory: MemoryDataService) -> FlakyDataService:
    return FlakyDataService(memory)


@pytest.fixture()
def cart(data: FlakyDataService) -> Cart:
    return Cart(data)


@pytest.fixture()
def service(data: FlakyDataService) -> OrderService:
    return OrderService(data)


@pytest.fixture()
def context() -> CheckoutContext:
    return CheckoutContext(user_id="u-1", location_id="loc-1")


@pytest.fixture()
def place_order(cart: Cart, service: OrderService, context: CheckoutContext) -> Callable[..., str]:
    def _place(*products: tuple[Product, int], ctx: CheckoutContext | None = None) -> str:
        for product, quantity in products or ((APPLES, 2), (BREAD, 1)):
            cart.add_or_increment(product, quantity)
        return service.submit_order(cart, ctx or context, PICKUP_TIME)

    return _place
