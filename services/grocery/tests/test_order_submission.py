"""Tests for turning a cart into a persisted order."""

from __future__ import annotations

from decimal import Decimal

import pytest
from conftest import APPLES, BREAD, PICKUP_TIME, FlakyDataService
from packages.shared.schemas.order_v1 import OrderStatusV1
from services.grocery.app.services.cart import Cart
from services.grocery.app.services.data_base import (
    TABLE_ORDER_ITEMS,
    TABLE_ORDERS,
    TABLE_PRODUCTS,
    DataServiceError,
    DataServiceTimeoutError,
    Row,
)
from services.grocery.app.services.data_memory import MemoryDataService
from services.grocery.app.services.errors import (
    AuthError,
    LocationRequiredError,
    PartialOrderError,
    RemoteUnavailableError,
    ValidationError,
)
from services.grocery.app.services.orders import OrderService
from services.grocery.app.services.records import CheckoutContext
from structlog.testing import capture_logs


def test_empty_cart_fails_with_zero_writes(
    cart: Cart, service: OrderService, context: CheckoutContext, data: FlakyDataService
) -> None:
    with pytest.raises(ValidationError, match="empty"):
        service.submit_order(cart, context, PICKUP_TIME)

    assert data.writes(TABLE_ORDERS) == []
    assert data.writes(TABLE_ORDER_ITEMS) == []
    assert data.inner.select_rows(TABLE_ORDERS) == []


@pytest.mark.parametrize(
    ("context", "error"),
    [
        (CheckoutContext(user_id=None, location_id="loc-1"), AuthError),
        (CheckoutContext(user_id="", location_id="loc-1"), AuthError),
        (CheckoutContext(user_id="u-1", location_id=None), LocationRequiredError),
    ],
)
def test_missing_user_or_location_fails_before_any_write(
    cart: Cart,
    service: OrderService,
    data: FlakyDataService,
    context: CheckoutContext,
    error: type[Exception],
) -> None:
    cart.add_or_increment(APPLES, 1)

    with pytest.raises(error):
        service.submit_order(cart, context, PICKUP_TIME)

    assert data.writes(TABLE_ORDERS) == []
    assert not cart.is_empty()


def test_missing_pickup_time_is_validation_error(
    cart: Cart, service: OrderService, context: CheckoutContext
) -> None:
    cart.add_or_increment(APPLES, 1)
    with pytest.raises(ValidationError):
        service.submit_order(cart, context, None)


def test_context_from_data_service_uses_signed_in_user(memory: MemoryDataService) -> None:
    assert CheckoutContext.from_data_service(memory, "loc-9") == CheckoutContext("u-1", "loc-9")

    memory.sign_out()
    assert CheckoutContext.from_data_service(memory, "loc-9").user_id is None


def test_submit_writes_one_header_and_one_row_per_line(
    place_order, service: OrderService, memory: MemoryDataService
) -> None:
    order_id = place_order()

    headers = memory.select_rows(TABLE_ORDERS)
    items = memory.select_rows(TABLE_ORDER_ITEMS, {"order_id": order_id})
    assert len(headers) == 1
    assert len(items) == 2

    order = service.get_order(order_id)
    assert order.status == OrderStatusV1.PENDING
    assert order.user_id == "u-1"
    assert order.location_id == "loc-1"
    assert order.pickup_time == PICKUP_TIME
    assert order.subtotal == Decimal("25.00")
    assert order.tax == Decimal("2.00")
    assert order.service_fee == Decimal("2.00")
    assert order.total == Decimal("29.00")
    assert [(i.product_id, i.quantity, i.unit_price) for i in order.items] == [
        ("p1", 2, Decimal("10.00")),
        ("p2", 1, Decimal("5.00")),
    ]
    assert order.order_number >= 1001
    assert order.barcode


def test_line_prices_are_cart_prices_not_catalog_prices(
    cart: Cart,
    service: OrderService,
    context: CheckoutContext,
    data: FlakyDataService,
    memory: MemoryDataService,
) -> None:
    cart.add_product(data, "p1", 1)
    memory.update_where(TABLE_PRODUCTS, {"price_cents": 9999}, {"id": "p1"})

    order_id = service.submit_order(cart, context, PICKUP_TIME)
    memory.update_where(TABLE_PRODUCTS, {"price_cents": 1}, {"id": "p1"})

    order = service.get_order(order_id)
    assert order.items[0].unit_price == Decimal("10.00")
    assert order.subtotal == Decimal("10.00")


def test_cart_is_empty_after_success(place_order, cart: Cart, memory: MemoryDataService) -> None:
    place_order()

    assert cart.is_empty()
    assert Cart(memory).is_empty()


def test_each_order_gets_its_own_barcode(place_order, service: OrderService) -> None:
    first = service.get_order(place_order((APPLES, 1)))
    second = service.get_order(place_order((APPLES, 1)))

    assert first.barcode != second.barcode
    assert first.order_number != second.order_number


def test_header_failure_is_remote_unavailable_and_keeps_cart(
    cart: Cart, service: OrderService, context: CheckoutContext, data: FlakyDataService
) -> None:
    cart.add_or_increment(APPLES, 1)
    data.fail("insert_rows", TABLE_ORDERS)

    with pytest.raises(RemoteUnavailableError):
        service.submit_order(cart, context, PICKUP_TIME)

    assert data.writes(TABLE_ORDER_ITEMS) == []
    assert cart.get("p1").quantity == 1


def test_line_item_insert_is_retried_under_same_order(
    place_order, service: OrderService, data: FlakyDataService, memory: MemoryDataService
) -> None:
    data.fail("insert_rows", TABLE_ORDER_ITEMS, times=1)

    order_id = place_order()

    assert data.calls.count(("insert_rows", TABLE_ORDER_ITEMS)) == 2
    assert len(memory.select_rows(TABLE_ORDERS)) == 1
    assert len(service.get_order(order_id).items) == 2


def test_line_item_failure_compensates_and_raises_partial_order(
    cart: Cart,
    service: OrderService,
    context: CheckoutContext,
    data: FlakyDataService,
    memory: MemoryDataService,
) -> None:
    cart.add_or_increment(APPLES, 2)
    cart.add_or_increment(BREAD, 1)
    data.fail("insert_rows", TABLE_ORDER_ITEMS, times=2)

    with capture_logs() as logs:
        with pytest.raises(PartialOrderError) as exc_info:
            service.submit_order(cart, context, PICKUP_TIME)

    err = exc_info.value
    assert err.compensated is True
    assert memory.select_rows(TABLE_ORDERS) == []
    assert memory.select_rows(TABLE_ORDER_ITEMS) == []
    assert len(cart.lines) == 2

    orphan_logs = [entry for entry in logs if entry.get("order_id") == err.order_id]
    assert any(entry["log_level"] == "error" for entry in orphan_logs)


def test_failed_compensation_leaves_orphan_and_says_so(
    cart: Cart,
    service: OrderService,
    context: CheckoutContext,
    data: FlakyDataService,
    memory: MemoryDataService,
) -> None:
    cart.add_or_increment(APPLES, 1)
    data.fail("insert_rows", TABLE_ORDER_ITEMS, times=2)
    # Retry cleanup succeeds, compensation delete fails.
    data.fail("delete_where", TABLE_ORDERS, times=1)

    with capture_logs() as logs:
        with pytest.raises(PartialOrderError) as exc_info:
            service.submit_order(cart, context, PICKUP_TIME)

    err = exc_info.value
    assert err.compensated is False
    assert err.order_id in str(err)

    orphans = memory.select_rows(TABLE_ORDERS)
    assert [row["id"] for row in orphans] == [err.order_id]
    assert memory.select_rows(TABLE_ORDER_ITEMS, {"order_id": err.order_id}) == []
    assert any(
        entry.get("order_id") == err.order_id and entry.get("compensated") is False for entry in logs
    )


def test_no_retries_configured_fails_on_first_line_item_error(
    memory: MemoryDataService, context: CheckoutContext
) -> None:
    data = FlakyDataService(memory)
    service = OrderService(data, line_item_retries=0)
    cart = Cart(data)
    cart.add_or_increment(APPLES, 1)
    data.fail("insert_rows", TABLE_ORDER_ITEMS, times=1)

    with pytest.raises(PartialOrderError):
        service.submit_order(cart, context, PICKUP_TIME)

    assert data.calls.count(("insert_rows", TABLE_ORDER_ITEMS)) == 1


def test_cart_clear_failure_after_success_still_returns_order(
    cart: Cart,
    service: OrderService,
    context: CheckoutContext,
    data: FlakyDataService,
) -> None:
    cart.add_or_increment(APPLES, 1)
    data.fail("delete_blob", "blobs")

    order_id = service.submit_order(cart, context, PICKUP_TIME)

    assert service.get_order(order_id).status == OrderStatusV1.PENDING


def test_line_item_retries_read_from_env(
    monkeypatch: pytest.MonkeyPatch, memory: MemoryDataService
) -> None:
    monkeypatch.setenv("GROCERY_LINE_ITEM_RETRIES", "3")
    data = FlakyDataService(memory)
    service = OrderService.from_env(data)
    cart = Cart(data)
    cart.add_or_increment(APPLES, 1)
    data.fail("insert_rows", TABLE_ORDER_ITEMS, times=3)

    service.submit_order(cart, CheckoutContext("u-1", "loc-1"), PICKUP_TIME)

    assert data.calls.count(("insert_rows", TABLE_ORDER_ITEMS)) == 4


@pytest.mark.parametrize("raw", ["-1", "many"])
def test_invalid_line_item_retries_env(
    monkeypatch: pytest.MonkeyPatch, memory: MemoryDataService, raw: str
) -> None:
    monkeypatch.setenv("GROCERY_LINE_ITEM_RETRIES", raw)
    with pytest.raises(ValueError, match="GROCERY_LINE_ITEM_RETRIES"):
        OrderService.from_env(memory)


class _HeaderLandsThenTimesOut(MemoryDataService):
    """Stores the order header, then reports a timeout as if the commit was never confirmed."""

    def __init__(self, *, cleanup_fails: bool = False) -> None:
        super().__init__(current_user="u-1")
        self._cleanup_fails = cleanup_fails

    def insert_rows(self, table: str, rows: list[Row]) -> list[Row]:
        inserted = super().insert_rows(table, rows)
        if table == TABLE_ORDERS:
            raise DataServiceTimeoutError("insert_rows")
        return inserted

    def delete_where(self, table, where) -> int:
        if self._cleanup_fails and table == TABLE_ORDERS:
            raise DataServiceError("delete failed")
        return super().delete_where(table, where)


def test_header_that_landed_before_timeout_is_removed() -> None:
    store = _HeaderLandsThenTimesOut()
    cart = Cart(store)
    cart.add_or_increment(APPLES, 1)

    with pytest.raises(RemoteUnavailableError):
        OrderService(store).submit_order(cart, CheckoutContext("u-1", "loc-1"), PICKUP_TIME)

    assert store.select_rows(TABLE_ORDERS) == []
    assert store.select_rows(TABLE_ORDER_ITEMS) == []
    assert cart.get("p1").quantity == 1


def test_header_cleanup_failure_logs_barcode() -> None:
    store = _HeaderLandsThenTimesOut(cleanup_fails=True)
    service = OrderService(store, barcode_factory=lambda: "bc-unconfirmed")
    cart = Cart(store)
    cart.add_or_increment(APPLES, 1)

    with capture_logs() as logs:
        with pytest.raises(RemoteUnavailableError):
            service.submit_order(cart, CheckoutContext("u-1", "loc-1"), PICKUP_TIME)

    assert any(
        entry["log_level"] == "error" and entry.get("barcode") == "bc-unconfirmed" for entry in logs
    )
