"""Order submission and fulfillment.

Submission turns a cart into an order header plus one line item per cart line. The
data service has no transaction spanning the two inserts, so the line-item insert is
retried under the same order id and, if it still fails, the header is deleted again
before PartialOrderError is raised. Anything that cannot be cleaned up is logged with
the order id for manual reconciliation.

Status changes are compare-and-swap on the status that was read: the update only
applies if the order still has that status, otherwise StaleStatusError.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable
from datetime import UTC, date, datetime, time, timedelta
from uuid import uuid4

import structlog

from packages.shared.schemas.order_v1 import (
    OrderFilterV1,
    OrderStatusV1,
    resolve_status_label,
    statuses_for_filter,
)
from services.grocery.app.services.cart import Cart
from services.grocery.app.services.data_base import (
    TABLE_ORDER_ITEMS,
    TABLE_ORDERS,
    DataService,
    DataServiceError,
    Row,
)
from services.grocery.app.services.errors import (
    AuthError,
    LocationRequiredError,
    OrderNotFoundError,
    PartialOrderError,
    RemoteUnavailableError,
    StaleStatusError,
    ValidationError,
)
from services.grocery.app.services.pickup import as_utc
from services.grocery.app.services.pricing import from_cents, to_cents
from services.grocery.app.services.records import CheckoutContext, Order, OrderLine
from services.grocery.app.services.status_machine import (
    INITIAL_STATUS,
    ensure_transition,
    parse_status,
)

logger = structlog.get_logger(__name__)

DEFAULT_LINE_ITEM_RETRIES = 1


def _new_barcode() -> str:
    return uuid4().hex


def _line_items_retries_from_env() -> int:
    raw = os.getenv("GROCERY_LINE_ITEM_RETRIES", str(DEFAULT_LINE_ITEM_RETRIES)).strip()
    try:
        retries = int(raw)
    except ValueError:
        retries = -1
    if retries < 0:
        raise ValueError(
            f"Invalid GROCERY_LINE_ITEM_RETRIES={raw!r}. Expected a non-negative integer."
        )
    return retries


def parse_filter(value: str | OrderFilterV1) -> OrderFilterV1:
    if isinstance(value, OrderFilterV1):
        return value
    try:
        return OrderFilterV1(value.strip().lower())
    except ValueError:
        raise ValidationError(
            f"Unknown order filter {value!r}. Expected all, active or past."
        ) from None


class OrderService:
    def __init__(
        self,
        data: DataService,
        *,
        line_item_retries: int = DEFAULT_LINE_ITEM_RETRIES,
        barcode_factory: Callable[[], str] = _new_barcode,
    ) -> None:
        self._data = data
        self._line_item_retries = max(0, line_item_retries)
        self._barcode_factory = barcode_factory

    @classmethod
    def from_env(cls, data: DataService) -> "OrderService":
        return cls(data, line_item_retries=_line_items_retries_from_env())

    # -------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------
    def submit_order(
        self,
        cart: Cart,
        context: CheckoutContext,
        pickup_time: datetime | None,
    ) -> str:
        """Persist the cart as a Pending order and return the new order id.

        Raises ValidationError, AuthError or LocationRequiredError before anything is
        written. Clears the cart only once both header and line items are stored.
        """

        lines = cart.lines
        if not lines:
            raise ValidationError("Your cart is empty.")
        if not context.user_id:
            raise AuthError()
        if not context.location_id:
            raise LocationRequiredError()
        if pickup_time is None:
            raise ValidationError("Please choose a pickup time.")

        totals = cart.totals()
        header = {
            "user_id": context.user_id,
            "location_id": context.location_id,
            "status": INITIAL_STATUS.value,
            "barcode": self._barcode_factory(),
            "subtotal_cents": to_cents(totals.subtotal),
            "tax_cents": to_cents(totals.tax),
            "service_fee_cents": to_cents(totals.service_fee),
            "total_cents": to_cents(totals.total),
            "pickup_time": as_utc(pickup_time),
        }

        try:
            inserted = self._data.insert_rows(TABLE_ORDERS, [header])
        except DataServiceError as e:
            logger.warning("Order header insert failed", user_id=context.user_id, error=str(e))
            self._delete_unconfirmed_header(header["barcode"])
            raise RemoteUnavailableError("create order") from e

        if not inserted or not inserted[0].get("id"):
            # The store claimed success but gave back no order; treat it as a failure.
            self._delete_unconfirmed_header(header["barcode"])
            raise RemoteUnavailableError("create order")

        order_id = inserted[0]["id"]
        item_rows = [
            {
                "order_id": order_id,
                "product_id": line.product_id,
                "name": line.name,
                "quantity": line.quantity,
                "unit_price_cents": to_cents(line.unit_price),
                "position": position,
            }
            for position, line in enumerate(lines)
        ]
        self._insert_line_items(order_id, item_rows)

        logger.info(
            "Order submitted",
            order_id=order_id,
            order_number=inserted[0].get("order_number"),
            user_id=context.user_id,
            location_id=context.location_id,
            line_count=len(item_rows),
            total_cents=header["total_cents"],
        )

        try:
            cart.clear()
        except RemoteUnavailableError as e:
            # The order is placed; reporting failure here would invite a duplicate order.
            logger.error(
                "Cart not cleared after order",
                order_id=order_id,
                cart_key=cart.key,
                error=str(e),
            )

        return order_id

    def _insert_line_items(self, order_id: str, rows: list[Row]) -> None:
        attempts = 1 + self._line_item_retries
        last_error: DataServiceError | None = None

        for attempt in range(1, attempts + 1):
            try:
                if attempt > 1:
                    # A timed-out attempt may still have landed.
                    self._data.delete_where(TABLE_ORDER_ITEMS, {"order_id": order_id})
                self._data.insert_rows(TABLE_ORDER_ITEMS, rows)
                return
            except DataServiceError as e:
                last_error = e
                logger.warning(
                    "Line item insert failed",
                    order_id=order_id,
                    attempt=attempt,
                    attempts=attempts,
                    error=str(e),
                )

        compensated = self._delete_orphaned_order(order_id)
        logger.error(
            "Order has no line items",
            order_id=order_id,
            compensated=compensated,
            error=str(last_error),
        )
        raise PartialOrderError(order_id, compensated=compensated) from last_error

    def _delete_unconfirmed_header(self, barcode: str) -> None:
        # A failed or timed-out header insert may still have been stored.
        try:
            removed = self._data.delete_where(TABLE_ORDERS, {"barcode": barcode})
        except DataServiceError as e:
            logger.error("Unconfirmed order header cleanup failed", barcode=barcode, error=str(e))
            return
        if removed:
            logger.warning("Removed unconfirmed order header", barcode=barcode, removed=removed)

    def _delete_orphaned_order(self, order_id: str) -> bool:
        try:
            self._data.delete_where(TABLE_ORDER_ITEMS, {"order_id": order_id})
            self._data.delete_where(TABLE_ORDERS, {"id": order_id})
        except DataServiceError as e:
            logger.error("Orphaned order cleanup failed", order_id=order_id, error=str(e))
            return False
        return True

    # -------------------------------------------------------------------
    # Fulfillment
    # -------------------------------------------------------------------
    def advance_status(
        self,
        order_id: str,
        new_status: str | OrderStatusV1,
        expected_status: str | OrderStatusV1 | None = None,
    ) -> Order:
        """Move an order to new_status if the transition table allows it.

        expected_status is the status the caller last saw; when given, the change only
        applies if the order is still in it.
        """

        target = parse_status(new_status)
        expected = parse_status(expected_status) if expected_status is not None else None

        header = self._get_header(order_id)
        current = OrderStatusV1(header["status"])

        if expected is not None and expected != current:
            raise StaleStatusError(order_id, expected.value)

        ensure_transition(current, target)

        try:
            updated = self._data.update_where(
                TABLE_ORDERS,
                {"status": target.value},
                {"id": order_id, "status": current.value},
            )
        except DataServiceError as e:
            raise RemoteUnavailableError("update order status") from e

        if not updated:
            logger.info(
                "Order status changed concurrently",
                order_id=order_id,
                expected=current.value,
                requested=target.value,
            )
            raise StaleStatusError(order_id, current.value)

        logger.info(
            "Order status advanced",
            order_id=order_id,
            from_status=current.value,
            to_status=target.value,
        )
        return self._with_items([updated[0]])[0]

    def mark_employee_status(
        self,
        order_id: str,
        label: str,
        expected_status: str | OrderStatusV1 | None = None,
    ) -> Order:
        """Apply a fulfillment-board action ("In Progress", "Ready for Pickup", "Completed").

        Canonical status values are accepted as well.
        """

        try:
            target = resolve_status_label(label)
        except ValueError as e:
            raise ValidationError(str(e)) from None
        return self.advance_status(order_id, target, expected_status)

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def list_orders(
        self,
        user_id: str | None,
        order_filter: str | OrderFilterV1 = OrderFilterV1.ALL,
    ) -> list[Order]:
        selected = parse_filter(order_filter)
        if not user_id:
            raise AuthError()

        where: dict[str, object] = {"user_id": user_id}
        if selected != OrderFilterV1.ALL:
            where["status"] = {s.value for s in statuses_for_filter(selected)}

        headers = self._select(TABLE_ORDERS, where, order_by="created_at", descending=True)
        return self._with_items(headers)

    def get_order(self, order_id: str) -> Order:
        return self._with_items([self._get_header(order_id)])[0]

    def find_by_barcode(self, barcode: str) -> Order:
        headers = self._select(TABLE_ORDERS, {"barcode": barcode})
        if not headers:
            raise OrderNotFoundError(barcode)
        return self._with_items(headers)[0]

    def list_orders_for_day(self, day: date, location_id: str | None = None) -> list[Order]:
        start = datetime.combine(day, time.min, tzinfo=UTC)
        where: dict[str, object] = {
            "created_at__gte": start,
            "created_at__lt": start + timedelta(days=1),
        }
        if location_id:
            where["location_id"] = location_id

        headers = self._select(TABLE_ORDERS, where, order_by="created_at")
        return self._with_items(headers)

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _select(self, table: str, where: dict, **kwargs) -> list[Row]:
        try:
            return self._data.select_rows(table, where, **kwargs)
        except DataServiceError as e:
            raise RemoteUnavailableError(f"read {table}") from e

    def _get_header(self, order_id: str) -> Row:
        headers = self._select(TABLE_ORDERS, {"id": order_id})
        if not headers:
            raise OrderNotFoundError(order_id)
        return headers[0]

    def _with_items(self, headers: Iterable[Row]) -> list[Order]:
        headers = list(headers)
        if not headers:
            return []

        item_rows = self._select(
            TABLE_ORDER_ITEMS,
            {"order_id": [h["id"] for h in headers]},
            order_by="position",
        )
        by_order: dict[str, list[OrderLine]] = {}
        for row in item_rows:
            by_order.setdefault(row["order_id"], []).append(
                OrderLine(
                    order_id=row["order_id"],
                    product_id=row["product_id"],
                    name=row["name"],
                    quantity=row["quantity"],
                    unit_price=from_cents(row["unit_price_cents"]),
                )
            )

        return [_order_from_row(h, by_order.get(h["id"], [])) for h in headers]


def _order_from_row(row: Row, items: list[OrderLine]) -> Order:
    return Order(
        id=row["id"],
        order_number=row["order_number"],
        user_id=row["user_id"],
        location_id=row["location_id"],
        items=tuple(items),
        subtotal=from_cents(row["subtotal_cents"]),
        tax=from_cents(row["tax_cents"]),
        service_fee=from_cents(row["service_fee_cents"]),
        total=from_cents(row["total_cents"]),
        pickup_time=as_utc(row["pickup_time"]),
        created_at=as_utc(row["created_at"]),
        status=OrderStatusV1(row["status"]),
        barcode=row["barcode"],
    )

