"""Order status transitions.

    Pending -> Processing | AwaitingPickup | Ready
    Processing -> AwaitingPickup | Ready | Completed
    AwaitingPickup -> Ready | Completed
    Ready -> Completed

Cancelled, Failed and Refunded are reachable from every non-terminal status.
Completed, Cancelled, Failed and Refunded are terminal.
"""

from __future__ import annotations

from packages.shared.schemas.order_v1 import TERMINAL_STATUSES, OrderStatusV1
from services.grocery.app.services.errors import InvalidTransitionError, ValidationError

_EXITS = {OrderStatusV1.CANCELLED, OrderStatusV1.FAILED, OrderStatusV1.REFUNDED}

VALID_TRANSITIONS: dict[OrderStatusV1, frozenset[OrderStatusV1]] = {
    OrderStatusV1.PENDING: frozenset(
        {OrderStatusV1.PROCESSING, OrderStatusV1.AWAITING_PICKUP, OrderStatusV1.READY} | _EXITS
    ),
    OrderStatusV1.PROCESSING: frozenset(
        {OrderStatusV1.AWAITING_PICKUP, OrderStatusV1.READY, OrderStatusV1.COMPLETED} | _EXITS
    ),
    OrderStatusV1.AWAITING_PICKUP: frozenset(
        {OrderStatusV1.READY, OrderStatusV1.COMPLETED} | _EXITS
    ),
    OrderStatusV1.READY: frozenset({OrderStatusV1.COMPLETED} | _EXITS),
    **{status: frozenset() for status in TERMINAL_STATUSES},
}

INITIAL_STATUS = OrderStatusV1.PENDING


def parse_status(value: str | OrderStatusV1) -> OrderStatusV1:
    if isinstance(value, OrderStatusV1):
        return value
    try:
        return OrderStatusV1(value)
    except ValueError:
        raise ValidationError(f"Unknown order status {value!r}.") from None


def is_terminal(status: OrderStatusV1) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: OrderStatusV1, target: OrderStatusV1) -> bool:
    return target in VALID_TRANSITIONS[current]


def ensure_transition(current: OrderStatusV1, target: OrderStatusV1) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionError(current.value, target.value)
