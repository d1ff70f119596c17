"""Shared order payload schema (v1).

The customer app and the employee fulfillment app render these payloads. Both use the
canonical status values below; the employee app shows its own three-stage vocabulary
through ``employee_label`` and sends it back through ``resolve_status_label``.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class OrderStatusV1(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    AWAITING_PICKUP = "AwaitingPickup"
    READY = "Ready"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    FAILED = "Failed"
    REFUNDED = "Refunded"


class EmployeeStatusV1(str, Enum):
    IN_PROGRESS = "In Progress"
    READY_FOR_PICKUP = "Ready for Pickup"
    COMPLETED = "Completed"


class OrderFilterV1(str, Enum):
    ALL = "all"
    ACTIVE = "active"
    PAST = "past"


ACTIVE_STATUSES = frozenset(
    {
        OrderStatusV1.PENDING,
        OrderStatusV1.PROCESSING,
        OrderStatusV1.AWAITING_PICKUP,
        OrderStatusV1.READY,
    }
)

TERMINAL_STATUSES = frozenset(
    {
        OrderStatusV1.COMPLETED,
        OrderStatusV1.CANCELLED,
        OrderStatusV1.FAILED,
        OrderStatusV1.REFUNDED,
    }
)

# Employee action -> canonical status written to the order.
EMPLOYEE_TO_CANONICAL = {
    EmployeeStatusV1.IN_PROGRESS: OrderStatusV1.PROCESSING,
    EmployeeStatusV1.READY_FOR_PICKUP: OrderStatusV1.READY,
    EmployeeStatusV1.COMPLETED: OrderStatusV1.COMPLETED,
}

# Canonical status -> what the employee board shows. Statuses outside the
# three-stage path are shown as-is.
CANONICAL_TO_EMPLOYEE = {
    OrderStatusV1.PENDING: EmployeeStatusV1.IN_PROGRESS,
    OrderStatusV1.PROCESSING: EmployeeStatusV1.IN_PROGRESS,
    OrderStatusV1.AWAITING_PICKUP: EmployeeStatusV1.IN_PROGRESS,
    OrderStatusV1.READY: EmployeeStatusV1.READY_FOR_PICKUP,
    OrderStatusV1.COMPLETED: EmployeeStatusV1.COMPLETED,
}


def statuses_for_filter(order_filter: OrderFilterV1) -> frozenset[OrderStatusV1]:
    if order_filter == OrderFilterV1.ACTIVE:
        return ACTIVE_STATUSES
    if order_filter == OrderFilterV1.PAST:
        return TERMINAL_STATUSES
    return frozenset(OrderStatusV1)


def employee_label(status: OrderStatusV1) -> str:
    label = CANONICAL_TO_EMPLOYEE.get(status)
    return label.value if label is not None else status.value


def resolve_status_label(label: str) -> OrderStatusV1:
    """Map an employee label or a canonical status value to the canonical status.

    Raises ValueError for anything else.
    """

    text = label.strip()
    for employee_status, canonical in EMPLOYEE_TO_CANONICAL.items():
        if employee_status.value.lower() == text.lower():
            return canonical

    for status in OrderStatusV1:
        if status.value.lower() == text.lower():
            return status

    raise ValueError(f"Unknown order status {label!r}")


class OrderLineV1(BaseModel):
    product_id: str
    name: str
    quantity: int = Field(..., ge=1)
    unit_price_cents: int = Field(..., ge=0)
    line_total_cents: int = Field(..., ge=0)


class OrderV1(BaseModel):
    version: str = "1"

    id: str
    order_number: int
    user_id: str
    location_id: str

    status: OrderStatusV1
    employee_status: str

    subtotal_cents: int
    tax_cents: int
    service_fee_cents: int
    total_cents: int

    pickup_time: str
    pickup_window: str
    created_at: str
    barcode: str

    items: list[OrderLineV1] = Field(default_factory=list)
