from __future__ import annotations

from datetime import datetime

from packages.shared.schemas.order_v1 import OrderLineV1, OrderV1, employee_label
from pydantic import BaseModel
from services.grocery.app.services.pickup import format_pickup_window
from services.grocery.app.services.pricing import to_cents
from services.grocery.app.services.records import Order


class CheckoutRequest(BaseModel):
    device_id: str
    user_id: str | None = None
    location_id: str | None = None
    pickup_time: datetime | None = None


class CheckoutResponse(BaseModel):
    order_id: str


class StatusUpdateRequest(BaseModel):
    # An employee label ("Ready for Pickup") or a canonical status ("Ready").
    status: str
    expected_status: str | None = None


def order_out(order: Order) -> OrderV1:
    return OrderV1(
        id=order.id,
        order_number=order.order_number,
        user_id=order.user_id,
        location_id=order.location_id,
        status=order.status,
        employee_status=employee_label(order.status),
        subtotal_cents=to_cents(order.subtotal),
        tax_cents=to_cents(order.tax),
        service_fee_cents=to_cents(order.service_fee),
        total_cents=to_cents(order.total),
        pickup_time=order.pickup_time.isoformat(),
        pickup_window=format_pickup_window(order.pickup_time),
        created_at=order.created_at.isoformat(),
        barcode=order.barcode,
        items=[
            OrderLineV1(
                product_id=line.product_id,
                name=line.name,
                quantity=line.quantity,
                unit_price_cents=to_cents(line.unit_price),
                line_total_cents=to_cents(line.line_total),
            )
            for line in order.items
        ],
    )
