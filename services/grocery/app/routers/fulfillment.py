from __future__ import annotations

from datetime import UTC, date, datetime

from fastapi import APIRouter, Depends
from packages.shared.schemas.order_v1 import OrderV1
from services.grocery.app.db.deps import get_data
from services.grocery.app.models.order import StatusUpdateRequest, order_out
from services.grocery.app.routers.errors import raise_ordering_http_error
from services.grocery.app.routers.order import order_service
from services.grocery.app.services.data_base import DataService

router = APIRouter()


@router.get("/v1/fulfillment/orders", response_model=list[OrderV1])
def list_todays_orders(
    day: date | None = None,
    location_id: str | None = None,
    data: DataService = Depends(get_data),
) -> list[OrderV1]:
    service = order_service(data)
    try:
        orders = service.list_orders_for_day(day or datetime.now(UTC).date(), location_id)
    except Exception as e:
        raise_ordering_http_error(e)
    return [order_out(o) for o in orders]


@router.post("/v1/fulfillment/orders/{order_id}/status", response_model=OrderV1)
def update_order_status(
    order_id: str,
    payload: StatusUpdateRequest,
    data: DataService = Depends(get_data),
) -> OrderV1:
    service = order_service(data)
    try:
        order = service.mark_employee_status(order_id, payload.status, payload.expected_status)
    except Exception as e:
        raise_ordering_http_error(e)
    return order_out(order)
