from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from packages.shared.schemas.order_v1 import OrderV1
from services.grocery.app.db.deps import get_data
from services.grocery.app.models.order import (
    CheckoutRequest,
    CheckoutResponse,
    order_out,
)
from services.grocery.app.routers.cart import cart_key
from services.grocery.app.routers.errors import raise_ordering_http_error
from services.grocery.app.services.cart import Cart
from services.grocery.app.services.data_base import DataService
from services.grocery.app.services.orders import OrderService
from services.grocery.app.services.records import CheckoutContext

router = APIRouter()


def order_service(data: DataService) -> OrderService:
    try:
        return OrderService.from_env(data)
    except ValueError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e


@router.post("/v1/orders", response_model=CheckoutResponse)
def checkout(payload: CheckoutRequest, data: DataService = Depends(get_data)) -> CheckoutResponse:
    service = order_service(data)
    # The signed-in user wins over a user_id sent in the body.
    context = CheckoutContext.from_data_service(data, payload.location_id)
    if not context.user_id and payload.user_id:
        context = CheckoutContext(user_id=payload.user_id, location_id=payload.location_id)

    try:
        cart = Cart(data, key=cart_key(payload.device_id))
        order_id = service.submit_order(cart, context, payload.pickup_time)
    except Exception as e:
        raise_ordering_http_error(e)

    return CheckoutResponse(order_id=order_id)


@router.get("/v1/orders", response_model=list[OrderV1])
def list_orders(
    user_id: str,
    order_filter: str = Query("all", alias="filter"),
    data: DataService = Depends(get_data),
) -> list[OrderV1]:
    service = order_service(data)
    try:
        orders = service.list_orders(user_id, order_filter)
    except Exception as e:
        raise_ordering_http_error(e)
    return [order_out(o) for o in orders]


@router.get("/v1/orders/barcode/{barcode}", response_model=OrderV1)
def get_order_by_barcode(barcode: str, data: DataService = Depends(get_data)) -> OrderV1:
    service = order_service(data)
    try:
        order = service.find_by_barcode(barcode)
    except Exception as e:
        raise_ordering_http_error(e)
    return order_out(order)


@router.get("/v1/orders/{order_id}", response_model=OrderV1)
def get_order(order_id: str, data: DataService = Depends(get_data)) -> OrderV1:
    service = order_service(data)
    try:
        order = service.get_order(order_id)
    except Exception as e:
        raise_ordering_http_error(e)
    return order_out(order)
