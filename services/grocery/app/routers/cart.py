from __future__ import annotations

from fastapi import APIRouter, Depends
from services.grocery.app.db.deps import get_data
from services.grocery.app.models.cart import CartItemAddRequest, CartLineOut, CartOut
from services.grocery.app.routers.errors import raise_ordering_http_error
from services.grocery.app.services.cart import Cart
from services.grocery.app.services.data_base import DataService
from services.grocery.app.services.pricing import to_cents

router = APIRouter()


def cart_key(device_id: str) -> str:
    return f"cart:{device_id}"


def _open_cart(data: DataService, device_id: str) -> Cart:
    try:
        return Cart(data, key=cart_key(device_id))
    except Exception as e:
        raise_ordering_http_error(e)


def _cart_out(device_id: str, cart: Cart) -> CartOut:
    totals = cart.totals()
    return CartOut(
        device_id=device_id,
        items=[
            CartLineOut(
                product_id=line.product_id,
                name=line.name,
                unit=line.unit,
                quantity=line.quantity,
                unit_price_cents=to_cents(line.unit_price),
                line_total_cents=to_cents(line.line_total),
            )
            for line in cart.lines
        ],
        item_count=cart.item_count,
        subtotal_cents=to_cents(totals.subtotal),
        tax_cents=to_cents(totals.tax),
        service_fee_cents=to_cents(totals.service_fee),
        total_cents=to_cents(totals.total),
    )


@router.get("/v1/cart/{device_id}", response_model=CartOut)
def get_cart(device_id: str, data: DataService = Depends(get_data)) -> CartOut:
    return _cart_out(device_id, _open_cart(data, device_id))


@router.post("/v1/cart/{device_id}/items", response_model=CartOut)
def add_cart_item(
    device_id: str,
    payload: CartItemAddRequest,
    data: DataService = Depends(get_data),
) -> CartOut:
    cart = _open_cart(data, device_id)
    try:
        cart.add_product(data, payload.product_id, payload.quantity)
    except Exception as e:
        raise_ordering_http_error(e)
    return _cart_out(device_id, cart)


@router.post("/v1/cart/{device_id}/items/{product_id}/decrement", response_model=CartOut)
def decrement_cart_item(
    device_id: str,
    product_id: str,
    data: DataService = Depends(get_data),
) -> CartOut:
    cart = _open_cart(data, device_id)
    try:
        cart.decrement(product_id)
    except Exception as e:
        raise_ordering_http_error(e)
    return _cart_out(device_id, cart)


@router.delete("/v1/cart/{device_id}/items/{product_id}", response_model=CartOut)
def remove_cart_item(
    device_id: str,
    product_id: str,
    data: DataService = Depends(get_data),
) -> CartOut:
    cart = _open_cart(data, device_id)
    try:
        cart.remove(product_id)
    except Exception as e:
        raise_ordering_http_error(e)
    return _cart_out(device_id, cart)


@router.delete("/v1/cart/{device_id}", response_model=CartOut)
def clear_cart(device_id: str, data: DataService = Depends(get_data)) -> CartOut:
    cart = _open_cart(data, device_id)
    try:
        cart.clear()
    except Exception as e:
        raise_ordering_http_error(e)
    return _cart_out(device_id, cart)
