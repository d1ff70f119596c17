from __future__ import annotations

from pydantic import BaseModel, Field


class CartItemAddRequest(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class CartLineOut(BaseModel):
    product_id: str
    name: str
    unit: str
    quantity: int
    unit_price_cents: int
    line_total_cents: int


class CartOut(BaseModel):
    device_id: str
    items: list[CartLineOut]
    item_count: int
    subtotal_cents: int
    tax_cents: int
    service_fee_cents: int
    total_cents: int
