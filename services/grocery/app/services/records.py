from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from packages.shared.schemas.order_v1 import OrderStatusV1
from services.grocery.app.services.data_base import DataService


@dataclass(frozen=True, slots=True)
class Product:
    id: str
    name: str
    price: Decimal
    unit: str = "each"


@dataclass(frozen=True, slots=True)
class CartLine:
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    unit: str = "each"

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class Totals:
    subtotal: Decimal
    tax: Decimal
    service_fee: Decimal
    total: Decimal


@dataclass(frozen=True, slots=True)
class OrderLine:
    order_id: str
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class Order:
    id: str
    order_number: int
    user_id: str
    location_id: str
    items: tuple[OrderLine, ...]
    subtotal: Decimal
    tax: Decimal
    service_fee: Decimal
    total: Decimal
    pickup_time: datetime
    created_at: datetime
    status: OrderStatusV1
    barcode: str


@dataclass(frozen=True, slots=True)
class CheckoutContext:
    """Who is checking out and where the order will be picked up.

    Passed explicitly into submission instead of living in global UI state.
    """

    user_id: str | None
    location_id: str | None

    @classmethod
    def from_data_service(cls, data: DataService, location_id: str | None) -> "CheckoutContext":
        return cls(user_id=data.get_current_user(), location_id=location_id)
