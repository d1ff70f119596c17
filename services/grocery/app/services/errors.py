from __future__ import annotations


class OrderingError(Exception):
    """Base class for errors surfaced by the cart and order services.

    Every subclass carries exactly one human-readable message, suitable for showing to
    the customer or employee as-is.
    """


class ValidationError(OrderingError):
    pass


class AuthError(OrderingError):
    def __init__(self) -> None:
        super().__init__("You must be logged in to place an order.")


class LocationRequiredError(OrderingError):
    def __init__(self) -> None:
        super().__init__("Please select a location before placing an order.")


class ProductNotFoundError(OrderingError):
    def __init__(self, product_id: str) -> None:
        super().__init__(f"Product {product_id} is not available.")
        self.product_id = product_id


class OrderNotFoundError(OrderingError):
    def __init__(self, reference: str) -> None:
        super().__init__(f"Order {reference} was not found.")
        self.reference = reference


class PartialOrderError(OrderingError):
    def __init__(self, order_id: str, *, compensated: bool) -> None:
        if compensated:
            message = "Failed to save the items for your order. The order was not placed."
        else:
            message = (
                "Failed to save the items for your order. The order was not placed and "
                f"needs manual cleanup: {order_id}"
            )
        super().__init__(message)
        self.order_id = order_id
        self.compensated = compensated


class InvalidTransitionError(OrderingError):
    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Cannot change order status from {current} to {requested}.")
        self.current = current
        self.requested = requested


class StaleStatusError(OrderingError):
    def __init__(self, order_id: str, expected: str) -> None:
        super().__init__(
            f"Order {order_id} is no longer {expected}. Refresh the order and try again."
        )
        self.order_id = order_id
        self.expected = expected


class RemoteUnavailableError(OrderingError):
    def __init__(self, operation: str) -> None:
        super().__init__(f"The store service is unavailable ({operation}). Try again.")
        self.operation = operation
