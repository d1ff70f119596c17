from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

TABLE_ORDERS = "orders"
TABLE_ORDER_ITEMS = "order_items"
TABLE_PRODUCTS = "products"

TABLES = (TABLE_ORDERS, TABLE_ORDER_ITEMS, TABLE_PRODUCTS)

Row = dict[str, Any]

# Filter keys may carry a comparison suffix, e.g. {"created_at__gte": start}.
# Unsuffixed keys match by equality, or by membership when the value is a
# list, tuple, set or frozenset.
_OPERATORS = ("eq", "in", "gte", "gt", "lte", "lt")


class DataServiceError(Exception):
    """Base class for data service failures (network, timeout, constraint, unknown table)."""


class DataServiceTimeoutError(DataServiceError):
    def __init__(self, operation: str) -> None:
        super().__init__(f"Data service timed out during {operation}")
        self.operation = operation


@dataclass(frozen=True, slots=True)
class Condition:
    column: str
    op: str
    value: Any

    def matches(self, row: Mapping[str, Any]) -> bool:
        actual = row.get(self.column)
        if self.op == "eq":
            return actual == self.value
        if self.op == "in":
            return actual in self.value
        if actual is None:
            return False
        if self.op == "gte":
            return actual >= self.value
        if self.op == "gt":
            return actual > self.value
        if self.op == "lte":
            return actual <= self.value
        return actual < self.value


def parse_where(where: Mapping[str, Any] | None) -> list[Condition]:
    conditions: list[Condition] = []
    for key, value in (where or {}).items():
        column, _, op = key.partition("__")
        if not op:
            op = "in" if isinstance(value, (list, tuple, set, frozenset)) else "eq"
        if op not in _OPERATORS:
            raise DataServiceError(f"Unsupported filter operator {op!r} in {key!r}")
        if op == "in":
            value = frozenset(value)
        conditions.append(Condition(column=column, op=op, value=value))
    return conditions


class BlobStore(Protocol):
    def read_blob(self, key: str) -> str | None: ...

    def write_blob(self, key: str, value: str) -> None: ...

    def delete_blob(self, key: str) -> None: ...


class DataService(BlobStore, Protocol):
    """Capabilities the ordering core needs from the hosted backend.

    Implementations raise DataServiceError (or a subclass) for every failure,
    including timeouts. Nothing is ever reported as done unless it was done.
    """

    name: str

    def get_current_user(self) -> str | None: ...

    def insert_rows(self, table: str, rows: list[Row]) -> list[Row]:
        """Insert rows and return them with server-assigned columns filled in."""
        ...

    def update_where(self, table: str, values: Row, where: Mapping[str, Any]) -> list[Row]:
        """Update matching rows and return them as written.

        An empty result means nothing matched, which is how a conditioned
        (compare-and-swap) update reports that it lost.
        """
        ...

    def select_rows(
        self,
        table: str,
        where: Mapping[str, Any] | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Row]: ...

    def delete_where(self, table: str, where: Mapping[str, Any]) -> int: ...
