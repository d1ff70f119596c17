from __future__ import annotations

import threading
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from services.grocery.app.services.data_base import (
    TABLE_ORDER_ITEMS,
    TABLE_ORDERS,
    TABLES,
    DataServiceError,
    Row,
    parse_where,
)

_FIRST_ORDER_NUMBER = 1001


class MemoryDataService:
    """In-process data service for tests and local development.

    Assigns ids, order numbers and creation timestamps the way the hosted store does,
    and enforces barcode uniqueness on orders.
    """

    name = "MEMORY"

    def __init__(self, current_user: str | None = None) -> None:
        self._current_user = current_user
        self._blobs: dict[str, str] = {}
        self._tables: dict[str, list[Row]] = {table: [] for table in TABLES}
        self._next_order_number = _FIRST_ORDER_NUMBER
        self._lock = threading.Lock()

    def sign_in(self, user_id: str) -> None:
        self._current_user = user_id

    def sign_out(self) -> None:
        self._current_user = None

    def get_current_user(self) -> str | None:
        return self._current_user

    def read_blob(self, key: str) -> str | None:
        return self._blobs.get(key)

    def write_blob(self, key: str, value: str) -> None:
        self._blobs[key] = value

    def delete_blob(self, key: str) -> None:
        self._blobs.pop(key, None)

    def insert_rows(self, table: str, rows: list[Row]) -> list[Row]:
        with self._lock:
            stored = self._table(table)

            if table == TABLE_ORDERS:
                taken = {r["barcode"] for r in stored}
                for row in rows:
                    if row.get("barcode") in taken:
                        raise DataServiceError(f"Duplicate barcode {row['barcode']!r}")
                    taken.add(row.get("barcode"))

            inserted = [self._with_server_columns(table, dict(row)) for row in rows]
            stored.extend(inserted)
            return [dict(row) for row in inserted]

    def update_where(self, table: str, values: Row, where: Mapping[str, Any]) -> list[Row]:
        conditions = parse_where(where)
        with self._lock:
            updated: list[Row] = []
            for row in self._table(table):
                if all(c.matches(row) for c in conditions):
                    row.update(values)
                    updated.append(dict(row))
            return updated

    def select_rows(
        self,
        table: str,
        where: Mapping[str, Any] | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Row]:
        conditions = parse_where(where)
        with self._lock:
            rows = [dict(r) for r in self._table(table) if all(c.matches(r) for c in conditions)]

        if order_by is not None:
            rows.sort(key=lambda r: r[order_by], reverse=descending)
        return rows

    def delete_where(self, table: str, where: Mapping[str, Any]) -> int:
        conditions = parse_where(where)
        with self._lock:
            stored = self._table(table)
            kept = [r for r in stored if not all(c.matches(r) for c in conditions)]
            removed = len(stored) - len(kept)
            stored[:] = kept
            return removed

    def _table(self, table: str) -> list[Row]:
        try:
            return self._tables[table]
        except KeyError:
            raise DataServiceError(f"Unknown table {table!r}") from None

    def _with_server_columns(self, table: str, row: Row) -> Row:
        row.setdefault("id", uuid4().hex)
        if table == TABLE_ORDERS:
            row.setdefault("created_at", datetime.now(UTC))
            row["order_number"] = self._next_order_number
            self._next_order_number += 1
        elif table == TABLE_ORDER_ITEMS:
            row.setdefault("created_at", datetime.now(UTC))
        return row
