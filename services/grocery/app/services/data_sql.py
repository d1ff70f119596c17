from __future__ import annotations

import os
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import Table, delete, func, insert, select, update
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from services.grocery.app.db.database import db_session
from services.grocery.app.db.models import Blob, Order, OrderItem, Product
from services.grocery.app.services.data_base import (
    TABLE_ORDER_ITEMS,
    TABLE_ORDERS,
    TABLE_PRODUCTS,
    Condition,
    DataServiceError,
    DataServiceTimeoutError,
    Row,
    parse_where,
)

logger = structlog.get_logger(__name__)

_TABLES: dict[str, Table] = {
    TABLE_ORDERS: Order.__table__,
    TABLE_ORDER_ITEMS: OrderItem.__table__,
    TABLE_PRODUCTS: Product.__table__,
}

_FIRST_ORDER_NUMBER = 1001


def _as_utc(value: Any) -> Any:
    # SQLite hands DateTime(timezone=True) back naive; everything is stored in UTC.
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _row(mapping: Mapping[str, Any]) -> Row:
    return {key: _as_utc(value) for key, value in mapping.items()}


def _clause(table: Table, condition: Condition):
    try:
        column = table.c[condition.column]
    except KeyError:
        raise DataServiceError(
            f"Unknown column {condition.column!r} on {table.name!r}"
        ) from None

    if condition.op == "eq":
        return column == condition.value
    if condition.op == "in":
        return column.in_(list(condition.value))
    if condition.op == "gte":
        return column >= condition.value
    if condition.op == "gt":
        return column > condition.value
    if condition.op == "lte":
        return column <= condition.value
    return column < condition.value


class SqlDataService:
    """Relational data service backed by SQLAlchemy.

    Each call runs in its own transaction. Driver errors, including timeouts, come
    back as DataServiceError so callers never mistake a failed write for a done one.
    """

    name = "SQL"

    def __init__(self, user_id: str | None = None) -> None:
        self._user_id = user_id

    @classmethod
    def from_env(cls) -> "SqlDataService":
        user_id = os.getenv("GROCERY_USER_ID", "").strip() or None
        return cls(user_id=user_id)

    def get_current_user(self) -> str | None:
        return self._user_id

    def read_blob(self, key: str) -> str | None:
        with self._transaction("read_blob") as db:
            blob = db.get(Blob, key)
            return blob.value if blob is not None else None

    def write_blob(self, key: str, value: str) -> None:
        with self._transaction("write_blob") as db:
            blob = db.get(Blob, key)
            if blob is None:
                db.add(Blob(key=key, value=value))
            else:
                blob.value = value

    def delete_blob(self, key: str) -> None:
        with self._transaction("delete_blob") as db:
            db.execute(delete(Blob).where(Blob.key == key))

    def insert_rows(self, table: str, rows: list[Row]) -> list[Row]:
        target = self._table(table)
        with self._transaction("insert_rows") as db:
            next_number: int | None = None
            inserted: list[Row] = []
            for row in rows:
                values = dict(row)
                if target is Order.__table__ and "order_number" not in values:
                    if next_number is None:
                        current_max = db.scalar(select(func.max(Order.order_number)))
                        next_number = (current_max or _FIRST_ORDER_NUMBER - 1) + 1
                    values["order_number"] = next_number
                    next_number += 1

                result = db.execute(insert(target).values(**values).returning(*target.c))
                inserted.append(_row(result.mappings().one()))
            return inserted

    def update_where(self, table: str, values: Row, where: Mapping[str, Any]) -> list[Row]:
        target = self._table(table)
        clauses = [_clause(target, c) for c in parse_where(where)]
        with self._transaction("update_where") as db:
            result = db.execute(
                update(target).where(*clauses).values(**values).returning(*target.c)
            )
            return [_row(m) for m in result.mappings().all()]

    def select_rows(
        self,
        table: str,
        where: Mapping[str, Any] | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Row]:
        target = self._table(table)
        stmt = select(target).where(*[_clause(target, c) for c in parse_where(where)])
        if order_by is not None:
            column = target.c[order_by]
            stmt = stmt.order_by(column.desc() if descending else column.asc())

        with self._transaction("select_rows") as db:
            return [_row(m) for m in db.execute(stmt).mappings().all()]

    def delete_where(self, table: str, where: Mapping[str, Any]) -> int:
        target = self._table(table)
        clauses = [_clause(target, c) for c in parse_where(where)]
        with self._transaction("delete_where") as db:
            return db.execute(delete(target).where(*clauses)).rowcount

    def _table(self, table: str) -> Table:
        try:
            return _TABLES[table]
        except KeyError:
            raise DataServiceError(f"Unknown table {table!r}") from None

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Session]:
        db = db_session()
        try:
            yield db
            db.commit()
        except OperationalError as e:
            db.rollback()
            logger.warning("Data service call failed", operation=operation, error=str(e))
            if "timeout" in str(e).lower() or "locked" in str(e).lower():
                raise DataServiceTimeoutError(operation) from e
            raise DataServiceError(f"{operation} failed: {e}") from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Data service call failed", operation=operation, error=str(e))
            raise DataServiceError(f"{operation} failed: {e}") from e
        except TimeoutError as e:
            db.rollback()
            raise DataServiceTimeoutError(operation) from e
        except BaseException:
            db.rollback()
            raise
        finally:
            db.close()
