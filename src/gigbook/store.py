"""Tenant-scoped table-row storage and its PostgreSQL implementation."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Protocol

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from gigbook.config import get_database_url, get_user_id

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping
    from contextlib import AbstractContextManager

logger = logging.getLogger(__name__)

Row = dict[str, Any]


class StoreError(RuntimeError):
    """A row operation failed in the storage backend."""


class RowStore(Protocol):
    """Protocol for generic table-row persistence.

    Every call is implicitly scoped to one tenant. ``select`` filters are
    equality matches; a list value matches any of its members.
    """

    def insert(self, table: str, row: Mapping[str, Any]) -> Row: ...

    def update(self, table: str, row_id: str, values: Mapping[str, Any]) -> None: ...

    def delete(self, table: str, **filters: Any) -> int: ...

    def select(
        self, table: str, *, order_by: str | None = None, **filters: Any
    ) -> list[Row]: ...

    def transaction(self) -> AbstractContextManager[None]:
        """Apply the enclosed calls together, or none of them on error."""
        ...


class PostgresRowStore:
    """RowStore backed by PostgreSQL, scoping every statement by ``user_id``.

    Rows are returned as dicts. Child tables without a ``user_id`` column
    are listed in ``unscoped_tables`` and rely on their parent's scoping.
    """

    unscoped_tables = frozenset({"gig_dates", "invoice_lines", "gig_attachments"})

    def __init__(self, conn: psycopg.Connection[Any], user_id: str) -> None:
        self.conn = conn
        self.user_id = user_id
        self._in_transaction = False

    @classmethod
    def connect(cls) -> PostgresRowStore:
        """Open a connection from DATABASE_URL for GIGBOOK_USER_ID."""
        conn = psycopg.connect(get_database_url(), row_factory=dict_row)
        return cls(conn, get_user_id())

    def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        values = self._scoped(table, dict(row))
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            sql.Identifier(table),
            sql.SQL(", ").join(map(sql.Identifier, values)),
            sql.SQL(", ").join(sql.Placeholder() * len(values)),
        )
        rows = self._execute(query, [_adapt(v) for v in values.values()])
        return rows[0]

    def update(self, table: str, row_id: str, values: Mapping[str, Any]) -> None:
        if not values:
            return
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = {}").format(sql.Identifier(k), sql.Placeholder())
            for k in values
        )
        where, params = self._where(table, {"id": row_id})
        query = sql.SQL("UPDATE {} SET {} WHERE {}").format(
            sql.Identifier(table), assignments, where
        )
        self._execute(query, [*(_adapt(v) for v in values.values()), *params])

    def delete(self, table: str, **filters: Any) -> int:
        if not filters:
            msg = "delete requires at least one filter"
            raise ValueError(msg)
        where, params = self._where(table, filters)
        query = sql.SQL("DELETE FROM {} WHERE {} RETURNING id").format(
            sql.Identifier(table), where
        )
        return len(self._execute(query, params))

    def select(
        self, table: str, *, order_by: str | None = None, **filters: Any
    ) -> list[Row]:
        where, params = self._where(table, filters)
        query = sql.SQL("SELECT * FROM {} WHERE {}").format(
            sql.Identifier(table), where
        )
        if order_by:
            query += sql.SQL(" ORDER BY {}").format(sql.Identifier(order_by))
        return self._execute(query, params)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed statements in one database transaction.

        Statements inside are not committed one by one. Nested use joins the
        outer transaction.
        """
        if self._in_transaction:
            yield
            return
        self._in_transaction = True
        try:
            with self.conn.transaction():
                yield
        except psycopg.Error as exc:
            logger.error("Row store transaction failed: %s", exc)
            raise StoreError(str(exc)) from exc
        finally:
            self._in_transaction = False

    def _scoped(self, table: str, values: Row) -> Row:
        if table not in self.unscoped_tables:
            values["user_id"] = self.user_id
        return values

    def _where(
        self, table: str, filters: Mapping[str, Any]
    ) -> tuple[sql.Composed, list[Any]]:
        clauses: list[sql.Composable] = [sql.SQL("TRUE")]
        params: list[Any] = []
        for column, value in self._scoped(table, dict(filters)).items():
            if value is None:
                clauses.append(sql.SQL("{} IS NULL").format(sql.Identifier(column)))
            elif isinstance(value, (list, tuple, set, frozenset)):
                clauses.append(
                    sql.SQL("{} = ANY({})").format(
                        sql.Identifier(column), sql.Placeholder()
                    )
                )
                params.append(list(value))
            else:
                clauses.append(
                    sql.SQL("{} = {}").format(sql.Identifier(column), sql.Placeholder())
                )
                params.append(value)
        return sql.SQL(" AND ").join(clauses), params

    def _execute(self, query: sql.Composable, params: list[Any]) -> list[Row]:
        try:
            with self.conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, params)
                rows = cur.fetchall() if cur.description else []
            if not self._in_transaction:
                self.conn.commit()
        except psycopg.Error as exc:
            # Inside transaction() the rollback happens on exit.
            if not self._in_transaction:
                self.conn.rollback()
            logger.error("Row store query failed: %s", exc)
            raise StoreError(str(exc)) from exc
        return rows


def _adapt(value: Any) -> Any:
    """Wrap nested structures for JSONB columns."""
    if isinstance(value, (dict, list)):
        return Jsonb(value)
    return value
