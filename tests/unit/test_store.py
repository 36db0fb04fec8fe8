"""Tests for gigbook.store."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import psycopg
import pytest
from psycopg.types.json import Jsonb

from gigbook.store import PostgresRowStore, StoreError


def _store(rows: list[dict[str, Any]] | None = None) -> tuple[PostgresRowStore, MagicMock]:
    conn = MagicMock()
    cursor = conn.cursor.return_value.__enter__.return_value
    cursor.description = [("id",)]
    cursor.fetchall.return_value = rows if rows is not None else []
    return PostgresRowStore(conn, "user-1"), cursor


class TestPostgresRowStore:
    """Tests for PostgresRowStore."""

    def test_insert_adds_user_id(self) -> None:
        store, cursor = _store([{"id": "g-1", "status": "draft"}])

        row = store.insert("gigs", {"status": "draft"})

        assert row == {"id": "g-1", "status": "draft"}
        params = cursor.execute.call_args[0][1]
        assert params == ["draft", "user-1"]
        store.conn.commit.assert_called_once()

    def test_insert_child_table_unscoped(self) -> None:
        store, cursor = _store([{"id": "d-1"}])

        store.insert("gig_dates", {"gig_id": "g-1", "sessions": [{"start": "10:00"}]})

        params = cursor.execute.call_args[0][1]
        assert params[0] == "g-1"
        assert isinstance(params[1], Jsonb)
        assert len(params) == 2

    def test_select_filters(self) -> None:
        store, cursor = _store([{"id": "g-1"}])

        rows = store.select("gigs", order_by="date", status=["draft", "pending"], client_id=None)

        assert rows == [{"id": "g-1"}]
        params = cursor.execute.call_args[0][1]
        assert params == [["draft", "pending"], "user-1"]

    def test_update_scoped_by_id_and_user(self) -> None:
        store, cursor = _store()

        store.update("gigs", "g-1", {"status": "paid"})

        assert cursor.execute.call_args[0][1] == ["paid", "g-1", "user-1"]

    def test_update_without_values_is_noop(self) -> None:
        store, cursor = _store()
        store.update("gigs", "g-1", {})
        cursor.execute.assert_not_called()

    def test_delete_returns_count(self) -> None:
        store, _ = _store([{"id": "a"}, {"id": "b"}])
        assert store.delete("gig_dates", gig_id="g-1") == 2

    def test_delete_requires_filter(self) -> None:
        store, _ = _store()
        with pytest.raises(ValueError, match="at least one filter"):
            store.delete("gigs")

    def test_database_error_rolls_back(self) -> None:
        store, cursor = _store()
        cursor.execute.side_effect = psycopg.OperationalError("connection lost")

        with pytest.raises(StoreError, match="connection lost"):
            store.select("gigs")

        store.conn.rollback.assert_called_once()
        store.conn.commit.assert_not_called()


class TestTransaction:
    """Tests for PostgresRowStore.transaction."""

    def test_commits_once_through_connection(self) -> None:
        store, _ = _store([{"id": "i-1"}])

        with store.transaction():
            store.insert("invoices", {"invoice_number": 1})
            store.insert("invoice_lines", {"invoice_id": "i-1"})

        store.conn.transaction.assert_called_once()
        store.conn.commit.assert_not_called()

    def test_failure_leaves_rollback_to_transaction(self) -> None:
        store, cursor = _store()
        cursor.execute.side_effect = psycopg.OperationalError("connection lost")

        with pytest.raises(StoreError, match="connection lost"), store.transaction():
            store.insert("invoices", {"invoice_number": 1})

        store.conn.rollback.assert_not_called()
        exit_args = store.conn.transaction.return_value.__exit__.call_args[0]
        assert exit_args[0] is StoreError

    def test_nested_joins_outer(self) -> None:
        store, _ = _store([{"id": "i-1"}])

        with store.transaction(), store.transaction():
            store.insert("invoices", {"invoice_number": 1})

        store.conn.transaction.assert_called_once()

    def test_statements_after_transaction_commit(self) -> None:
        store, _ = _store([{"id": "g-1"}])

        with store.transaction():
            pass
        store.select("gigs")

        store.conn.commit.assert_called_once()
