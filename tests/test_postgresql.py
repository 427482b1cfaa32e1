# ==============================================================================
# Tests for the PostgreSQL Adapter
# ==============================================================================
"""
Transaction handling and query shape for the PostgreSQL adapter, run against a
mocked connection pool (no server needed).
"""

from datetime import datetime, timezone
from unittest import mock

import psycopg2
import pytest

from pagestream.core.errors import PersistenceFailure
from pagestream.infrastructure.repositories.postgresql import (
    PostgreSQLAnalyticsRepository,
    PostgreSQLDatabase,
)
from pagestream.utils.config import PostgresSettings

SINCE = datetime(2026, 3, 1, tzinfo=timezone.utc)


@pytest.fixture()
def conn():
    return mock.MagicMock()


@pytest.fixture()
def db(conn):
    database = PostgreSQLDatabase(PostgresSettings())
    database._pool = mock.Mock()
    database._pool.getconn.return_value = conn
    return database


def _cursor(conn):
    return conn.cursor.return_value.__enter__.return_value


class TestCursor:
    """Tests for PostgreSQLDatabase.cursor()."""

    def test_commits_on_success(self, db, conn):
        with db.cursor() as cur:
            cur.execute("SELECT 1")

        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()
        db._pool.putconn.assert_called_once_with(conn)

    def test_database_error_rolls_back_as_persistence_failure(self, db, conn):
        with pytest.raises(PersistenceFailure):
            with db.cursor():
                raise psycopg2.OperationalError("connection reset")

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        db._pool.putconn.assert_called_once_with(conn)

    def test_other_errors_roll_back_and_propagate(self, db, conn):
        with pytest.raises(RuntimeError, match="row mapping"):
            with db.cursor():
                raise RuntimeError("row mapping")

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        db._pool.putconn.assert_called_once_with(conn)

    def test_failed_rollback_keeps_original_error(self, db, conn, caplog):
        conn.rollback.side_effect = psycopg2.InterfaceError("connection already closed")

        with caplog.at_level("WARNING"):
            with pytest.raises(KeyError):
                with db.cursor():
                    raise KeyError("count")
        assert "Rollback failed" in caplog.text
        db._pool.putconn.assert_called_once_with(conn)

    def test_not_connected(self):
        with pytest.raises(RuntimeError, match="connect"):
            with PostgreSQLDatabase(PostgresSettings()).cursor():
                pass


class TestTopReferrerHosts:
    def test_host_is_lowercased_after_fallback(self, db, conn):
        _cursor(conn).fetchall.return_value = [{"key": "example.com", "count": 2}]

        rows = PostgreSQLAnalyticsRepository(db).top_referrer_hosts("w1", SINCE, 10)

        assert rows == [("example.com", 2)]
        sql = _cursor(conn).execute.call_args.args[0]
        assert "lower(coalesce(substring(referrer FROM %s), referrer))" in sql
