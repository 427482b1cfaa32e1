# ==============================================================================
# PostgreSQL Repository Implementations
# ==============================================================================
"""
PostgreSQL implementations of the repository interfaces.

Provides:
- PostgreSQLDatabase: connection pool shared by the repositories
- PostgreSQLWebsiteRepository: website lookup, first-seen insert on unique domain
- PostgreSQLSessionRepository: session insert and atomic pageview increment
- PostgreSQLPageviewRepository: pageview append
- PostgreSQLAnalyticsRepository: windowed aggregate queries

Every psycopg2 error is rolled back and re-raised as PersistenceFailure.
"""

import logging
from contextlib import contextmanager
from datetime import datetime

import psycopg2
from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool

from pagestream.base.repositories import (
    AnalyticsRepository,
    PageviewRepository,
    SessionRepository,
    WebsiteRepository,
)
from pagestream.core.errors import PersistenceFailure
from pagestream.core.models import Pageview, Session, Website
from pagestream.core.session_processor import BOUNCE_MAX_PAGEVIEWS
from pagestream.utils.config import PostgresSettings, get_settings
from pagestream.utils.retry import POSTGRES_RETRY_EXCEPTIONS, retry_standard

logger = logging.getLogger(__name__)

# Connection timeout
CONNECT_TIMEOUT = 10

# Pool bounds
POOL_MIN_CONNECTIONS = 1
POOL_MAX_CONNECTIONS = 10

# Host part of an absolute URL (userinfo and port excluded)
URL_HOST_PATTERN = r"^[A-Za-z][A-Za-z0-9+.-]*://(?:[^/?#@]*@)?([^/?#:]+)"


def _add_connect_timeout(conn_string: str) -> str:
    """Add connect_timeout to connection string if not present."""
    if "connect_timeout" not in conn_string:
        separator = "&" if "?" in conn_string else "?"
        return f"{conn_string}{separator}connect_timeout={CONNECT_TIMEOUT}"
    return conn_string


class PostgreSQLDatabase:
    """
    Owns the psycopg2 connection pool and hands out transactional cursors.

    Constructed once at process start and passed to every repository.
    """

    def __init__(self, settings: PostgresSettings | None = None):
        """
        Args:
            settings: PostgreSQL settings. If None, uses get_settings().postgres.
        """
        self._settings = settings or get_settings().postgres
        self._pool: ThreadedConnectionPool | None = None
        self._schema = self._settings.schema_name

    @property
    def schema(self) -> str:
        """Get the database schema name."""
        return self._schema

    @retry_standard(POSTGRES_RETRY_EXCEPTIONS, logger)
    def connect(self) -> None:
        """Create the connection pool."""
        conn_string = _add_connect_timeout(self._settings.connection_string)
        self._pool = ThreadedConnectionPool(
            POOL_MIN_CONNECTIONS, POOL_MAX_CONNECTIONS, conn_string
        )
        logger.info("PostgreSQLDatabase connected (schema=%s)", self._schema)

    @contextmanager
    def cursor(self):
        """
        Yield a dict cursor inside a transaction.

        Commits on success. Any exception rolls back; psycopg2 errors are
        re-raised as PersistenceFailure, everything else as-is.
        """
        if self._pool is None:
            raise RuntimeError("PostgreSQL connection not established. Call connect() first.")

        try:
            conn = self._pool.getconn()
        except psycopg2.Error as e:
            raise PersistenceFailure(f"Could not obtain a database connection: {e}") from e

        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                yield cur
            conn.commit()
        except psycopg2.Error as e:
            try:
                conn.rollback()
            except psycopg2.Error:
                logger.warning("Rollback failed after error: %s", e)
            raise PersistenceFailure(str(e)) from e
        except BaseException:
            try:
                conn.rollback()
            except psycopg2.Error as e:
                logger.warning("Rollback failed: %s", e)
            raise
        finally:
            self._pool.putconn(conn)

    def close(self) -> None:
        """Close all pooled connections."""
        if self._pool:
            try:
                self._pool.closeall()
                logger.info("PostgreSQLDatabase connection pool closed")
            except psycopg2.Error as e:
                logger.warning("Error closing connection pool: %s", e)
            finally:
                self._pool = None


# ==============================================================================
# Row Mapping
# ==============================================================================


def _website_from_row(row: dict) -> Website:
    return Website(
        id=str(row["id"]),
        domain=row["domain"],
        name=row["name"],
        is_public=row["is_public"],
        created_at=row["created_at"],
    )


def _session_from_row(row: dict) -> Session:
    return Session(
        id=row["id"],
        website_id=str(row["website_id"]),
        ip_hash=row["ip_hash"],
        user_agent=row["user_agent"],
        country=row["country"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        pageviews=row["pageviews"],
        bounced=row["bounced"],
    )


# ==============================================================================
# Repositories
# ==============================================================================


class PostgreSQLWebsiteRepository(WebsiteRepository):
    """PostgreSQL implementation of WebsiteRepository."""

    def __init__(self, db: PostgreSQLDatabase):
        self._db = db
        self._schema = db.schema

    def get_by_domain(self, domain: str) -> Website | None:
        with self._db.cursor() as cur:
            cur.execute(
                f"SELECT * FROM {self._schema}.websites WHERE domain = %s LIMIT 1",
                (domain,),
            )
            row = cur.fetchone()
        return _website_from_row(row) if row else None

    def get(self, website_id: str) -> Website | None:
        with self._db.cursor() as cur:
            cur.execute(
                f"SELECT * FROM {self._schema}.websites WHERE id = %s LIMIT 1",
                (website_id,),
            )
            row = cur.fetchone()
        return _website_from_row(row) if row else None

    def create(self, domain: str, name: str, is_public: bool = False) -> Website | None:
        # The unique index on domain decides concurrent first-seen inserts
        with self._db.cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO {self._schema}.websites (domain, name, is_public)
                VALUES (%s, %s, %s)
                ON CONFLICT (domain) DO NOTHING
                RETURNING *
                """,
                (domain, name, is_public),
            )
            row = cur.fetchone()
        if row:
            logger.info("Created website %s (%s)", row["id"], domain)
        return _website_from_row(row) if row else None

    def list_all(self) -> list[Website]:
        with self._db.cursor() as cur:
            cur.execute(f"SELECT * FROM {self._schema}.websites ORDER BY created_at")
            rows = cur.fetchall()
        return [_website_from_row(row) for row in rows]


class PostgreSQLSessionRepository(SessionRepository):
    """
    PostgreSQL implementation of SessionRepository.

    Sessions are keyed by (id, website_id). Pageview increments are a single
    UPDATE ... RETURNING, so concurrent pageviews for the same session never
    lose a count.
    """

    def __init__(self, db: PostgreSQLDatabase):
        self._db = db
        self._schema = db.schema

    def get(self, session_id: str, website_id: str) -> Session | None:
        with self._db.cursor() as cur:
            cur.execute(
                f"""
                SELECT * FROM {self._schema}.sessions
                WHERE id = %s AND website_id = %s
                LIMIT 1
                """,
                (session_id, website_id),
            )
            row = cur.fetchone()
        return _session_from_row(row) if row else None

    def create(self, session: Session) -> Session | None:
        with self._db.cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO {self._schema}.sessions (
                    id, website_id, ip_hash, user_agent, country,
                    start_time, end_time, pageviews, bounced
                ) VALUES (
                    %(id)s, %(website_id)s, %(ip_hash)s, %(user_agent)s, %(country)s,
                    %(start_time)s, %(end_time)s, %(pageviews)s, %(bounced)s
                )
                ON CONFLICT (id, website_id) DO NOTHING
                RETURNING *
                """,
                session.model_dump(),
            )
            row = cur.fetchone()
        return _session_from_row(row) if row else None

    def increment(self, session_id: str, website_id: str, now: datetime) -> Session | None:
        # SET expressions see the pre-update row, hence "pageviews + 1" in the bounce test
        with self._db.cursor() as cur:
            cur.execute(
                f"""
                UPDATE {self._schema}.sessions
                SET pageviews = pageviews + 1,
                    end_time = %(now)s,
                    bounced = (pageviews + 1) <= %(bounce_max)s
                WHERE id = %(id)s AND website_id = %(website_id)s
                RETURNING *
                """,
                {
                    "now": now,
                    "bounce_max": BOUNCE_MAX_PAGEVIEWS,
                    "id": session_id,
                    "website_id": website_id,
                },
            )
            row = cur.fetchone()
        return _session_from_row(row) if row else None


class PostgreSQLPageviewRepository(PageviewRepository):
    """PostgreSQL implementation of PageviewRepository."""

    def __init__(self, db: PostgreSQLDatabase):
        self._db = db
        self._schema = db.schema

    def add(self, pageview: Pageview) -> None:
        with self._db.cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO {self._schema}.pageviews (
                    website_id, session_id, url, referrer, user_agent, ip_hash,
                    country, region, city, os, browser, device,
                    utm_source, utm_medium, utm_campaign, "timestamp"
                ) VALUES (
                    %(website_id)s, %(session_id)s, %(url)s, %(referrer)s,
                    %(user_agent)s, %(ip_hash)s, %(country)s, %(region)s, %(city)s,
                    %(os)s, %(browser)s, %(device)s,
                    %(utm_source)s, %(utm_medium)s, %(utm_campaign)s, %(timestamp)s
                )
                """,
                pageview.to_db_record(),
            )
        logger.debug("Inserted pageview for session %s", pageview.session_id)


class PostgreSQLAnalyticsRepository(AnalyticsRepository):
    """PostgreSQL implementation of AnalyticsRepository."""

    def __init__(self, db: PostgreSQLDatabase):
        self._db = db
        self._schema = db.schema

    def _scalar(self, sql: str, params: tuple):
        with self._db.cursor() as cur:
            cur.execute(sql, params)
            row = cur.fetchone()
        if not row:
            return None
        return next(iter(row.values()))

    def _ranked(self, sql: str, params: tuple) -> list[tuple[str, int]]:
        with self._db.cursor() as cur:
            cur.execute(sql, params)
            rows = cur.fetchall()
        return [(row["key"], int(row["count"])) for row in rows]

    def count_pageviews(self, website_id: str, since: datetime) -> int:
        value = self._scalar(
            f"""
            SELECT count(*) AS count FROM {self._schema}.pageviews
            WHERE website_id = %s AND "timestamp" >= %s
            """,
            (website_id, since),
        )
        return int(value or 0)

    def count_unique_sessions(self, website_id: str, since: datetime) -> int:
        value = self._scalar(
            f"""
            SELECT count(DISTINCT session_id) AS count FROM {self._schema}.pageviews
            WHERE website_id = %s AND "timestamp" >= %s
            """,
            (website_id, since),
        )
        return int(value or 0)

    def session_bounce_counts(self, website_id: str, since: datetime) -> tuple[int, int]:
        with self._db.cursor() as cur:
            cur.execute(
                f"""
                SELECT count(*) FILTER (WHERE bounced) AS bounced,
                       count(*) AS total
                FROM {self._schema}.sessions
                WHERE website_id = %s AND start_time >= %s
                """,
                (website_id, since),
            )
            row = cur.fetchone()
        if not row:
            return 0, 0
        return int(row["bounced"] or 0), int(row["total"] or 0)

    def average_session_duration(self, website_id: str, since: datetime) -> float | None:
        value = self._scalar(
            f"""
            SELECT avg(extract(epoch FROM (end_time - start_time))) AS avg
            FROM {self._schema}.sessions
            WHERE website_id = %s AND end_time IS NOT NULL AND start_time >= %s
            """,
            (website_id, since),
        )
        return float(value) if value is not None else None

    def top_urls(self, website_id: str, since: datetime, limit: int) -> list[tuple[str, int]]:
        return self._ranked(
            f"""
            SELECT url AS key, count(*) AS count
            FROM {self._schema}.pageviews
            WHERE website_id = %s AND "timestamp" >= %s
            GROUP BY url
            ORDER BY count DESC, url
            LIMIT %s
            """,
            (website_id, since, limit),
        )

    def top_countries(
        self, website_id: str, since: datetime, limit: int
    ) -> list[tuple[str, int]]:
        return self._ranked(
            f"""
            SELECT country AS key, count(DISTINCT session_id) AS count
            FROM {self._schema}.pageviews
            WHERE website_id = %s AND "timestamp" >= %s AND country IS NOT NULL
            GROUP BY country
            ORDER BY count DESC, country
            LIMIT %s
            """,
            (website_id, since, limit),
        )

    def top_referrer_hosts(
        self, website_id: str, since: datetime, limit: int
    ) -> list[tuple[str, int]]:
        return self._ranked(
            f"""
            WITH refs AS (
                SELECT session_id,
                       regexp_replace(
                           lower(coalesce(substring(referrer FROM %s), referrer)),
                           '^www\\.', ''
                       ) AS host
                FROM {self._schema}.pageviews
                WHERE website_id = %s AND "timestamp" >= %s
                  AND referrer IS NOT NULL AND referrer <> ''
            )
            SELECT host AS key, count(DISTINCT session_id) AS count
            FROM refs
            GROUP BY host
            ORDER BY count DESC, host
            LIMIT %s
            """,
            (URL_HOST_PATTERN, website_id, since, limit),
        )

    def direct_visitors(self, website_id: str, since: datetime) -> int:
        value = self._scalar(
            f"""
            SELECT count(DISTINCT session_id) AS count FROM {self._schema}.pageviews
            WHERE website_id = %s AND "timestamp" >= %s
              AND (referrer IS NULL OR referrer = '')
            """,
            (website_id, since),
        )
        return int(value or 0)


def check_postgresql_connection(settings: PostgresSettings | None = None) -> bool:
    """
    Check if PostgreSQL is reachable.

    Returns:
        True if connection successful, False otherwise
    """
    settings = settings or get_settings().postgres
    try:
        conn = psycopg2.connect(_add_connect_timeout(settings.connection_string))
        conn.close()
        return True
    except psycopg2.Error:
        return False
