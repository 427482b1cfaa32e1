# ==============================================================================
# Database Repository Adapters
# ==============================================================================
"""
Database adapters implementing the repository interfaces from base/repositories.py.

Currently supported:
- PostgreSQL (postgresql.py)
"""

from pagestream.infrastructure.repositories.postgresql import (
    PostgreSQLAnalyticsRepository,
    PostgreSQLDatabase,
    PostgreSQLPageviewRepository,
    PostgreSQLSessionRepository,
    PostgreSQLWebsiteRepository,
    check_postgresql_connection,
)

__all__ = [
    "PostgreSQLAnalyticsRepository",
    "PostgreSQLDatabase",
    "PostgreSQLPageviewRepository",
    "PostgreSQLSessionRepository",
    "PostgreSQLWebsiteRepository",
    "check_postgresql_connection",
]
