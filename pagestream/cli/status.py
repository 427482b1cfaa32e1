# ==============================================================================
# Status Command
# ==============================================================================
"""
Status command for the pagestream CLI.

Displays service health (PostgreSQL, Valkey, geo tiers) in either formatted
box output or JSON format for programmatic consumption.

Includes light retry logic (3 attempts, ~7 seconds) for network resilience
when checking service status.
"""

import json as json_module
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import psycopg2
import redis
import typer

from pagestream.cli.shared import (
    BOX_WIDTH,
    C,
    _box_bottom,
    _box_header,
    _box_line,
    _empty_line,
    _section_header,
    _status_badge,
)
from pagestream.utils.config import Settings, get_settings
from pagestream.utils.retry import (
    POSTGRES_RETRY_EXCEPTIONS,
    REDIS_RETRY_EXCEPTIONS,
    retry_light,
)

logger = logging.getLogger(__name__)


# ==============================================================================
# Data Collection - Individual Functions
# ==============================================================================


@retry_light(POSTGRES_RETRY_EXCEPTIONS, logger)
def _postgres_counts(settings: Settings) -> dict[str, int]:
    """Row counts for the main tables."""
    schema = settings.postgres.schema_name
    conn = psycopg2.connect(settings.postgres.connection_string, connect_timeout=5)
    try:
        with conn.cursor() as cur:
            counts = {}
            for table in ("websites", "sessions", "pageviews"):
                cur.execute(f"SELECT COUNT(*) FROM {schema}.{table}")
                counts[table] = cur.fetchone()[0]
            return counts
    finally:
        conn.close()


def _collect_postgres_data(settings: Settings) -> dict[str, Any]:
    """Collect PostgreSQL status data."""
    try:
        counts = _postgres_counts(settings)
    except psycopg2.errors.UndefinedTable:
        return {"status": "schema missing", "counts": {}}
    except psycopg2.Error:
        return {"status": "unreachable", "counts": {}}
    return {"status": "connected", "counts": counts}


@retry_light(REDIS_RETRY_EXCEPTIONS, logger)
def _valkey_info(settings: Settings) -> dict[str, Any]:
    """Key count and server version."""
    client = redis.from_url(
        settings.valkey.url,
        decode_responses=True,
        socket_timeout=5,
        socket_connect_timeout=5,
    )
    try:
        client.ping()
        info = client.info("server")
        return {
            "keys": client.dbsize(),
            "version": info.get("valkey_version") or info.get("redis_version"),
        }
    finally:
        client.close()


def _collect_valkey_data(settings: Settings) -> dict[str, Any]:
    """Collect Valkey status data."""
    try:
        info = _valkey_info(settings)
    except redis.RedisError:
        return {"status": "unreachable", "keys": None, "version": None}
    return {"status": "connected", **info}


def _collect_geo_data(settings: Settings) -> dict[str, Any]:
    """Describe the configured geo tiers (no network calls)."""
    local_path = settings.geo.local_db_path
    return {
        "remote": {
            "enabled": settings.geo.remote_enabled,
            "url": settings.geo.remote_url,
            "rate_per_minute": settings.geo.remote_rate_per_minute,
        },
        "local": {
            "path": local_path,
            "available": bool(local_path and os.path.exists(local_path)),
        },
    }


def _collect_status_data_parallel() -> dict[str, Any]:
    """Collect all status data, checking services concurrently."""
    settings = get_settings()
    with ThreadPoolExecutor(max_workers=2) as executor:
        pg_future = executor.submit(_collect_postgres_data, settings)
        valkey_future = executor.submit(_collect_valkey_data, settings)
        return {
            "postgresql": pg_future.result(),
            "valkey": valkey_future.result(),
            "geo": _collect_geo_data(settings),
        }


# ==============================================================================
# Display
# ==============================================================================


def _display_status(data: dict[str, Any]) -> None:
    W = BOX_WIDTH
    pg = data["postgresql"]
    valkey = data["valkey"]
    geo = data["geo"]

    print()
    print(_box_header("PAGESTREAM STATUS", W))
    print(_empty_line(W))

    print(_section_header("Services", W))
    print(_box_line(f"  {'PostgreSQL':<14}{_status_badge(pg['status'], pg['status'] == 'connected')}", W))
    for table, count in pg["counts"].items():
        print(_box_line(f"    {C.DIM}{table:<12}{C.RESET}{count:>12,}", W))
    print(
        _box_line(
            f"  {'Valkey':<14}{_status_badge(valkey['status'], valkey['status'] == 'connected')}", W
        )
    )
    if valkey["keys"] is not None:
        print(_box_line(f"    {C.DIM}{'keys':<12}{C.RESET}{valkey['keys']:>12,}", W))
    print(_empty_line(W))

    print(_section_header("Geo Tiers", W))
    remote = geo["remote"]
    remote_label = f"enabled ({remote['rate_per_minute']}/min)" if remote["enabled"] else "disabled"
    print(_box_line(f"  {'Remote':<14}{_status_badge(remote_label, remote['enabled'])}", W))
    local = geo["local"]
    local_label = "loaded" if local["available"] else "database not found"
    print(_box_line(f"  {'Local':<14}{_status_badge(local_label, local['available'])}", W))
    print(_empty_line(W))
    print(_box_bottom(W))
    print()


# ==============================================================================
# Commands
# ==============================================================================


def show_status(
    json_output: bool = typer.Option(False, "--json", help="Output status as JSON"),
) -> None:
    """Show service health for the pipeline."""
    data = _collect_status_data_parallel()

    if json_output:
        print(json_module.dumps(data, indent=2))
    else:
        _display_status(data)
