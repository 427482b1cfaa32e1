# ==============================================================================
# Config Commands
# ==============================================================================
"""
Configuration commands for the pagestream CLI.
"""

import json
from typing import Annotated

import typer

from pagestream.cli.shared import C
from pagestream.utils.config import get_settings


# ==============================================================================
# Commands
# ==============================================================================


def config_show(
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output configuration as JSON")
    ] = False,
) -> None:
    """Display current configuration (includes secrets in JSON mode)."""
    settings = get_settings()

    if json_output:
        config = {
            "postgresql": {
                "host": settings.postgres.host,
                "port": settings.postgres.port,
                "database": settings.postgres.database,
                "schema": settings.postgres.schema_name,
                "user": settings.postgres.user,
                "password": settings.postgres.password,
                "sslmode": settings.postgres.sslmode,
            },
            "valkey": {
                "host": settings.valkey.host,
                "port": settings.valkey.port,
                "db": settings.valkey.db,
                "ssl_enabled": settings.valkey.ssl,
                "password": settings.valkey.password,
            },
            "geo": {
                "remote_enabled": settings.geo.remote_enabled,
                "remote_url": settings.geo.remote_url,
                "remote_timeout_seconds": settings.geo.remote_timeout_seconds,
                "remote_rate_per_minute": settings.geo.remote_rate_per_minute,
                "local_db_path": settings.geo.local_db_path,
                "tier_cache_size": settings.geo.tier_cache_size,
            },
            "ingest": {
                "max_events_per_second": settings.ingest.max_events_per_second,
                "max_burst": settings.ingest.max_burst,
            },
            "log_level": settings.log_level,
        }
        print(json.dumps(config, indent=2))
        return

    # Human-readable output
    print()
    print(f"{C.BOLD}Configuration{C.RESET}")
    print()

    print(f"{C.CYAN}PostgreSQL{C.RESET}")
    print(f"  Host:       {C.WHITE}{settings.postgres.host}{C.RESET}")
    print(f"  Port:       {C.WHITE}{settings.postgres.port}{C.RESET}")
    print(f"  Database:   {C.WHITE}{settings.postgres.database}{C.RESET}")
    print(f"  Schema:     {C.WHITE}{settings.postgres.schema_name}{C.RESET}")
    print(f"  User:       {C.WHITE}{settings.postgres.user}{C.RESET}")
    print(f"  SSL:        {C.WHITE}{settings.postgres.sslmode}{C.RESET}")
    print()

    print(f"{C.CYAN}Valkey{C.RESET}")
    print(f"  Host:       {C.WHITE}{settings.valkey.host}{C.RESET}")
    print(f"  Port:       {C.WHITE}{settings.valkey.port}{C.RESET}")
    valkey_ssl = "enabled" if settings.valkey.ssl else "disabled"
    print(f"  SSL:        {C.WHITE}{valkey_ssl}{C.RESET}")
    print()

    print(f"{C.CYAN}Geolocation{C.RESET}")
    remote = "enabled" if settings.geo.remote_enabled else "disabled"
    print(f"  Remote:     {C.WHITE}{remote}{C.RESET}")
    print(f"  URL:        {C.WHITE}{settings.geo.remote_url}{C.RESET}")
    print(f"  Quota:      {C.WHITE}{settings.geo.remote_rate_per_minute}/minute{C.RESET}")
    print(f"  Local DB:   {C.WHITE}{settings.geo.local_db_path}{C.RESET}")
    print()

    print(f"{C.CYAN}Ingest{C.RESET}")
    rate = settings.ingest.max_events_per_second
    limit = f"{rate:g} events/s" if rate > 0 else "disabled"
    print(f"  Rate limit: {C.WHITE}{limit}{C.RESET}")
    print()
