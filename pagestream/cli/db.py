# ==============================================================================
# Database Commands
# ==============================================================================
"""
Schema management commands for the pagestream CLI.
"""

from typing import Annotated

import typer

from pagestream.cli.shared import C, I, check_db_connection
from pagestream.core.errors import CacheUnavailable
from pagestream.utils.config import get_settings


# ==============================================================================
# Commands
# ==============================================================================


def db_init() -> None:
    """Create the database and schema if they do not exist (idempotent)."""
    from pagestream.utils.db import ensure_schema

    settings = get_settings()
    try:
        ensure_schema(settings)
    except RuntimeError as e:
        print(f"{C.BRIGHT_RED}{I.CROSS} {e}{C.RESET}")
        raise typer.Exit(1)
    print(
        f"{C.BRIGHT_GREEN}{I.CHECK} Schema '{settings.postgres.schema_name}' is ready{C.RESET}"
    )


def db_reset(
    confirm: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")] = False,
) -> None:
    """Drop and recreate the schema. All stored pageviews are deleted.

    Examples:
        pagestream db reset       # With confirmation prompt
        pagestream db reset -y    # Skip confirmation
    """
    from pagestream.utils.db import reset_schema

    settings = get_settings()
    schema_name = settings.postgres.schema_name

    if not check_db_connection():
        print(f"{C.BRIGHT_RED}{I.CROSS} PostgreSQL is unreachable{C.RESET}")
        raise typer.Exit(1)

    if not confirm:
        typer.confirm(f"Drop and recreate schema '{schema_name}'?", abort=True)

    try:
        reset_schema(settings)
    except RuntimeError as e:
        print(f"{C.BRIGHT_RED}{I.CROSS} {e}{C.RESET}")
        raise typer.Exit(1)
    print(f"{C.BRIGHT_GREEN}{I.CHECK} Schema '{schema_name}' reset{C.RESET}")
    _purge_cached_projections()


def _purge_cached_projections() -> None:
    """Drop cached websites, sessions and aggregates that point at deleted rows."""
    from pagestream.infrastructure.cache import ValkeyCache
    from pagestream.pipeline.keys import PROJECTION_PATTERNS

    cache = ValkeyCache()
    try:
        removed = sum(cache.delete_pattern(pattern) for pattern in PROJECTION_PATTERNS)
    except CacheUnavailable:
        print(f"{C.BRIGHT_YELLOW}{I.WARN} Valkey unreachable, cached entries not cleared{C.RESET}")
        return
    finally:
        cache.close()
    print(f"{C.BRIGHT_GREEN}{I.CHECK} Cleared {removed:,} cached entries{C.RESET}")
