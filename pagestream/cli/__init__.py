# ==============================================================================
# CLI Commands Module
# ==============================================================================
"""
CLI commands for the pagestream pipeline.

Commands are organized into separate modules for maintainability:
- shared.py: Common utilities, constants, and helpers
- status.py: Service health
- config.py: Configuration display
- db.py: Schema management
- analytics.py: Aggregates and live visitors
- collect.py: Drive the write path and geo resolution
"""

from pagestream.cli.shared import (
    # Constants
    BOX_WIDTH,
    # Classes
    Box,
    Colors,
    Icons,
    # Aliases
    B,
    C,
    I,
    # Service checks
    check_cache_connection,
    check_db_connection,
)

__all__ = [
    # Constants
    "BOX_WIDTH",
    # Classes
    "Box",
    "Colors",
    "Icons",
    # Aliases
    "B",
    "C",
    "I",
    # Service checks
    "check_cache_connection",
    "check_db_connection",
]
