# ==============================================================================
# Pagestream CLI
# ==============================================================================
"""
Command-line interface for the pagestream analytics pipeline.

Usage:
    pagestream --help
    pagestream status
    pagestream config show
    pagestream db init
    pagestream db reset -y
    pagestream stats WEBSITE_ID --period 30d
    pagestream live WEBSITE_ID
    pagestream collect --url https://example.com/ --domain example.com
    pagestream geo 8.8.8.8
"""

# ==============================================================================
# App Configuration
# ==============================================================================
# Set consistent terminal width for help output formatting
import os

import typer

if "COLUMNS" not in os.environ:
    os.environ["COLUMNS"] = "115"

app = typer.Typer(
    name="pagestream",
    help="Pageview analytics pipeline CLI",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@app.callback()
def _configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    from pagestream.utils.config import get_settings
    from pagestream.utils.log import configure_logging

    level = "DEBUG" if verbose else get_settings().log_level
    configure_logging(level)


config_app = typer.Typer(
    help="Configuration management",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")

# Register config commands from cli.config module
from pagestream.cli.config import config_show

config_app.command("show")(config_show)

db_app = typer.Typer(
    help="Database schema operations",
    no_args_is_help=True,
)
app.add_typer(db_app, name="db")

# Register db commands from cli.db module
from pagestream.cli.db import db_init, db_reset

db_app.command("init")(db_init)
db_app.command("reset")(db_reset)


# Status command is imported from pagestream.cli.status
from pagestream.cli.status import show_status

app.command("status")(show_status)

# Analytics commands are imported from pagestream.cli.analytics
from pagestream.cli.analytics import list_websites, show_live, show_stats

app.command("stats")(show_stats)
app.command("live")(show_live)
app.command("websites")(list_websites)

# Write-path commands are imported from pagestream.cli.collect
from pagestream.cli.collect import collect_event, resolve_geo

app.command("collect")(collect_event)
app.command("geo")(resolve_geo)


# ==============================================================================
# Entry Point
# ==============================================================================


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
