# ==============================================================================
# Analytics Commands
# ==============================================================================
"""
Analytics commands for the pagestream CLI.

Reads the same cached aggregates the stats endpoints serve.
"""

import json
from datetime import datetime, timezone
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from pagestream.cli.shared import (
    BOX_WIDTH,
    C,
    I,
    check_cache_connection,
    _box_bottom,
    _box_header,
    _box_line,
    _empty_line,
)
from pagestream.core.errors import PagestreamError
from pagestream.pipeline.stats import PERIOD_DAYS, DailyCounters, LiveVisitors, parse_period


# ==============================================================================
# Helper Functions
# ==============================================================================


def _ranked_table(title: str, label: str, value: str, rows: list[dict]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column(label)
    table.add_column(value.capitalize(), justify="right")
    table.add_column("%", justify="right")
    for row in rows:
        name = row.get("path") or row.get("country") or row.get("source")
        table.add_row(str(name), f"{row[value]:,}", f"{row['percentage']:.1f}")
    return table


# ==============================================================================
# Commands
# ==============================================================================


def show_stats(
    website_id: Annotated[str, typer.Argument(help="Website id")],
    period: Annotated[
        str,
        typer.Option("--period", "-p", help=f"Window: {', '.join(PERIOD_DAYS)}"),
    ] = "7d",
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output as JSON for scripting")
    ] = False,
) -> None:
    """Show aggregates for a website over a time window.

    Examples:
        pagestream stats 5c1d... --period 24h
        pagestream stats 5c1d... --json
    """
    from pagestream.pipeline import build_pipeline

    token, _ = parse_period(period)
    pipeline = build_pipeline()
    try:
        aggregator = pipeline.aggregator
        report = {
            "stats": aggregator.stats(website_id, token),
            "pages": aggregator.top_pages(website_id, token),
            "countries": aggregator.top_countries(website_id, token),
            "referrers": aggregator.top_referrers(website_id, token),
        }
    except PagestreamError as e:
        if json_output:
            print(json.dumps({"error": str(e)}))
        else:
            print(f"\n{C.BRIGHT_RED}{I.CROSS} Failed to fetch stats: {e}{C.RESET}\n")
        raise typer.Exit(1)
    finally:
        pipeline.close()

    if json_output:
        print(json.dumps(report, indent=2))
        return

    W = BOX_WIDTH
    stats = report["stats"]
    print()
    print(_box_header(f"STATS ({token})", W))
    print(_empty_line(W))
    print(_box_line(f"  {'Pageviews':<26}{stats['pageviews']:>12,}", W))
    print(_box_line(f"  {'Unique Visitors':<26}{stats['uniqueVisitors']:>12,}", W))
    print(_box_line(f"  {'Bounce Rate':<26}{stats['bounceRate']:>11.1f}%", W))
    print(_box_line(f"  {'Avg Duration':<26}{stats['avgDuration']:>11,}s", W))
    print(_box_line(f"  {'Live Visitors':<26}{stats['liveVisitors']:>12,}", W))
    print(_empty_line(W))
    print(_box_bottom(W))

    console = Console()
    console.print(_ranked_table("Top Pages", "Path", "views", report["pages"]))
    console.print(_ranked_table("Top Countries", "Country", "visitors", report["countries"]))
    console.print(_ranked_table("Top Referrers", "Source", "visitors", report["referrers"]))
    print()


def show_live(
    website_id: Annotated[str, typer.Argument(help="Website id")],
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show visitors active in the last 5 minutes and today's pageview counter."""
    from pagestream.infrastructure.cache import ValkeyCache

    if not check_cache_connection():
        print(f"\n{C.BRIGHT_RED}{I.CROSS} Valkey is unreachable{C.RESET}\n")
        raise typer.Exit(1)

    cache = ValkeyCache()
    try:
        live = LiveVisitors(cache).count(website_id)
        today = datetime.now(timezone.utc).date()
        pageviews_today = DailyCounters(cache).get(website_id, today)
    finally:
        cache.close()

    if json_output:
        print(
            json.dumps(
                {
                    "website_id": website_id,
                    "liveVisitors": live,
                    "date": today.isoformat(),
                    "pageviewsToday": pageviews_today,
                }
            )
        )
        return

    print()
    print(f"  {C.BRIGHT_GREEN}{I.CIRCLE}{C.RESET} {C.BOLD}{live:,}{C.RESET} live visitors")
    print(f"  {C.DIM}{pageviews_today:,} pageviews today ({today.isoformat()}){C.RESET}")
    print()


def list_websites(
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """List tracked websites, oldest first."""
    from pagestream.pipeline import build_pipeline

    pipeline = build_pipeline()
    try:
        websites = pipeline.entities.list_websites()
    except PagestreamError as e:
        if json_output:
            print(json.dumps({"error": str(e)}))
        else:
            print(f"\n{C.BRIGHT_RED}{I.CROSS} Failed to list websites: {e}{C.RESET}\n")
        raise typer.Exit(1)
    finally:
        pipeline.close()

    if json_output:
        print(json.dumps([w.model_dump(mode="json") for w in websites], indent=2))
        return

    if not websites:
        print(f"\n  {C.DIM}No websites tracked yet{C.RESET}\n")
        return

    table = Table(title="Websites", show_header=True, header_style="bold")
    table.add_column("Id")
    table.add_column("Domain")
    table.add_column("Public", justify="center")
    table.add_column("Created")
    for website in websites:
        created = website.created_at.strftime("%Y-%m-%d %H:%M") if website.created_at else "-"
        table.add_row(website.id, website.domain, I.CHECK if website.is_public else "", created)
    Console().print(table)
