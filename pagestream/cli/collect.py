# ==============================================================================
# Collect and Geo Commands
# ==============================================================================
"""
Drive the write path from the command line.

``collect`` sends one synthetic pageview through the full pipeline (useful
for smoke-testing a deployment); ``geo`` resolves an address through the
tier chain and shared cache.
"""

import json
from typing import Annotated, Optional

import typer

from pagestream.cli.shared import C, I
from pagestream.pipeline.handlers import handle_collect

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0 Safari/537.36"
)


# ==============================================================================
# Commands
# ==============================================================================


def collect_event(
    url: Annotated[str, typer.Option("--url", "-u", help="Page URL")],
    domain: Annotated[str, typer.Option("--domain", "-d", help="Website domain")],
    referrer: Annotated[Optional[str], typer.Option("--referrer", "-r", help="Referrer URL")] = None,
    user_agent: Annotated[
        str, typer.Option("--user-agent", "-a", help="User-Agent header")
    ] = DEFAULT_USER_AGENT,
    ip: Annotated[
        Optional[str], typer.Option("--ip", help="Client IP (sent as X-Forwarded-For)")
    ] = None,
) -> None:
    """Send one pageview through the collect pipeline.

    Examples:
        pagestream collect --url https://example.com/pricing --domain example.com
        pagestream collect -u https://example.com/ -d example.com --ip 8.8.8.8
    """
    from pagestream.pipeline import build_pipeline

    payload = {"url": url, "domain": domain}
    if referrer:
        payload["referrer"] = referrer
    headers = {"User-Agent": user_agent}
    if ip:
        headers["X-Forwarded-For"] = ip

    pipeline = build_pipeline()
    try:
        response = handle_collect(pipeline.collector, payload, headers)
    finally:
        pipeline.close()

    if response.status == 200:
        print(f"{C.BRIGHT_GREEN}{I.CHECK} {response.status} {response.body}{C.RESET}")
        return
    print(f"{C.BRIGHT_RED}{I.CROSS} {response.status} {response.body}{C.RESET}")
    raise typer.Exit(1)


def resolve_geo(
    ip: Annotated[str, typer.Argument(help="IP address to resolve")],
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Resolve an IP address through the geo tiers."""
    from pagestream.pipeline import build_pipeline

    pipeline = build_pipeline()
    try:
        location = pipeline.geo.resolve(ip)
    finally:
        pipeline.close()

    if json_output:
        print(json.dumps(location.model_dump() if location else None))
        return

    if location is None:
        print(f"{C.BRIGHT_YELLOW}{I.WARN} {ip}: location unknown{C.RESET}")
        return

    place = ", ".join(p for p in (location.city, location.region, location.country) if p)
    print(f"{C.BRIGHT_GREEN}{I.CHECK} {ip}: {place}{C.RESET}")
    if location.latitude is not None and location.longitude is not None:
        print(f"  {C.DIM}{location.latitude:.4f}, {location.longitude:.4f}  {location.timezone or ''}{C.RESET}")
