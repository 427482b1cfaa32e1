# ==============================================================================
# User-Agent Classification
# ==============================================================================
"""
Parse a user-agent string into OS, browser and a coarse device class.

Device class comes from the structured parser first (tablet/mobile flags from
the ``user_agents`` library); when the parser has no opinion the raw string is
checked for well-known substrings.
"""

from user_agents import parse

from pagestream.core.models import ParsedUserAgent

MOBILE_TOKENS = ("mobile", "android", "iphone")
TABLET_TOKENS = ("tablet", "ipad")

# ua-parser reports unknown families as "Other"
UNKNOWN_FAMILY = "Other"


def _family(value: str | None) -> str | None:
    if not value or value == UNKNOWN_FAMILY:
        return None
    return value


def classify_device(user_agent: str, is_tablet: bool = False, is_mobile: bool = False) -> str:
    """Return 'tablet', 'mobile' or 'desktop'."""
    if is_tablet:
        return "tablet"
    if is_mobile:
        return "mobile"

    ua = user_agent.lower()
    if any(token in ua for token in MOBILE_TOKENS):
        return "mobile"
    if any(token in ua for token in TABLET_TOKENS):
        return "tablet"
    return "desktop"


def parse_user_agent(user_agent: str | None) -> ParsedUserAgent:
    """Classify a raw user-agent header value."""
    if not user_agent:
        return ParsedUserAgent(device="desktop")

    ua = parse(user_agent)
    return ParsedUserAgent(
        os=_family(ua.os.family),
        browser=_family(ua.browser.family),
        device=classify_device(user_agent, is_tablet=ua.is_tablet, is_mobile=ua.is_mobile),
    )
