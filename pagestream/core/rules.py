# ==============================================================================
# Static Rule Tables
# ==============================================================================
"""
Versioned lookup tables shipped as package data.

- data/bot_tokens.txt: user-agent substrings that mark automated traffic
- data/private_ip_patterns.txt: address patterns that are never geolocated

Tables are plain text (one entry per line, '#' comments) so they can be
reviewed and updated without touching pipeline code.
"""

import re
from functools import lru_cache
from importlib.resources import files

BOT_TOKENS_FILE = "bot_tokens.txt"
PRIVATE_IP_PATTERNS_FILE = "private_ip_patterns.txt"


def _read_table(name: str) -> list[str]:
    """Read a data table, skipping blanks and comments."""
    text = (files("pagestream.core") / "data" / name).read_text(encoding="utf-8")
    entries = []
    for line in text.splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            entries.append(line)
    return entries


@lru_cache
def bot_tokens() -> tuple[str, ...]:
    """Lower-cased bot tokens."""
    return tuple(token.lower() for token in _read_table(BOT_TOKENS_FILE))


@lru_cache
def private_ip_patterns() -> tuple[re.Pattern, ...]:
    """Compiled private/loopback/link-local address patterns."""
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in _read_table(PRIVATE_IP_PATTERNS_FILE))


def is_bot_user_agent(user_agent: str, tokens: tuple[str, ...] | None = None) -> bool:
    """Case-insensitive substring match of the user agent against bot tokens."""
    ua = (user_agent or "").lower()
    return any(token in ua for token in (tokens if tokens is not None else bot_tokens()))


def is_private_ip(ip: str, patterns: tuple[re.Pattern, ...] | None = None) -> bool:
    """True for loopback, private and link-local addresses."""
    return any(p.match(ip) for p in (patterns if patterns is not None else private_ip_patterns()))
