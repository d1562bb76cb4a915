"""
Duration mini-language shared by configuration and commands.

A duration string is one or more ``<integer><unit>`` tokens with no required
separator, where the unit is one of ``s``, ``m``, ``h`` or ``d``. ``"1h30m"``
and ``"1h 30m"`` both mean 5400 seconds.
"""

from __future__ import annotations

import re
from typing import Optional

_TOKEN_PATTERN = re.compile(r"(\d+)([smhd])")

UNIT_SECONDS = {
    "d": 86400,
    "h": 3600,
    "m": 60,
    "s": 1,
}


def parse_duration(value: str | None) -> Optional[int]:
    """Parse a duration string into a number of seconds.

    Every matching token contributes to the total; text between tokens is
    ignored. Returns ``None`` when no token matches, which callers treat as
    an invalid duration.

    >>> parse_duration("1h30m")
    5400
    >>> parse_duration("abc") is None
    True
    """
    if not value:
        return None

    matches = _TOKEN_PATTERN.findall(value)
    if not matches:
        return None

    return sum(int(amount) * UNIT_SECONDS[unit] for amount, unit in matches)


def format_duration(seconds: int) -> str:
    """Format a number of seconds as space-separated ``d/h/m/s`` components.

    Only non-zero components are emitted, largest unit first. Zero formats
    as ``"0s"``.

    >>> format_duration(3900)
    '1h 5m'
    """
    remaining = max(0, int(seconds))
    parts: list[str] = []

    for unit, size in UNIT_SECONDS.items():
        count, remaining = divmod(remaining, size)
        if count:
            parts.append(f"{count}{unit}")

    return " ".join(parts) or "0s"
