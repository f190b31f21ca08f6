"""Compact duration strings (``10m``, ``1h``, ``7d``) to milliseconds and back."""

import re

from aegis.util.errors import ParseError

DURATION_PATTERN = re.compile(r"(?P<magnitude>[0-9]+)(?P<unit>[smhd])")

UNIT_MS = {
    "s": 1000,
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
}

UNIT_NAMES = (
    (UNIT_MS["d"], "day"),
    (UNIT_MS["h"], "hour"),
    (UNIT_MS["m"], "minute"),
    (UNIT_MS["s"], "second"),
)

# Longest timeout the platform accepts
MAX_TIMEOUT_MS = 28 * UNIT_MS["d"]


def parse_duration(text: str) -> int:
    """
    Convert a compact duration string to milliseconds.

    The accepted grammar is a positive integer immediately followed by exactly
    one unit character: ``s`` (seconds), ``m`` (minutes), ``h`` (hours) or
    ``d`` (days). Composite values such as ``1h30m``, whitespace, signs and a
    zero magnitude are rejected.

    Args:
        text: The duration string, e.g. ``"10m"``.

    Returns:
        int: The duration in milliseconds.

    Raises:
        ParseError: If ``text`` does not match the grammar.
    """
    if not isinstance(text, str):
        raise ParseError(f"Invalid duration: {text!r}")

    match = DURATION_PATTERN.fullmatch(text)
    if match is None:
        raise ParseError(f"Invalid duration: {text!r}")

    magnitude = int(match.group("magnitude"))
    if magnitude <= 0:
        raise ParseError(f"Duration must be positive: {text!r}")

    return magnitude * UNIT_MS[match.group("unit")]


def format_duration(duration_ms: int) -> str:
    """
    Render milliseconds as a human-readable label such as ``"5 minutes"``.

    The largest unit that divides the value evenly is used, so 90 minutes is
    rendered as ``"90 minutes"`` rather than a rounded hour count.
    """
    if duration_ms <= 0:
        return "0 seconds"

    for unit_ms, name in UNIT_NAMES:
        if duration_ms % unit_ms == 0:
            amount = duration_ms // unit_ms
            return f"{amount} {name}{'s' if amount != 1 else ''}"

    return f"{duration_ms} ms"
