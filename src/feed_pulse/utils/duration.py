# ABOUTME: Parsing of human-readable poll intervals such as "90s" or "2h".
# ABOUTME: Converts a single <digits><unit> token to milliseconds and back.

import re

DURATION_PATTERN = re.compile(r"([0-9]+)(ms|s|m|h)")

UNIT_MILLISECONDS = {
    "ms": 1,
    "s": 1000,
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
}


class InvalidDurationError(ValueError):
    """Raised when a duration string does not match <digits><unit>."""

    def __init__(self, text: str) -> None:
        self.text = text
        super().__init__(
            f"invalid duration {text!r}: expected <integer><unit> with unit one of ms, s, m, h"
        )


def parse_duration(text: str) -> int:
    """Parse a duration like "500ms", "90s", "5m" or "2h" into milliseconds.

    Exactly one unit is allowed and matching is case-sensitive, so "1h30m",
    "1.5s", "-5s", "10" and "h" are all rejected.

    Args:
        text: The duration string.

    Returns:
        The duration in milliseconds.

    Raises:
        InvalidDurationError: If the string does not match the grammar.
    """
    match = DURATION_PATTERN.fullmatch(text)
    if match is None:
        raise InvalidDurationError(text)

    value, unit = match.groups()
    return int(value) * UNIT_MILLISECONDS[unit]


def format_duration(milliseconds: int) -> str:
    """Render milliseconds as a compact string, e.g. 90000 -> "1m30s"."""
    if milliseconds < 1000:
        return f"{milliseconds}ms"

    hours, rest = divmod(milliseconds, UNIT_MILLISECONDS["h"])
    minutes, rest = divmod(rest, UNIT_MILLISECONDS["m"])
    seconds, millis = divmod(rest, UNIT_MILLISECONDS["s"])

    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if seconds:
        parts.append(f"{seconds}s")
    if millis:
        parts.append(f"{millis}ms")
    return "".join(parts)
