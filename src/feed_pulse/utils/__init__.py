# ABOUTME: Utility helpers shared across feed_pulse modules.
# ABOUTME: Currently provides poll interval parsing and formatting.

from feed_pulse.utils.duration import InvalidDurationError, format_duration, parse_duration

__all__ = ["InvalidDurationError", "format_duration", "parse_duration"]
