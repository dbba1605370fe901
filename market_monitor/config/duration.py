"""Duration parsing for the poll interval settings."""

import re


class DurationParseError(ValueError):
    """Raised when a duration string cannot be parsed or is out of range."""


_ISO_PATTERN = re.compile(r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?)?$")
_HUMAN_PATTERN = re.compile(r"(\d+)\s*([smhd])")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: str) -> int:
    """
    Parse a duration string to seconds.

    Accepts human-readable values (``"30s"``, ``"5m"``, ``"1h30m"``) and
    ISO-8601 durations (``"PT5M"``, ``"P1D"``).

    Raises:
        DurationParseError: If the string is empty, malformed or zero

    Examples:
        >>> parse_duration("5m")
        300
        >>> parse_duration("PT1H")
        3600
    """
    value = value.strip()
    if not value:
        raise DurationParseError("Duration string cannot be empty")
    if value.upper().startswith("P"):
        return _parse_iso8601(value)
    return _parse_human(value)


def _parse_iso8601(value: str) -> int:
    match = _ISO_PATTERN.match(value.upper())
    if not match:
        raise DurationParseError(
            f"Invalid ISO-8601 duration format: '{value}'. "
            "Expected format like 'PT5M', 'PT1H30M' or 'PT30S'"
        )

    days, hours, minutes, seconds = match.groups()
    total = (
        int(days or 0) * 86400
        + int(hours or 0) * 3600
        + int(minutes or 0) * 60
        + int(float(seconds or 0))
    )
    if total == 0:
        raise DurationParseError(f"Duration cannot be zero: '{value}'")
    return total


def _parse_human(value: str) -> int:
    lowered = value.lower()
    matches = _HUMAN_PATTERN.findall(lowered)
    if not matches:
        raise DurationParseError(
            f"Invalid duration format: '{value}'. "
            "Expected format like '30s', '5m', '1h' or combinations like '1h30m'"
        )

    # every character must belong to a number+unit pair
    if "".join(f"{num}{unit}" for num, unit in matches) != re.sub(r"\s+", "", lowered):
        raise DurationParseError(
            f"Invalid characters in duration: '{value}'. "
            "Use only digits and units: s (seconds), m (minutes), h (hours), d (days)"
        )

    total = sum(int(num) * _UNIT_SECONDS[unit] for num, unit in matches)
    if total == 0:
        raise DurationParseError(f"Duration cannot be zero: '{value}'")
    return total


def validate_duration_range(seconds: int, min_seconds: int = 30, max_seconds: int = 86400) -> None:
    """
    Check that ``seconds`` lies within ``[min_seconds, max_seconds]``.

    Raises:
        DurationParseError: If the duration is outside the range
    """
    if seconds < min_seconds:
        raise DurationParseError(
            f"Poll interval too short: {humanize_seconds(seconds)}. "
            f"Minimum is {humanize_seconds(min_seconds)}."
        )
    if seconds > max_seconds:
        raise DurationParseError(
            f"Poll interval too long: {humanize_seconds(seconds)}. "
            f"Maximum is {humanize_seconds(max_seconds)}."
        )


def humanize_seconds(seconds: int) -> str:
    """``300`` -> ``"5 minutes"``; rounds down to the largest whole unit."""
    for size, unit in ((86400, "day"), (3600, "hour"), (60, "minute")):
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'' if count == 1 else 's'}"
    return f"{seconds} second{'' if seconds == 1 else 's'}"
