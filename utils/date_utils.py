"""Utility functions for date and timestamp handling."""

import re
from datetime import date, datetime, timezone

from utils.logging import logger


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime, truncated to milliseconds.

    Millisecond precision is what the server API carries, so local timestamps
    survive a round trip through it unchanged.
    """
    now = datetime.now(tz=timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def parse_date(date_str: str) -> date:
    """Parse a date string in one of the supported formats.

    Supported formats:
    - YYYY-MM-DD, YYYY/MM/DD, YYYY.MM.DD
    - DD-MM-YYYY, DD/MM/YYYY, DD.MM.YYYY
    - "today"

    Args:
        date_str: Date string in one of the supported formats

    Returns:
        The parsed calendar date

    Raises:
        ValueError: If date string format is not recognized or is invalid
    """
    logger.debug(f"Parsing date string: '{date_str}'")

    date_str = date_str.strip()
    if date_str.lower() == "today":
        return date.today()

    # Replace all delimiters with hyphen for consistency in regex matching
    normalized = re.sub(r"[/.]", "-", date_str)

    if re.match(r"^(\d{4})-(\d{1,2})-(\d{1,2})$", normalized):
        year, month, day = map(int, normalized.split("-"))
    elif re.match(r"^(\d{1,2})-(\d{1,2})-(\d{4})$", normalized):
        day, month, year = map(int, normalized.split("-"))
    else:
        logger.warning(f"Unrecognized date format: '{date_str}'")
        raise ValueError(
            f"Date format not recognized: {date_str}. Use YYYY-MM-DD or DD-MM-YYYY with delimiter -, / or ."
        )

    try:
        parsed = date(year, month, day)
    except ValueError as e:
        logger.warning(f"Invalid date components in '{date_str}': {e}")
        raise ValueError(f"Invalid date: {date_str}") from e

    logger.debug(f"Successfully parsed date: '{date_str}' -> '{parsed.isoformat()}'")
    return parsed


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive values are assumed to be UTC. A trailing 'Z' is accepted, as sent by
    JavaScript's Date.toISOString().
    """
    if isinstance(value, datetime):
        parsed = value
    elif not isinstance(value, str):
        raise TypeError(f"Expected an ISO-8601 string, got {type(value).__name__}")
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with millisecond precision and 'Z' suffix."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"
