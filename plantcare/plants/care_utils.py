"""Care input utilities: normalize frequencies, dates and free text."""

import math
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

from plantcare.core.exceptions import BadRequestException


def parse_frequency_to_days(frequency_str: str) -> int:
    """
    Parse a frequency string like "every 2 days" or "twice a week" to integer days.

    Examples:
        "every 2 days" -> 2
        "every 3-4 days" -> 3 (use lower bound)
        "twice a week" -> 3
        "once a week" -> 7
        "weekly" -> 7
        "daily" -> 1
        "every other day" -> 2
    """
    freq = frequency_str.lower().strip()
    freq = freq.replace("-", " - ").replace("_", " ")
    freq = re.sub(r"\s+", " ", freq).strip()

    if freq in ["daily", "every day"]:
        return 1
    if freq in ["every other day", "alternate days"]:
        return 2
    if freq in ["weekly", "once a week", "once weekly"]:
        return 7
    if freq in ["twice a week", "twice weekly", "2x per week", "two times a week"]:
        return 3
    if freq in ["biweekly", "fortnightly", "every two weeks"]:
        return 14
    if freq in ["monthly", "once a month"]:
        return 30

    match = re.search(r"(\d+)(?:\s*-\s*\d+)?\s*weeks?", freq)
    if match:
        return int(match.group(1)) * 7

    match = re.search(r"(\d+)(?:\s*-\s*\d+)?\s*months?", freq)
    if match:
        return int(match.group(1)) * 30

    # "every X days", "X days", or just a number
    match = re.search(r"(\d+)", freq)
    if match:
        return int(match.group(1))

    raise BadRequestException(f"Unrecognized watering frequency: {frequency_str!r}")


# Ten years; keeps date arithmetic on the schedule far from datetime limits.
MAX_FREQUENCY_DAYS = 3650


def coerce_frequency(value: Union[int, float, str, None]) -> int:
    """Coerce a watering frequency to whole days, clamped to 1..MAX_FREQUENCY_DAYS."""
    if value is None:
        raise BadRequestException("Watering frequency is required")
    if isinstance(value, bool):
        raise BadRequestException("Invalid watering frequency")
    if isinstance(value, float) and not math.isfinite(value):
        raise BadRequestException("Invalid watering frequency")
    if isinstance(value, (int, float)):
        days = int(round(value))
    else:
        days = parse_frequency_to_days(str(value))
    return min(MAX_FREQUENCY_DAYS, max(1, days))


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_storage_precision(value: datetime) -> datetime:
    """Drop sub-millisecond digits; BSON dates keep milliseconds only."""
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


# Latest watering date whose next-water date still fits in a datetime.
LATEST_INSTANT = datetime.max.replace(tzinfo=timezone.utc) - timedelta(days=MAX_FREQUENCY_DAYS + 1)


def coerce_instant(value: Union[datetime, date, str, None], default: Optional[datetime] = None) -> datetime:
    """
    Normalize a watering date to an aware UTC datetime.

    Accepts datetimes, plain dates (midnight UTC) and ISO-8601 strings.
    ``None`` yields ``default``.
    """
    if value is None:
        if default is None:
            raise BadRequestException("A date is required")
        value = default

    try:
        if isinstance(value, datetime):
            instant = as_utc(value)
        elif isinstance(value, date):
            instant = datetime.combine(value, time.min, tzinfo=timezone.utc)
        else:
            raw = str(value).strip()
            if raw.endswith("Z"):
                raw = raw[:-1] + "+00:00"
            instant = as_utc(datetime.fromisoformat(raw))
    except (ValueError, OverflowError):
        raise BadRequestException(f"Invalid date: {value!r}")

    if instant > LATEST_INSTANT:
        raise BadRequestException(f"Date out of range: {value!r}")
    return instant


def clean_text(value: Optional[str]) -> Optional[str]:
    """Trim free text; blank becomes None."""
    if value is None:
        return None
    value = value.strip()
    return value or None
