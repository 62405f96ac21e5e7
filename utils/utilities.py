# utils/utilities.py
from datetime import datetime, timedelta, timezone
import re
import math

# timedelta keyword -> the spellings accepted for it in a duration
DURATION_UNITS = {
    "weeks": ("w", "week"),
    "days": ("d", "day"),
    "hours": ("h", "hr", "hour"),
    "minutes": ("m", "min", "minute"),
    "seconds": ("s", "sec", "second"),
}
_UNIT_KEYWORDS = {alias: keyword for keyword, aliases in DURATION_UNITS.items() for alias in aliases}
_DURATION_PATTERN = re.compile(
    r"(\d+)\s*(" + "|".join(sorted(_UNIT_KEYWORDS, key=len, reverse=True)) + r")s?\b", re.I
)


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching what the store keeps."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_time_remaining(remaining_seconds: float) -> str:
    """Describe a countdown by its two largest units, rounding partial minutes up."""
    days, minutes = divmod(math.ceil(remaining_seconds / 60), 1440)
    hours, minutes = divmod(minutes, 60)

    if days:
        return f"{days} days {hours} hours"
    if hours:
        return f"{hours} hours {minutes} minutes"
    if minutes > 1:
        return f"{minutes} minutes"
    return "less than a minute"


def parse_duration(duration_str: str) -> timedelta:
    """Sum every '<number> <unit>' pair, so '1d 2h 30m' and '2 hours' both work.

    Text that is not a recognised pair is ignored; an empty timedelta means
    nothing was understood.
    """
    parts = {}
    for value, unit in _DURATION_PATTERN.findall(duration_str):
        keyword = _UNIT_KEYWORDS[unit.lower()]
        parts[keyword] = parts.get(keyword, 0) + int(value)
    return timedelta(**parts)
