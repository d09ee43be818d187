"""Lenient date parsing shared by validators, formatters and type inference."""
from datetime import datetime
from typing import Any, Optional

DATE_FORMATS = [
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d",
    "%Y-%m-%d",
    "%d-%b-%Y",
    "%d %b %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%a, %d %b %Y %H:%M:%S %Z",
]


def parse_date(value: Any) -> Optional[datetime]:
    """Parse a date string in ISO 8601 or one of the common formats.

    Returns None when the value is not a string or cannot be parsed.
    """
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        # fromisoformat does not accept a trailing "Z" before Python 3.11
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None
