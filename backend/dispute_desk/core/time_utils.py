from datetime import datetime
from typing import Optional, Union
import pytz

UTC = pytz.utc

# Pinned short month names; month buckets must not follow the process locale.
MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

def get_utc_now() -> datetime:
    """Get current time in UTC."""
    return datetime.now(UTC)

def to_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert a datetime object to UTC, assuming UTC if naive."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return UTC.localize(dt)
    return dt.astimezone(UTC)

def parse_timestamp(value: Union[datetime, str, None]) -> Optional[datetime]:
    """
    Lenient timestamp coercion for values coming out of the document store.
    Returns None for missing or unparsable input instead of raising.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return to_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None

def month_label(dt: datetime) -> str:
    return MONTH_ABBREVIATIONS[dt.month - 1]
