"""
Timestamp helpers shared by the entity models, stores and routes.
All timestamps are kept timezone-aware in UTC and serialized as ISO-8601.
"""

from datetime import datetime, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_dt(val: Any) -> Optional[datetime]:
    """
    Safely parse an ISO-8601 or datetime-local string to an aware datetime.

    Naive values are taken to be UTC so they can be compared with stored
    event dates.

    Args:
        val: A string, a datetime, or None.

    Returns:
        datetime: The parsed datetime, or None if missing or invalid.
    """
    if not val:
        return None
    if isinstance(val, datetime):
        parsed = val
    else:
        try:
            # Handles 'YYYY-MM-DD', 'YYYY-MM-DDTHH:MM' and '...Z' or '...+00:00'
            text = str(val).strip()
            if text.endswith('Z'):
                text = text[:-1] + '+00:00'
            parsed = datetime.fromisoformat(text)
        except (ValueError, TypeError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_iso(val: Optional[datetime]) -> Optional[str]:
    """Render a datetime the way snapshots and JSON responses expect it."""
    if val is None:
        return None
    return val.isoformat()


def require_dt(val: Any, field: str) -> datetime:
    """Parse a stored timestamp, raising ValueError when it is unusable."""
    parsed = parse_dt(val)
    if parsed is None:
        raise ValueError(f"{field} is not a valid ISO-8601 timestamp: {val!r}")
    return parsed
