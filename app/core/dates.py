from datetime import date, datetime, timezone
from typing import Any, Optional


def parse_date(value: Any) -> Optional[date]:
    """Date part of a store value ("2024-05-01", a timestamp string, or a date)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Aware datetime from a store timestamp; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            # Postgres may send fractional seconds Python cannot read; drop them
            parsed = datetime.fromisoformat(text[:19])
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
