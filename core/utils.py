# core/utils.py

from datetime import date, datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso(dt: datetime) -> str:
    return dt.isoformat()


def append_note(existing: Optional[str], line: str) -> str:
    """
    Append a line to a free-text notes column.
    History is never overwritten; a missing value starts the log.
    """
    return f"{existing or ''}\n{line}"


def to_number(value: Any) -> Optional[float]:
    """
    Coerce payload values that may arrive as strings ("4500", "4500.50")
    into numbers. Blank / unparsable → None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped == "":
            return None
        try:
            return int(stripped) if stripped.lstrip("-").isdigit() else float(stripped)
        except ValueError:
            return None
    return None


def to_bool(value: Any) -> bool:
    """Payload flags arrive either as booleans or as "true"/"false" strings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def parse_date(value: Any) -> Optional[date]:
    """Accepts date, datetime or ISO strings ("2025-01-31", "2025-01-31T10:00:00Z")."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            try:
                return date.fromisoformat(text[:10])
            except ValueError:
                return None
    return None
