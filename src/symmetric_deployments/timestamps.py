"""ISO-8601 timestamp helpers for symmetric-deployments library."""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as an aware UTC datetime, truncated to milliseconds."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def format_timestamp(value: datetime) -> str:
    """
    Format a datetime the way ledger files store it.

    Args:
        value: Datetime, naive values are taken as UTC

    Returns:
        String like "2025-01-31T12:00:00.123Z"
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a ledger timestamp.

    Accepts the "Z" suffix written by JavaScript tooling as well as
    explicit offsets.

    Args:
        value: ISO-8601 string or None

    Returns:
        Aware UTC datetime, or None when value is None

    Raises:
        ValueError: If the string is not ISO-8601
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"Timestamp must be a string, got {type(value).__name__}")

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
