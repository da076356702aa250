"""
UTC datetime utilities for token expiry and Firestore timestamps.

All datetime values handled by the library are timezone-aware UTC.
"""

from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """
    Return the current UTC datetime with timezone info.

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(UTC)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """
    Ensure a datetime is UTC-aware.

    - If None, returns None
    - If naive, assumes UTC and attaches timezone
    - If aware, converts to UTC

    Used before encoding Firestore timestampValue fields.
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def expires_in(seconds: int | str) -> datetime:
    """Return the UTC instant ``seconds`` from now.

    Identity Toolkit reports ``expiresIn`` as a string of seconds.
    """
    return utc_now() + timedelta(seconds=int(seconds))
