"""
Core Utilities.

Shared utility functions used across the client.
All modules should import utilities from this module.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Return current UTC time as a timezone-aware datetime.

    Timestamps received from the notes service are parsed as aware
    datetimes, so locally generated ones must be aware too or the
    two cannot be compared.

    Returns:
        Current UTC time with tzinfo set to UTC
    """
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Attach UTC to a naive datetime, convert an aware one to UTC.

    Args:
        value: Datetime to normalize

    Returns:
        Aware datetime in UTC
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
