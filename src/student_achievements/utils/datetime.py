"""Date-time helpers shared by both stores."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC time as a naive timestamp.

    Both stores persist naive UTC values, so comparisons across them stay
    consistent.
    """

    return datetime.now(timezone.utc).replace(tzinfo=None)
