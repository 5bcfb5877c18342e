from datetime import UTC, datetime


def utc_now() -> datetime:
    """Current time in UTC, timezone-aware."""
    return datetime.now(UTC)
