"""Time utilities and lease sentinels."""

from datetime import datetime, timezone

# lease_until of a task that has never been claimed
NEVER_LEASED = datetime(2000, 1, 1, tzinfo=timezone.utc)

# Far-future lease markers. Both sit far outside any lease window.
POISONED_UNTIL = datetime(2998, 5, 5, tzinfo=timezone.utc)
SUSPENDED_UNTIL = datetime(2999, 5, 5, tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)
