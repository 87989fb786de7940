"""Time source injected into the rate cache and quote engine."""

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Default clock: timezone-aware UTC now."""
    return datetime.now(timezone.utc)
