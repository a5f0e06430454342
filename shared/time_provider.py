from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

TIMEZONE = "America/Argentina/Buenos_Aires"
DATE_FORMAT = "%Y-%m-%d"


class TimeProvider:
    """Centralised helpers to turn POSIX timestamps into market-local values."""

    _zone = ZoneInfo(TIMEZONE)

    @classmethod
    def timezone(cls) -> ZoneInfo:
        """Return the zoneinfo instance used for calendar decisions."""
        return cls._zone

    @classmethod
    def moment(cls, ts: float) -> datetime:
        """Return ``ts`` as an aware datetime in the configured timezone."""
        return datetime.fromtimestamp(float(ts), tz=cls._zone)

    @classmethod
    def day(cls, ts: float) -> str:
        """Return the calendar day (``YYYY-MM-DD``) that contains ``ts``."""
        return cls.moment(ts).strftime(DATE_FORMAT)

    @classmethod
    def isoformat(cls, ts: Optional[float | int]) -> Optional[str]:
        """Format ``ts`` as ISO-8601 with offset.

        Missing or non-positive values yield ``None`` so callers can serialise
        optional timestamps directly.
        """

        if ts is None:
            return None
        try:
            raw = float(ts)
        except (TypeError, ValueError):
            return None
        if raw <= 0:
            return None
        try:
            return cls.moment(raw).isoformat(timespec="seconds")
        except (OverflowError, OSError, ValueError):
            return None

    @classmethod
    def seconds_until_tomorrow(cls, ts: float, *, minimum: int = 60) -> int:
        """Seconds left until the next local midnight, never below ``minimum``."""

        now = cls.moment(ts)
        midnight = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
        return max(int(minimum), int(midnight.timestamp() - float(ts)))


__all__ = ["TIMEZONE", "DATE_FORMAT", "TimeProvider"]
