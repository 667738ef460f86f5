"""
Ticket time window
Resolves the minutes / filter=today request parameters into a cutoff
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

FILTER_TODAY = "today"


@dataclass(frozen=True)
class TicketWindow:
    """Tickets created after `since` (UTC); `minutes` is the same window in minutes"""
    minutes: int
    since: datetime
    description: str

    @property
    def since_iso(self) -> str:
        return self.since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    @classmethod
    def last_minutes(cls, minutes: int, now: Optional[datetime] = None) -> "TicketWindow":
        now = now or datetime.now(timezone.utc)
        return cls(
            minutes=minutes,
            since=now - timedelta(minutes=minutes),
            description=f"last {minutes} minutes",
        )

    @classmethod
    def today(cls, now: Optional[datetime] = None) -> "TicketWindow":
        """From local midnight until now"""
        local_now = (now or datetime.now(timezone.utc)).astimezone()
        midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        elapsed = math.ceil((local_now - midnight).total_seconds() / 60)
        return cls(
            minutes=max(elapsed, 1),
            since=midnight.astimezone(timezone.utc),
            description="today's tickets",
        )

    @classmethod
    def from_request(
        cls,
        minutes: Any = None,
        filter_name: Optional[str] = None,
        default_minutes: int = 1440,
        now: Optional[datetime] = None,
    ) -> "TicketWindow":
        """filter=today wins; otherwise a positive integer minutes or the default"""
        if filter_name and filter_name.strip().lower() == FILTER_TODAY:
            return cls.today(now)
        return cls.last_minutes(parse_minutes(minutes, default_minutes), now)


def parse_minutes(value: Any, default: int) -> int:
    """Lenient integer parse; missing, invalid or non-positive -> default"""
    if value is None:
        return default
    try:
        minutes = int(str(value).strip())
    except ValueError:
        return default
    return minutes if minutes > 0 else default
