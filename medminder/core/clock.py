from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo


#------This Class reads the wall-clock time of the household---------
class SystemClock:

    def __init__(self, timezone: str = "UTC"):
        self._zone = ZoneInfo(timezone)

    def now(self) -> datetime:
        # naive wall-clock, matches how records are stored
        return datetime.now(self._zone).replace(tzinfo=None)

    def today(self) -> date:
        return self.now().date()


#------This Class returns a frozen time that can be moved by hand---------
class FixedClock:

    def __init__(self, now: datetime):
        self._now = now

    def now(self) -> datetime:
        return self._now

    def today(self) -> date:
        return self._now.date()

    def set(self, now: datetime) -> None:
        self._now = now

    def advance(self, delta: Optional[timedelta] = None, **kwargs) -> datetime:
        self._now = self._now + (delta if delta is not None else timedelta(**kwargs))
        return self._now


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


#------This Function converts an aware datetime to naive wall-clock time---------
def to_wall_clock(value: Optional[datetime], timezone: str = "UTC") -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(ZoneInfo(timezone)).replace(tzinfo=None)
