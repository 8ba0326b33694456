"""
Wall-clock access for attendance actions.

Attendance timestamps are stored as naive local times of the organization's
timezone so that rule thresholds (``09:00``, ``09:15``...) compare directly.
"""
from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[str], datetime]


def local_now(timezone: str) -> datetime:
    """Current wall-clock time in ``timezone``, without tzinfo"""
    return datetime.now(ZoneInfo(timezone)).replace(tzinfo=None, microsecond=0)


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def get_clock() -> Clock:
    """FastAPI dependency, overridden in tests to freeze time"""
    return local_now
