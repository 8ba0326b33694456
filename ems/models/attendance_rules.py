"""
Attendance status calculation.

Pure functions shared by the company rule set and the fallback used when an
organization has no settings document. Times are naive wall-clock values in
the organization's timezone; nothing here converts between zones.
"""
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Optional

from ems.models.attendance import AttendanceStatus


# Fallback rules for organizations without a CompanySettings document
DEFAULT_WORK_START_TIME = "09:00"
DEFAULT_LATE_THRESHOLD_MINUTES = 15


@dataclass(frozen=True)
class StatusResult:
    status: AttendanceStatus
    remarks: str

    def to_dict(self) -> dict:
        return {"status": self.status.value, "remarks": self.remarks}


def parse_hhmm(value: str) -> time:
    """Parse a 24-hour ``HH:MM`` string"""
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def minutes_of_day(value: str) -> int:
    parsed = parse_hhmm(value)
    return parsed.hour * 60 + parsed.minute


def is_within_window(value: str, start: str, end: str) -> bool:
    """Whether ``value`` lies in ``[start, end]``, compared as minute-of-day"""
    return minutes_of_day(start) <= minutes_of_day(value) <= minutes_of_day(end)


def _at(day: datetime, hhmm: str) -> datetime:
    return datetime.combine(day.date(), parse_hhmm(hhmm))


def _minutes_between(later: datetime, earlier: datetime) -> int:
    return round((later - earlier).total_seconds() / 60)


def calculate_status(
    clock_in: datetime,
    clock_out: Optional[datetime],
    work_start_time: str,
    grace_time_minutes: int,
    late_threshold_minutes: int,
    half_day_threshold_hours: float,
) -> StatusResult:
    """
    Derive the attendance status for a clock-in (and optional clock-out).

    Late and very late arrivals share the ``Late`` status; only the remarks
    tell them apart. A completed day shorter than the half-day threshold is
    reported as ``Half Day`` whatever the arrival band was.
    """
    work_start = _at(clock_in, work_start_time)
    grace_deadline = work_start + timedelta(minutes=grace_time_minutes)
    late_deadline = work_start + timedelta(minutes=late_threshold_minutes)

    if clock_in <= grace_deadline:
        status = AttendanceStatus.PRESENT
        remarks = "On time"
    elif clock_in <= late_deadline:
        status = AttendanceStatus.LATE
        remarks = f"Late by {_minutes_between(clock_in, work_start)} minutes"
    else:
        status = AttendanceStatus.LATE
        remarks = f"Very late by {_minutes_between(clock_in, work_start)} minutes"

    if clock_out is not None:
        worked_hours = (clock_out - clock_in).total_seconds() / 3600
        if worked_hours < half_day_threshold_hours:
            status = AttendanceStatus.HALF_DAY
            remarks += f" - Insufficient hours ({worked_hours:.1f}h)"

    return StatusResult(status=status, remarks=remarks)


def default_attendance_status(clock_in: datetime) -> StatusResult:
    """Status for organizations without configured rules (09:00 start, 15 minutes leeway)"""
    work_start = _at(clock_in, DEFAULT_WORK_START_TIME)
    late_deadline = work_start + timedelta(minutes=DEFAULT_LATE_THRESHOLD_MINUTES)

    if clock_in <= work_start:
        return StatusResult(AttendanceStatus.PRESENT, "On time")
    if clock_in <= late_deadline:
        return StatusResult(AttendanceStatus.PRESENT, "Within grace period")
    return StatusResult(
        AttendanceStatus.LATE,
        f"Late by {_minutes_between(clock_in, work_start)} minutes",
    )


def minutes_late(clock_in: datetime, work_start_time: str) -> int:
    """Minutes between the scheduled start and the clock-in, never negative"""
    return max(0, _minutes_between(clock_in, _at(clock_in, work_start_time)))


def is_punctual_for_reward(clock_in: datetime, cutoff: str) -> bool:
    """Punctuality bonus check; independent of the organization's late rules"""
    return clock_in <= _at(clock_in, cutoff)
