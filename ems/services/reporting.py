"""
Read-side aggregation over attendance records.

Functions here only read attributes of the records passed in, so they work on
``Attendance`` documents and on plain stand-ins alike.
"""
import calendar
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from ems.models.attendance import AttendanceStats, AttendanceStatus, HistoryEntry
from ems.models.company import AttendanceRules
from ems.models.attendance_rules import StatusResult, default_attendance_status


def _pct(part: float, whole: float) -> float:
    return round(part / whole * 100, 2) if whole > 0 else 0.0


def _avg(total: float, count: int) -> float:
    return round(total / count, 2) if count > 0 else 0.0


def today_flags(attendance) -> dict:
    """Which actions the employee may take next on today's record"""
    current_break = attendance.open_break if attendance is not None else None
    on_break = current_break is not None
    clocked_in = attendance is not None and attendance.clock_in is not None
    clocked_out = attendance is not None and attendance.clock_out is not None
    return {
        "on_break": on_break,
        "current_break": current_break,
        "can_clock_in": not clocked_in,
        "can_clock_out": clocked_in and not clocked_out,
        "can_start_break": clocked_in and not clocked_out and not on_break,
        "can_end_break": on_break,
    }


def attendance_stats(records: Iterable, period_days: int) -> AttendanceStats:
    records = list(records)
    total_days = len(records)
    present_days = sum(1 for r in records if r.status != AttendanceStatus.ABSENT)
    late_days = sum(1 for r in records if r.is_late)
    half_days = sum(1 for r in records if r.is_half_day or r.status == AttendanceStatus.HALF_DAY)
    total_worked = sum(r.total_worked_hours or 0 for r in records)
    total_break = sum(r.total_break_hours or 0 for r in records)

    return AttendanceStats(
        period=f"{period_days} days",
        total_days=total_days,
        present_days=present_days,
        absent_days=total_days - present_days,
        late_days=late_days,
        half_days=half_days,
        total_worked_hours=round(total_worked, 2),
        total_break_time=round(total_break, 2),
        average_work_hours=_avg(total_worked, total_days),
        average_break_time=_avg(total_break, total_days),
        attendance_rate=_pct(present_days, total_days),
        punctuality_rate=_pct(total_days - late_days, total_days),
    )


def derive_status(record, rules: Optional[AttendanceRules]) -> AttendanceStatus:
    """Stored status, or one recomputed for records saved before status was kept"""
    if record.status is not None:
        return record.status
    if record.clock_in is None:
        return AttendanceStatus.ABSENT
    if rules is not None:
        result: StatusResult = rules.calculate_attendance_status(record.clock_in, record.clock_out)
    else:
        result = default_attendance_status(record.clock_in)
    return result.status


def history_entries(records: Iterable, rules: Optional[AttendanceRules]) -> List[HistoryEntry]:
    return [
        HistoryEntry(
            date=record.date,
            clock_in_time=record.clock_in,
            clock_out_time=record.clock_out,
            status=derive_status(record, rules),
            remarks=record.remarks or "",
            total_work_time=record.total_worked_hours or 0,
            total_break_time=record.total_break_hours or 0,
            breaks=record.breaks or [],
        )
        for record in records
    ]


def month_bounds(year: int, month: int):
    """First instant of the month and first instant of the next one"""
    start = datetime(year, month, 1)
    end = start + timedelta(days=calendar.monthrange(year, month)[1])
    return start, end


def working_days_in_month(year: int, month: int, rules: Optional[AttendanceRules]) -> int:
    days = calendar.monthrange(year, month)[1]
    if rules is None:
        return days
    return sum(1 for day in range(1, days + 1) if not rules.is_off_day(datetime(year, month, day)))


def monthly_summary(records: Iterable, year: int, month: int, rules: Optional[AttendanceRules]) -> dict:
    records = sorted(records, key=lambda r: r.date)
    working_days = working_days_in_month(year, month, rules)
    attended = [r for r in records if r.clock_in is not None]
    present_days = len(attended)
    late_days = sum(1 for r in attended if r.is_late)
    total_work = sum(r.total_worked_hours or 0 for r in attended)
    total_break = sum(r.total_break_hours or 0 for r in attended)

    days = [
        {
            "date": r.date,
            "clock_in": r.clock_in,
            "clock_out": r.clock_out,
            "status": derive_status(r, rules),
            "work_hours": r.total_worked_hours or 0,
            "break_time": r.total_break_hours or 0,
            "is_late": bool(r.clock_in and r.is_late),
        }
        for r in records
    ]

    return {
        "month": month,
        "year": year,
        "summary": {
            "total_days": calendar.monthrange(year, month)[1],
            "working_days": working_days,
            "present_days": present_days,
            "absent_days": max(working_days - present_days, 0),
            "late_days": late_days,
            "total_work_hours": round(total_work, 2),
            "total_break_time": round(total_break, 2),
            "attendance_rate": _pct(present_days, working_days),
            "punctuality_rate": _pct(present_days - late_days, present_days),
        },
        "working_days": days,
    }
