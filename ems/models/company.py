"""
Company Settings Model
Per-organization attendance, leave and notification policy
"""
import re
from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from pydantic import BaseModel, Field, field_validator, model_validator
from beanie import Document, PydanticObjectId
from pymongo import IndexModel

from ems.models.attendance_rules import (
    StatusResult,
    calculate_status,
    is_within_window,
)


HHMM_PATTERN = re.compile(r"([01]\d|2[0-3]):[0-5]\d")


def _validate_hhmm(value: str) -> str:
    if not HHMM_PATTERN.fullmatch(value):
        raise ValueError("time must be in 24-hour HH:MM format")
    return value


class FlexibleStartRange(BaseModel):
    """Window in which flexible-timing employees may start"""
    earliest: str = "08:00"
    latest: str = "10:00"

    validate_times = field_validator("earliest", "latest")(_validate_hhmm)


class AttendanceRules(BaseModel):
    """Work hours and arrival thresholds"""
    work_start_time: str = "09:00"
    work_end_time: str = "17:00"
    late_threshold_minutes: int = Field(15, ge=0, le=120)
    grace_time_minutes: int = Field(5, ge=0, le=60)
    half_day_threshold_hours: float = Field(4, ge=1, le=8)
    full_day_required_hours: float = Field(8, ge=4, le=12)
    weekly_off_days: List[int] = Field(default_factory=lambda: [0, 6])  # 0=Sunday .. 6=Saturday
    allow_flexible_timing: bool = False
    flexible_start_range: FlexibleStartRange = Field(default_factory=FlexibleStartRange)
    auto_clock_out_time: str = "19:00"
    allow_remote_work: bool = True
    require_location_for_clock_in: bool = False

    validate_times = field_validator(
        "work_start_time", "work_end_time", "auto_clock_out_time"
    )(_validate_hhmm)

    @field_validator("weekly_off_days")
    @classmethod
    def validate_weekdays(cls, days: List[int]) -> List[int]:
        if any(day < 0 or day > 6 for day in days):
            raise ValueError("weekly off days must be between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(days))

    def is_within_work_hours(self, value: str) -> bool:
        """Whether an ``HH:MM`` time falls inside the configured work hours (inclusive)"""
        return is_within_window(value, self.work_start_time, self.work_end_time)

    def calculate_attendance_status(
        self, clock_in: datetime, clock_out: Optional[datetime] = None
    ) -> StatusResult:
        return calculate_status(
            clock_in,
            clock_out,
            work_start_time=self.work_start_time,
            grace_time_minutes=self.grace_time_minutes,
            late_threshold_minutes=self.late_threshold_minutes,
            half_day_threshold_hours=self.half_day_threshold_hours,
        )

    def is_off_day(self, day: datetime) -> bool:
        # Python weekday() is Monday=0; stored values use Sunday=0
        return (day.weekday() + 1) % 7 in self.weekly_off_days


class LeaveRules(BaseModel):
    """Annual leave quotas and application constraints"""
    casual_leave_per_year: int = Field(12, ge=0)
    sick_leave_per_year: int = Field(12, ge=0)
    earned_leave_per_year: int = Field(21, ge=0)
    max_consecutive_days: int = Field(7, ge=1)
    advance_application_days: int = Field(2, ge=0)


class NotificationPreferences(BaseModel):
    """Attendance alert toggles"""
    late_arrival_alert: bool = True
    missed_clock_out_alert: bool = True
    daily_report_time: str = "18:00"

    validate_times = field_validator("daily_report_time")(_validate_hhmm)


class CompanySettings(Document):
    """Attendance and leave policy for one organization"""

    company_name: str
    attendance_rules: AttendanceRules = Field(default_factory=AttendanceRules)
    leave_rules: LeaveRules = Field(default_factory=LeaveRules)
    notifications: NotificationPreferences = Field(default_factory=NotificationPreferences)
    timezone: str = "Asia/Kolkata"
    is_active: bool = True

    # Audit
    created_by: Optional[PydanticObjectId] = None
    updated_by: Optional[PydanticObjectId] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def is_within_work_hours(self, value: str) -> bool:
        return self.attendance_rules.is_within_work_hours(value)

    def calculate_attendance_status(
        self, clock_in: datetime, clock_out: Optional[datetime] = None
    ) -> StatusResult:
        return self.attendance_rules.calculate_attendance_status(clock_in, clock_out)

    class Settings:
        name = "company_settings"
        indexes = [
            IndexModel("company_name", unique=True, name="company_name_unique"),
            "is_active",
        ]

    class Config:
        json_schema_extra = {
            "example": {
                "company_name": "Acme Corp",
                "attendance_rules": {
                    "work_start_time": "09:00",
                    "work_end_time": "17:00",
                    "late_threshold_minutes": 15,
                    "grace_time_minutes": 5
                },
                "timezone": "Asia/Kolkata"
            }
        }


class CompanySettingsUpdate(BaseModel):
    """Fields an admin may set when creating or updating settings"""
    company_name: Optional[str] = None
    attendance_rules: Optional[AttendanceRules] = None
    leave_rules: Optional[LeaveRules] = None
    notifications: Optional[NotificationPreferences] = None
    timezone: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone '{value}'")
        return value


class RuleCheckRequest(BaseModel):
    """What-if evaluation of the attendance rules"""
    clock_in_time: datetime
    clock_out_time: Optional[datetime] = None
    attendance_rules: Optional[AttendanceRules] = None

    @field_validator("clock_in_time", "clock_out_time")
    @classmethod
    def as_wall_clock(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Rules compare naive wall-clock times
        return value.replace(tzinfo=None) if value is not None else value

    @model_validator(mode="after")
    def check_order(self) -> "RuleCheckRequest":
        if self.clock_out_time is not None and self.clock_out_time < self.clock_in_time:
            raise ValueError("clock_out_time must not be earlier than clock_in_time")
        return self
