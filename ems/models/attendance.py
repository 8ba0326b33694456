"""
Attendance Model
Database schema for daily attendance records and their state transitions
"""
from datetime import datetime
from typing import Optional, List, Union
from pydantic import BaseModel, Field
from beanie import Document, PydanticObjectId, Insert, Replace, Save, SaveChanges, before_event
from pymongo import ASCENDING, DESCENDING, IndexModel
from enum import Enum


class AttendanceStatus(str, Enum):
    """Attendance status"""
    PRESENT = "Present"
    ABSENT = "Absent"
    LATE = "Late"
    HALF_DAY = "Half Day"
    ON_BREAK = "On Break"
    CLOCKED_OUT = "Clocked Out"


class AttendanceStateError(Exception):
    """Raised when a clock/break action is not allowed in the record's current state"""


class Coordinates(BaseModel):
    latitude: float
    longitude: float


class AttendanceLocation(BaseModel):
    """Where the employee clocked in from"""
    type: str = "Office"  # Office, Remote, Field, ...
    coordinates: Optional[Coordinates] = None
    address: Optional[str] = None


class BreakEntry(BaseModel):
    """One break interval; end_time is empty while the break is running"""
    start_time: datetime
    end_time: Optional[datetime] = None
    reason: str = "Break"

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    @property
    def duration_minutes(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds() / 60


class Attendance(Document):
    """Attendance record document, one per employee per calendar day"""

    # Employee Reference
    employee: PydanticObjectId
    employee_name: str = ""
    department: str = ""

    # Day key, midnight of the organization's local calendar day
    date: datetime

    clock_in: Optional[datetime] = None
    clock_out: Optional[datetime] = None
    breaks: List[BreakEntry] = []

    # Status
    status: Optional[AttendanceStatus] = AttendanceStatus.PRESENT
    arrival_status: AttendanceStatus = AttendanceStatus.PRESENT
    remarks: str = ""
    is_late: bool = False
    late_by_minutes: int = 0
    is_half_day: bool = False

    # Calculated Fields (hours)
    total_worked_hours: float = 0.0
    total_break_hours: float = 0.0

    notes: Optional[str] = None
    location: AttendanceLocation = Field(default_factory=AttendanceLocation)
    ip_address: Optional[str] = None

    # Metadata
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "attendance"
        indexes = [
            IndexModel(
                [("employee", ASCENDING), ("date", ASCENDING)],
                unique=True,
                name="employee_date_unique",
            ),
            IndexModel([("date", DESCENDING)], name="date_desc"),
            "status",
        ]

    class Config:
        json_schema_extra = {
            "example": {
                "employee": "65a1f0c2e4b0a1b2c3d4e5f6",
                "employee_name": "John Doe",
                "department": "Engineering",
                "date": "2026-01-05T00:00:00",
                "clock_in": "2026-01-05T09:04:00",
                "status": "Present",
                "remarks": "On time"
            }
        }

    @before_event(Insert, Replace, Save, SaveChanges)
    def update_totals(self):
        """Keep break and worked totals in step with the timestamps"""
        break_seconds = sum(
            (b.end_time - b.start_time).total_seconds()
            for b in self.breaks
            if b.end_time is not None
        )
        self.total_break_hours = round(break_seconds / 3600, 2)
        if self.clock_in and self.clock_out:
            worked_seconds = (self.clock_out - self.clock_in).total_seconds() - break_seconds
            self.total_worked_hours = round(max(worked_seconds, 0) / 3600, 2)
        self.updated_at = datetime.utcnow()

    @property
    def open_break(self) -> Optional[BreakEntry]:
        for entry in reversed(self.breaks):
            if entry.is_open:
                return entry
        return None

    @property
    def is_clocked_in(self) -> bool:
        return self.clock_in is not None

    @property
    def is_clocked_out(self) -> bool:
        return self.clock_out is not None

    def start_break(self, at: datetime, reason: Optional[str] = None) -> BreakEntry:
        if not self.is_clocked_in:
            raise AttendanceStateError("You need to clock in first")
        if self.is_clocked_out:
            raise AttendanceStateError("Cannot start break after clocking out")
        if self.open_break is not None:
            raise AttendanceStateError("You are already on a break")

        entry = BreakEntry(start_time=at, reason=reason or "Break")
        self.breaks.append(entry)
        self.status = AttendanceStatus.ON_BREAK
        return entry

    def end_break(self, at: datetime) -> BreakEntry:
        if not self.is_clocked_in:
            raise AttendanceStateError("You need to clock in first")
        entry = self.open_break
        if entry is None:
            raise AttendanceStateError("You are not currently on a break")

        entry.end_time = at
        self.status = AttendanceStatus.CLOCKED_OUT if self.is_clocked_out else self.arrival_status
        return entry

    def clock_out_at(self, at: datetime, notes: Optional[str] = None) -> None:
        if not self.is_clocked_in:
            raise AttendanceStateError("You need to clock in first")
        if self.is_clocked_out:
            raise AttendanceStateError("You have already clocked out today")

        entry = self.open_break
        if entry is not None:
            entry.end_time = at
        self.clock_out = at
        self.status = AttendanceStatus.CLOCKED_OUT
        if notes:
            self.notes = notes


class GeoLocation(BaseModel):
    """GPS fix sent by the client at clock-in"""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: Optional[str] = None


class ClockInRequest(BaseModel):
    """Schema for clock-in request"""
    location: Optional[Union[GeoLocation, str]] = None
    notes: Optional[str] = None

    def resolve_location(self) -> AttendanceLocation:
        if isinstance(self.location, GeoLocation):
            return AttendanceLocation(
                type="Remote",
                coordinates=Coordinates(
                    latitude=self.location.latitude,
                    longitude=self.location.longitude,
                ),
                address=self.location.address or "GPS Location",
            )
        if isinstance(self.location, str) and self.location.strip():
            return AttendanceLocation(type=self.location.strip())
        return AttendanceLocation()


class ClockOutRequest(BaseModel):
    """Schema for clock-out request"""
    notes: Optional[str] = None


class BreakStartRequest(BaseModel):
    """Schema for break-start request"""
    reason: Optional[str] = None


class AttendanceStats(BaseModel):
    """Rolling-window attendance statistics"""
    period: str
    total_days: int
    present_days: int
    absent_days: int
    late_days: int
    half_days: int
    total_worked_hours: float
    total_break_time: float
    average_work_hours: float
    average_break_time: float
    attendance_rate: float
    punctuality_rate: float


class HistoryEntry(BaseModel):
    """One calendar-view day"""
    date: datetime
    clock_in_time: Optional[datetime] = None
    clock_out_time: Optional[datetime] = None
    status: AttendanceStatus
    remarks: str = ""
    total_work_time: float = 0.0
    total_break_time: float = 0.0
    breaks: List[BreakEntry] = []
