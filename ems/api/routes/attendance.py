"""
Attendance Routes
Handles clock-in/out, breaks, and attendance queries
"""
import math
from fastapi import APIRouter, HTTPException, Depends, Query, Request, status
from typing import List, Optional
from datetime import date, datetime, time, timedelta

import structlog
from beanie.operators import In, Inc
from pymongo.errors import DuplicateKeyError

from ems.config import settings
from ems.models.attendance import (
    Attendance,
    AttendanceStateError,
    AttendanceStatus,
    BreakStartRequest,
    ClockInRequest,
    ClockOutRequest,
)
from ems.models.company import CompanySettings
from ems.models.log import LogCategory
from ems.models.notification import NotificationPriority, NotificationType
from ems.models.user import SUPERVISOR_ROLES, User, UserRole, UserSummary
from ems.api.routes.auth import get_current_user, require_roles
from ems.services.access import attendance_scope, parse_object_id, resolve_target_employee
from ems.services.activity import client_ip, notify, record_activity
from ems.models.attendance_rules import (
    DEFAULT_WORK_START_TIME,
    StatusResult,
    default_attendance_status,
    is_punctual_for_reward,
    minutes_late,
)
from ems.services.clock import Clock, get_clock, start_of_day
from ems.services.organization import active_settings_for, organization_of, timezone_for
from ems.services.reporting import (
    attendance_stats,
    history_entries,
    month_bounds,
    monthly_summary,
    today_flags,
)

router = APIRouter()
logger = structlog.get_logger(__name__)


async def _todays_record(user: User, day: datetime) -> Optional[Attendance]:
    return await Attendance.find_one(Attendance.employee == user.id, Attendance.date == day)


async def _award_points(user: User, points: int) -> None:
    await User.find_one(User.id == user.id).update(Inc({User.reward_points: points}))
    user.reward_points += points


def _day_range(start_date: Optional[date], end_date: Optional[date]) -> dict:
    """Mongo date filter; the end day is included whole"""
    bounds = {}
    if start_date:
        bounds["$gte"] = datetime.combine(start_date, time.min)
    if end_date:
        bounds["$lt"] = datetime.combine(end_date, time.min) + timedelta(days=1)
    return {"date": bounds} if bounds else {}


def _resolve_status(
    company_settings: Optional[CompanySettings], clock_in: datetime, user: User
) -> StatusResult:
    if company_settings is not None:
        return company_settings.calculate_attendance_status(clock_in)
    logger.info("company_settings_missing", company=organization_of(user))
    return default_attendance_status(clock_in)


async def _with_employees(records: List[Attendance]) -> List[dict]:
    """Replace employee ids by a summary of the employee, like a populate"""
    ids = list({record.employee for record in records})
    users = await User.find(In(User.id, ids)).to_list() if ids else []
    by_id = {user.id: UserSummary.from_user(user).model_dump(mode="json") for user in users}

    shaped = []
    for record in records:
        item = record.model_dump(mode="json", by_alias=True)
        item["employee"] = by_id.get(record.employee, {"id": str(record.employee)})
        shaped.append(item)
    return shaped


@router.post("/clockin", status_code=status.HTTP_201_CREATED)
async def clock_in(
    request: Request,
    body: Optional[ClockInRequest] = None,
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    """
    Clock in for today
    """
    company_settings = await active_settings_for(current_user)
    now = clock(timezone_for(company_settings))
    today = start_of_day(now)

    existing = await _todays_record(current_user, today)
    if existing and existing.clock_in:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You have already clocked in today"
        )

    body = body or ClockInRequest()
    location = body.resolve_location()
    if company_settings is not None:
        rules = company_settings.attendance_rules
        if rules.require_location_for_clock_in and location.coordinates is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Location is required to clock in"
            )
        if not rules.allow_remote_work and location.type == "Remote":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Remote clock-in is not allowed for your organization"
            )
        work_start_time = rules.work_start_time
    else:
        work_start_time = DEFAULT_WORK_START_TIME

    result = _resolve_status(company_settings, now, current_user)
    is_late = result.status == AttendanceStatus.LATE

    attendance = existing or Attendance(employee=current_user.id, date=today)
    attendance.employee_name = current_user.full_name
    attendance.department = current_user.department
    attendance.clock_in = now
    attendance.status = result.status
    attendance.arrival_status = result.status
    attendance.remarks = result.remarks
    attendance.is_late = is_late
    attendance.late_by_minutes = minutes_late(now, work_start_time) if is_late else 0
    attendance.location = location
    attendance.notes = body.notes
    attendance.ip_address = client_ip(request)

    try:
        if existing:
            await attendance.save()
        else:
            await attendance.insert()
    except DuplicateKeyError:
        # A concurrent clock-in for the same day won the race
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You have already clocked in today"
        )

    logger.info(
        "clock_in",
        employee=str(current_user.id),
        status=result.status.value,
        remarks=result.remarks,
    )

    if is_punctual_for_reward(now, settings.PUNCTUALITY_CUTOFF_TIME):
        await _award_points(current_user, settings.PUNCTUALITY_REWARD_POINTS)

    await record_activity(
        current_user.id,
        "Clock In",
        LogCategory.ATTENDANCE,
        f"Employee clocked in at {now:%Y-%m-%d %H:%M:%S} ({result.remarks})",
        request=request,
    )
    await notify(
        current_user.id,
        "Clock In Successful",
        f"You clocked in at {now:%H:%M:%S}",
        type=NotificationType.SUCCESS,
        action_url="/attendance",
        sender=current_user.id,
    )
    if is_late and company_settings is not None and company_settings.notifications.late_arrival_alert:
        await notify(
            current_user.id,
            "Late Arrival",
            f"Your clock-in today was recorded as late: {result.remarks}",
            type=NotificationType.WARNING,
            priority=NotificationPriority.HIGH,
            action_url="/attendance",
        )

    return {
        "success": True,
        "message": "Clocked in successfully",
        "data": {"attendance": attendance}
    }


@router.put("/clockout")
async def clock_out(
    request: Request,
    body: Optional[ClockOutRequest] = None,
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    """
    Clock out for today, closing any running break
    """
    company_settings = await active_settings_for(current_user)
    now = clock(timezone_for(company_settings))

    attendance = await _todays_record(current_user, start_of_day(now))
    if attendance is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You need to clock in first"
        )

    try:
        attendance.clock_out_at(now, notes=body.notes if body else None)
    except AttendanceStateError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if company_settings is not None:
        result = company_settings.calculate_attendance_status(attendance.clock_in, now)
        attendance.remarks = result.remarks
        attendance.is_half_day = result.status == AttendanceStatus.HALF_DAY

    await attendance.save()

    logger.info(
        "clock_out",
        employee=str(current_user.id),
        worked_hours=attendance.total_worked_hours,
        half_day=attendance.is_half_day,
    )

    await _award_points(current_user, settings.CLOCK_OUT_REWARD_POINTS)

    await record_activity(
        current_user.id,
        "Clock Out",
        LogCategory.ATTENDANCE,
        f"Employee clocked out at {now:%Y-%m-%d %H:%M:%S}. "
        f"Total worked: {attendance.total_worked_hours:.2f} hours",
        request=request,
    )
    await notify(
        current_user.id,
        "Clock Out Successful",
        f"You clocked out at {now:%H:%M:%S} after {attendance.total_worked_hours:.2f} hours",
        type=NotificationType.SUCCESS,
        action_url="/attendance",
        sender=current_user.id,
    )

    return {
        "success": True,
        "message": "Clocked out successfully",
        "data": {"attendance": attendance}
    }


@router.post("/break/start")
async def start_break(
    request: Request,
    body: Optional[BreakStartRequest] = None,
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    """
    Start a break
    """
    company_settings = await active_settings_for(current_user)
    now = clock(timezone_for(company_settings))

    attendance = await _todays_record(current_user, start_of_day(now))
    if attendance is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You need to clock in first"
        )

    try:
        entry = attendance.start_break(now, body.reason if body else None)
    except AttendanceStateError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    await attendance.save()

    await record_activity(
        current_user.id,
        "Break Started",
        LogCategory.ATTENDANCE,
        f"Employee started break at {now:%Y-%m-%d %H:%M:%S}. Reason: {entry.reason}",
        request=request,
    )
    await notify(
        current_user.id,
        "Break Started",
        f"Your break started at {now:%H:%M:%S}",
        type=NotificationType.ATTENDANCE,
        priority=NotificationPriority.LOW,
        action_url="/attendance",
        sender=current_user.id,
    )

    return {
        "success": True,
        "message": "Break started successfully",
        "data": {"attendance": attendance}
    }


@router.put("/break/end")
async def end_break(
    request: Request,
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    """
    End the running break
    """
    company_settings = await active_settings_for(current_user)
    now = clock(timezone_for(company_settings))

    attendance = await _todays_record(current_user, start_of_day(now))
    if attendance is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You need to clock in first"
        )

    try:
        entry = attendance.end_break(now)
    except AttendanceStateError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    await attendance.save()
    duration = entry.duration_minutes

    await record_activity(
        current_user.id,
        "Break Ended",
        LogCategory.ATTENDANCE,
        f"Employee ended break at {now:%Y-%m-%d %H:%M:%S}. Duration: {duration:.1f} minutes",
        request=request,
    )
    await notify(
        current_user.id,
        "Break Ended",
        f"Welcome back! Your break lasted {duration:.1f} minutes",
        type=NotificationType.ATTENDANCE,
        priority=NotificationPriority.LOW,
        action_url="/attendance",
        sender=current_user.id,
    )

    return {
        "success": True,
        "message": "Break ended successfully",
        "data": {
            "attendance": attendance,
            "break_duration": f"{duration:.1f} minutes"
        }
    }


@router.get("/today")
async def get_today_attendance(
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    """
    Get today's record and the actions currently available
    """
    company_settings = await active_settings_for(current_user)
    now = clock(timezone_for(company_settings))
    attendance = await _todays_record(current_user, start_of_day(now))

    return {
        "success": True,
        "data": {"attendance": attendance, **today_flags(attendance)}
    }


@router.get("/stats")
async def get_attendance_stats(
    employee_id: Optional[str] = None,
    period: int = Query(30, ge=1, le=366),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    """
    Attendance statistics over the last ``period`` days
    """
    target_id = await resolve_target_employee(current_user, employee_id)

    company_settings = await active_settings_for(current_user)
    start = start_of_day(clock(timezone_for(company_settings))) - timedelta(days=period)

    records = await Attendance.find(
        Attendance.employee == target_id,
        Attendance.date >= start
    ).to_list()

    return {
        "success": True,
        "data": attendance_stats(records, period)
    }


@router.get("/history")
async def get_attendance_history(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1970, le=9999),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    """
    Calendar view of the caller's attendance for one month
    """
    company_settings = await active_settings_for(current_user)
    now = clock(timezone_for(company_settings))
    start, end = month_bounds(year or now.year, month or now.month)

    records = await Attendance.find(
        Attendance.employee == current_user.id,
        Attendance.date >= start,
        Attendance.date < end
    ).sort("+date").to_list()

    rules = company_settings.attendance_rules if company_settings else None
    return {
        "success": True,
        "data": history_entries(records, rules)
    }


@router.get("/employee-summary")
async def get_employee_attendance_summary(
    employee_id: Optional[str] = None,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1970, le=9999),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
):
    """
    Monthly attendance summary for one employee
    """
    target_id = await resolve_target_employee(current_user, employee_id)
    employee = current_user if target_id == current_user.id else await User.get(target_id)
    if employee is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Employee not found"
        )

    company_settings = await active_settings_for(employee)
    now = clock(timezone_for(company_settings))
    target_year, target_month = year or now.year, month or now.month
    start, end = month_bounds(target_year, target_month)

    records = await Attendance.find(
        Attendance.employee == target_id,
        Attendance.date >= start,
        Attendance.date < end
    ).to_list()

    rules = company_settings.attendance_rules if company_settings else None
    return {
        "success": True,
        "data": {
            "employee": UserSummary.from_user(employee),
            **monthly_summary(records, target_year, target_month, rules)
        }
    }


@router.get("/all")
async def get_all_attendance(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    employee: Optional[str] = None,
    department: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status", pattern="^(present|absent)$"),
    current_user: User = Depends(require_roles(*SUPERVISOR_ROLES)),
):
    """
    Organization-wide attendance with employee details (Admin/HR/Manager/Team Lead)
    """
    pipeline = [
        {
            "$lookup": {
                "from": "users",
                "localField": "employee",
                "foreignField": "_id",
                "as": "employee_data"
            }
        },
        {"$unwind": "$employee_data"},
        {
            "$match": {
                "employee_data.is_active": True,
                "employee_data.is_approved": True,
                **_day_range(start_date, end_date)
            }
        }
    ]

    # Team leads and managers only see their own people (and themselves)
    if current_user.role == UserRole.TEAM_LEAD:
        pipeline.append({"$match": {"$or": [
            {"employee_data.team_lead": current_user.id},
            {"employee_data._id": current_user.id}
        ]}})
    elif current_user.role == UserRole.MANAGER:
        pipeline.append({"$match": {"$or": [
            {"employee_data.manager": current_user.id},
            {"employee_data._id": current_user.id}
        ]}})

    if employee:
        pipeline.append({"$match": {"employee": parse_object_id(employee, "employee")}})
    if department:
        pipeline.append({"$match": {"employee_data.department": department}})
    if status_filter == "present":
        pipeline.append({"$match": {"clock_in": {"$ne": None}}})
    elif status_filter == "absent":
        pipeline.append({"$match": {"clock_in": None}})

    count_result = await Attendance.aggregate(pipeline + [{"$count": "total"}]).to_list()
    total = count_result[0]["total"] if count_result else 0

    rows = await Attendance.aggregate(pipeline + [
        {"$sort": {"date": -1, "employee_data.first_name": 1}},
        {"$skip": (page - 1) * limit},
        {"$limit": limit}
    ]).to_list()

    records = []
    for row in rows:
        emp = row["employee_data"]
        records.append({
            "id": str(row["_id"]),
            "date": row["date"],
            "clock_in": row.get("clock_in"),
            "clock_out": row.get("clock_out"),
            "breaks": row.get("breaks", []),
            "location": row.get("location"),
            "notes": row.get("notes"),
            "status": row.get("status"),
            "remarks": row.get("remarks", ""),
            "total_worked_hours": row.get("total_worked_hours", 0),
            "total_break_hours": row.get("total_break_hours", 0),
            "employee": {
                "id": str(emp["_id"]),
                "first_name": emp.get("first_name"),
                "last_name": emp.get("last_name"),
                "email": emp.get("email"),
                "employee_id": emp.get("employee_id"),
                "department": emp.get("department"),
                "role": emp.get("role")
            }
        })

    return {
        "success": True,
        "count": len(records),
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit),
        "data": records
    }


@router.get("")
async def get_attendance(
    employee_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status_filter: Optional[AttendanceStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
):
    """
    Attendance records visible to the caller
    """
    query = await attendance_scope(current_user, employee_id)
    query.update(_day_range(start_date, end_date))
    if status_filter:
        query["status"] = status_filter.value

    total = await Attendance.find(query).count()
    records = await Attendance.find(query).sort("-date").skip((page - 1) * limit).limit(limit).to_list()

    return {
        "success": True,
        "count": len(records),
        "total": total,
        "pagination": {
            "page": page,
            "pages": math.ceil(total / limit)
        },
        "data": {"attendance": await _with_employees(records)}
    }
