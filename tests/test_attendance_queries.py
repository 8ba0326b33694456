from __future__ import annotations

from datetime import datetime

import pytest

from ems.models.attendance import Attendance, AttendanceStatus
from ems.models.user import UserRole


async def add_record(user, day: int, hour: int = 9, minute: int = 0, worked: float = 8.0, **fields):
    clock_in = datetime(2026, 1, day, hour, minute)
    defaults = dict(
        employee=user.id,
        employee_name=user.full_name,
        department=user.department,
        date=datetime(2026, 1, day),
        clock_in=clock_in,
        status=AttendanceStatus.CLOCKED_OUT,
    )
    defaults.update(fields)
    record = Attendance(**defaults)
    if record.clock_in is not None and "clock_out" not in fields:
        record.clock_out = datetime(2026, 1, day, hour + int(worked), minute)
    await record.insert()
    return record


@pytest.fixture
async def team(make_user):
    manager = await make_user(UserRole.MANAGER, department="Engineering")
    lead = await make_user(UserRole.TEAM_LEAD, manager=manager.id)
    member = await make_user(manager=manager.id, team_lead=lead.id)
    outsider = await make_user(department="Sales")
    return manager, lead, member, outsider


async def test_stats_for_own_records(client, session, make_user):
    user = session.login(await make_user())
    await add_record(user, 2)
    await add_record(user, 5, minute=30, is_late=True)

    response = await client.get("/api/attendance/stats")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["period"] == "30 days"
    assert data["total_days"] == 2
    assert data["present_days"] == 2
    assert data["late_days"] == 1
    assert data["total_worked_hours"] == 16.0
    assert data["average_work_hours"] == 8.0
    assert data["attendance_rate"] == 100.0
    assert data["punctuality_rate"] == 50.0


async def test_stats_period_excludes_older_records(client, session, make_user):
    user = session.login(await make_user())
    await add_record(user, 2)

    response = await client.get("/api/attendance/stats", params={"period": 1})

    assert response.json()["data"]["total_days"] == 0
    assert response.json()["data"]["attendance_rate"] == 0.0


async def test_employee_cannot_read_someone_else(client, session, team):
    _, _, member, outsider = team
    session.login(outsider)

    response = await client.get("/api/attendance/stats", params={"employee_id": str(member.id)})

    assert response.status_code == 403
    assert response.json()["message"] == "Not authorized to view this employee's attendance"


async def test_manager_reads_direct_report(client, session, team):
    manager, _, member, outsider = team
    await add_record(member, 2)
    session.login(manager)

    allowed = await client.get("/api/attendance/stats", params={"employee_id": str(member.id)})
    denied = await client.get("/api/attendance/stats", params={"employee_id": str(outsider.id)})

    assert allowed.status_code == 200
    assert allowed.json()["data"]["total_days"] == 1
    assert denied.status_code == 403


async def test_hr_reads_anyone(client, session, make_user, team):
    _, _, _, outsider = team
    await add_record(outsider, 2)
    session.login(await make_user(UserRole.HR))

    response = await client.get("/api/attendance/stats", params={"employee_id": str(outsider.id)})

    assert response.status_code == 200
    assert response.json()["data"]["total_days"] == 1


async def test_malformed_employee_id(client, session, make_user):
    session.login(await make_user(UserRole.ADMIN))

    response = await client.get("/api/attendance/stats", params={"employee_id": "not-an-id"})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid employee_id"


async def test_history_derives_missing_status(client, session, make_user):
    user = session.login(await make_user(company="Unconfigured Ltd"))
    await add_record(user, 2, remarks="On time")
    await add_record(user, 3, minute=30, status=None)

    response = await client.get("/api/attendance/history", params={"month": 1, "year": 2026})

    assert response.status_code == 200
    days = response.json()["data"]
    assert [day["date"] for day in days] == ["2026-01-02T00:00:00", "2026-01-03T00:00:00"]
    assert days[0]["status"] == "Clocked Out"
    assert days[0]["remarks"] == "On time"
    assert days[1]["status"] == "Late"
    assert days[1]["total_work_time"] == 8.0


async def test_history_other_month_is_empty(client, session, make_user):
    user = session.login(await make_user())
    await add_record(user, 2)

    response = await client.get("/api/attendance/history", params={"month": 2, "year": 2026})

    assert response.json()["data"] == []


async def test_employee_summary_counts_working_days(client, session, make_user, make_settings):
    await make_settings()
    user = session.login(await make_user())
    await add_record(user, 2)
    await add_record(user, 5, minute=20, is_late=True)

    response = await client.get("/api/attendance/employee-summary", params={"month": 1, "year": 2026})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["employee"]["employee_id"] == user.employee_id
    assert data["month"] == 1
    assert data["year"] == 2026
    summary = data["summary"]
    assert summary["total_days"] == 31
    assert summary["working_days"] == 22
    assert summary["present_days"] == 2
    assert summary["absent_days"] == 20
    assert summary["late_days"] == 1
    assert summary["attendance_rate"] == 9.09
    assert summary["punctuality_rate"] == 50.0
    assert [day["is_late"] for day in data["working_days"]] == [False, True]


async def test_employee_summary_defaults_to_current_month(client, session, make_user):
    user = session.login(await make_user(company="Unconfigured Ltd"))
    await add_record(user, 5)

    data = (await client.get("/api/attendance/employee-summary")).json()["data"]

    assert data["month"] == 1
    assert data["year"] == 2026
    assert data["summary"]["working_days"] == 31


async def test_list_is_scoped_to_caller(client, session, team):
    manager, lead, member, outsider = team
    for user in (manager, lead, member, outsider):
        await add_record(user, 2)

    session.login(outsider)
    own = (await client.get("/api/attendance")).json()
    session.login(manager)
    reports = (await client.get("/api/attendance")).json()

    assert own["total"] == 1
    assert own["data"]["attendance"][0]["employee"]["employee_id"] == outsider.employee_id
    assert reports["total"] == 2
    assert {r["employee"]["employee_id"] for r in reports["data"]["attendance"]} == {
        lead.employee_id,
        member.employee_id,
    }


async def test_list_filters_and_paginates(client, session, make_user):
    admin = session.login(await make_user(UserRole.ADMIN))
    for day in (2, 3, 4, 5):
        await add_record(admin, day)
    await add_record(admin, 6, status=AttendanceStatus.LATE, clock_out=None)

    response = await client.get(
        "/api/attendance",
        params={"start_date": "2026-01-03", "end_date": "2026-01-05", "limit": 2, "page": 2},
    )
    late = await client.get("/api/attendance", params={"status": "Late"})

    body = response.json()
    assert body["total"] == 3
    assert body["count"] == 1
    assert body["pagination"] == {"page": 2, "pages": 2}
    assert body["data"]["attendance"][0]["date"] == "2026-01-03T00:00:00"
    assert late.json()["total"] == 1


async def test_all_requires_supervisor_role(client, session, make_user):
    session.login(await make_user())

    response = await client.get("/api/attendance/all")

    assert response.status_code == 403
    assert response.json()["message"] == "Access denied. Insufficient permissions."


async def test_all_joins_active_employees(client, session, make_user, team):
    manager, lead, member, outsider = team
    inactive = await make_user(is_active=False)
    for user in (manager, lead, member, outsider, inactive):
        await add_record(user, 5)
    session.login(await make_user(UserRole.ADMIN))

    body = (await client.get("/api/attendance/all")).json()

    assert body["total"] == 4
    assert body["pages"] == 1
    names = [row["employee"]["first_name"] for row in body["data"]]
    assert names == sorted(names)
    assert inactive.employee_id not in {row["employee"]["employee_id"] for row in body["data"]}


async def test_all_for_team_lead_is_own_team(client, session, team):
    manager, lead, member, outsider = team
    for user in (manager, lead, member, outsider):
        await add_record(user, 5)
    session.login(lead)

    body = (await client.get("/api/attendance/all")).json()

    assert {row["employee"]["employee_id"] for row in body["data"]} == {
        lead.employee_id,
        member.employee_id,
    }


async def test_all_filters_by_department_and_presence(client, session, make_user, team):
    manager, lead, member, outsider = team
    await add_record(member, 5)
    await add_record(outsider, 5)
    await add_record(lead, 5, clock_in=None, status=AttendanceStatus.ABSENT)
    session.login(await make_user(UserRole.ADMIN))

    sales = (await client.get("/api/attendance/all", params={"department": "Sales"})).json()
    absent = (await client.get("/api/attendance/all", params={"status": "absent"})).json()
    invalid = await client.get("/api/attendance/all", params={"status": "late"})

    assert [row["employee"]["employee_id"] for row in sales["data"]] == [outsider.employee_id]
    assert [row["employee"]["employee_id"] for row in absent["data"]] == [lead.employee_id]
    assert invalid.status_code == 400
