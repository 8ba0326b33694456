"""
Role-based scoping of attendance reads
"""
from typing import List, Optional

from beanie import PydanticObjectId
from bson import ObjectId
from fastapi import HTTPException, status

from ems.models.user import ORGANIZATION_WIDE_ROLES, User, UserRole


def parse_object_id(value: str, field: str = "employee_id") -> PydanticObjectId:
    if not ObjectId.is_valid(value):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {field}"
        )
    return PydanticObjectId(value)


def supervises(supervisor: User, employee: User) -> bool:
    """Whether ``supervisor`` is the direct manager or team lead of ``employee``"""
    if supervisor.role == UserRole.MANAGER:
        return employee.manager == supervisor.id
    if supervisor.role == UserRole.TEAM_LEAD:
        return employee.team_lead == supervisor.id
    return False


async def team_member_ids(supervisor: User) -> List[PydanticObjectId]:
    if supervisor.role == UserRole.MANAGER:
        members = await User.find(User.manager == supervisor.id).to_list()
    elif supervisor.role == UserRole.TEAM_LEAD:
        members = await User.find(User.team_lead == supervisor.id).to_list()
    else:
        members = []
    return [member.id for member in members]


async def resolve_target_employee(current: User, employee_id: Optional[str]) -> PydanticObjectId:
    """
    Pick whose attendance a single-employee query reads.

    Without ``employee_id`` it is the caller. Admin and HR may read anyone,
    managers and team leads their own reports, everybody else only themselves.
    """
    if not employee_id:
        return current.id

    target_id = parse_object_id(employee_id)
    if target_id == current.id or current.role in ORGANIZATION_WIDE_ROLES:
        return target_id

    employee = await User.get(target_id)
    if employee is None or not supervises(current, employee):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to view this employee's attendance"
        )
    return target_id


async def attendance_scope(current: User, employee_id: Optional[str]) -> dict:
    """Mongo filter on ``employee`` for listing attendance records"""
    if employee_id:
        return {"employee": await resolve_target_employee(current, employee_id)}

    if current.role in ORGANIZATION_WIDE_ROLES:
        return {}
    if current.role in (UserRole.MANAGER, UserRole.TEAM_LEAD):
        return {"employee": {"$in": await team_member_ids(current)}}
    return {"employee": current.id}
