"""
User Model
Database schema for employees and their reporting lines
"""
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, EmailStr, Field
from beanie import Document, PydanticObjectId


class UserRole(str, Enum):
    """Organization roles"""
    EMPLOYEE = "Employee"
    TEAM_LEAD = "Team Lead"
    MANAGER = "Manager"
    HR = "HR"
    ADMIN = "Admin"


# Roles that may read attendance of people other than themselves
SUPERVISOR_ROLES = (UserRole.ADMIN, UserRole.HR, UserRole.MANAGER, UserRole.TEAM_LEAD)
ORGANIZATION_WIDE_ROLES = (UserRole.ADMIN, UserRole.HR)


class User(Document):
    """User document model"""

    # Basic Information
    employee_id: str = Field(..., unique=True, index=True)
    first_name: str
    last_name: str
    email: EmailStr = Field(..., unique=True, index=True)

    # Employment Details
    role: UserRole = UserRole.EMPLOYEE
    department: str = "General"
    position: str = ""
    company: Optional[str] = None  # Organization name, matches CompanySettings.company_name

    # Reporting lines
    manager: Optional[PydanticObjectId] = None
    team_lead: Optional[PydanticObjectId] = None

    # Authentication
    password_hash: str = ""
    is_active: bool = True
    is_approved: bool = False

    reward_points: int = 0

    # Metadata
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    last_login: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    class Settings:
        name = "users"
        indexes = [
            "employee_id",
            "email",
            "department",
            "manager",
            "team_lead",
        ]

    class Config:
        json_schema_extra = {
            "example": {
                "employee_id": "EMP20260001",
                "first_name": "John",
                "last_name": "Doe",
                "email": "john.doe@company.com",
                "role": "Employee",
                "department": "Engineering",
                "position": "Senior Developer",
                "company": "Acme Corp"
            }
        }


class UserSummary(BaseModel):
    """Public projection of a user, embedded in attendance responses"""
    id: PydanticObjectId
    employee_id: str
    first_name: str
    last_name: str
    email: EmailStr
    department: str
    role: UserRole

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(
            id=user.id,
            employee_id=user.employee_id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            department=user.department,
            role=user.role,
        )
