"""
Activity Log Model
Audit trail of user actions, expired automatically after 90 days
"""
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import Field
from beanie import Document, PydanticObjectId
from pymongo import ASCENDING, DESCENDING, IndexModel

LOG_RETENTION_SECONDS = 90 * 24 * 60 * 60


class LogCategory(str, Enum):
    AUTHENTICATION = "Authentication"
    ATTENDANCE = "Attendance"
    ADMIN = "Admin"
    SYSTEM = "System"


class ActivityLog(Document):
    user: Optional[PydanticObjectId] = None  # empty for failed logins of unknown users
    action: str
    category: LogCategory
    details: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    success: bool = True
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "logs"
        indexes = [
            IndexModel([("user", ASCENDING), ("created_at", DESCENDING)], name="user_recent"),
            IndexModel([("category", ASCENDING), ("created_at", DESCENDING)], name="category_recent"),
            IndexModel(
                [("created_at", ASCENDING)],
                expireAfterSeconds=LOG_RETENTION_SECONDS,
                name="created_at_ttl",
            ),
        ]
