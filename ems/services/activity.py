"""
Best-effort side effects of user actions: audit log entries and in-app
notifications. Failures are logged and swallowed so they never undo or block
the action that triggered them.
"""
from typing import Optional

import structlog
from beanie import PydanticObjectId
from fastapi import Request

from ems.models.log import ActivityLog, LogCategory
from ems.models.notification import Notification, NotificationPriority, NotificationType

logger = structlog.get_logger(__name__)


def client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None or request.client is None:
        return None
    return request.client.host


async def record_activity(
    user_id: Optional[PydanticObjectId],
    action: str,
    category: LogCategory,
    details: str,
    request: Optional[Request] = None,
    success: bool = True,
    error_message: Optional[str] = None,
) -> Optional[ActivityLog]:
    """Write an audit log entry"""
    try:
        entry = ActivityLog(
            user=user_id,
            action=action,
            category=category,
            details=details,
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent") if request is not None else None,
            success=success,
            error_message=error_message,
        )
        await entry.insert()
        return entry
    except Exception as e:
        logger.warning("activity_log_failed", action=action, user=str(user_id), error=str(e))
        return None


async def notify(
    recipient: PydanticObjectId,
    title: str,
    message: str,
    type: NotificationType = NotificationType.INFO,
    priority: NotificationPriority = NotificationPriority.MEDIUM,
    action_url: Optional[str] = None,
    sender: Optional[PydanticObjectId] = None,
) -> Optional[Notification]:
    """Create an in-app notification"""
    try:
        notif = Notification(
            recipient=recipient,
            sender=sender,
            title=title,
            message=message,
            type=type,
            priority=priority,
            action_url=action_url,
        )
        await notif.insert()
        return notif
    except Exception as e:
        logger.warning("notification_failed", title=title, recipient=str(recipient), error=str(e))
        return None
