"""
Notification Routes
User-specific alerts and read-tracking
"""
from fastapi import APIRouter, HTTPException, Depends, Query
from datetime import datetime

from ems.models.notification import Notification
from ems.models.user import User
from ems.api.routes.auth import get_current_user
from ems.services.access import parse_object_id

router = APIRouter()


@router.get("")
async def get_my_notifications(
    current_user: User = Depends(get_current_user),
    unread_only: bool = False,
    limit: int = Query(20, ge=1, le=100)
):
    """Get notifications for current user"""
    query = {"recipient": current_user.id}
    if unread_only:
        query["is_read"] = False

    notifications = await Notification.find(query).sort("-created_at").limit(limit).to_list()
    unread = await Notification.find(
        Notification.recipient == current_user.id,
        Notification.is_read == False
    ).count()

    return {
        "success": True,
        "data": {"notifications": notifications, "unread_count": unread}
    }


@router.put("/read-all")
async def mark_all_as_read(
    current_user: User = Depends(get_current_user)
):
    """Mark all notifications as read"""
    await Notification.find(
        Notification.recipient == current_user.id,
        Notification.is_read == False
    ).update({"$set": {"is_read": True, "read_at": datetime.utcnow()}})

    return {"success": True, "message": "All notifications marked as read"}


@router.put("/{notification_id}/read")
async def mark_as_read(
    notification_id: str,
    current_user: User = Depends(get_current_user)
):
    """Mark a notification as read"""
    notif = await Notification.get(parse_object_id(notification_id, "notification id"))
    if not notif or notif.recipient != current_user.id:
        raise HTTPException(status_code=404, detail="Notification not found")

    notif.is_read = True
    notif.read_at = datetime.utcnow()
    await notif.save()
    return {"success": True, "message": "Notification marked as read"}
