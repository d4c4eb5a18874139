"""Notifications API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Any, Dict, List, Optional
from pydantic import Field

from auth import get_current_user
from auth.models import CurrentUser
from database.models import RecordModel
from notifications import (
    NotificationManager, Notification, NotificationNotFoundError,
    RecipientNotFoundError, deliver
)

router = APIRouter(
    prefix="/notifications",
    tags=["Notifications"]
)

class CreateNotificationRequest(RecordModel):
    """Request model for creating a notification."""
    user_id: int
    type: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)
    data: Optional[Dict[str, Any]] = None

def get_notification_manager() -> NotificationManager:
    return NotificationManager()

@router.get("", response_model=List[Notification])
async def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    notifications: NotificationManager = Depends(get_notification_manager)
):
    """Get the current user's notifications, newest first."""
    try:
        return await notifications.list_notifications(user.id, unread_only, limit, offset)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

@router.post("", response_model=Notification, status_code=status.HTTP_201_CREATED)
async def create_notification(
    request: CreateNotificationRequest,
    user: CurrentUser = Depends(get_current_user),
    notifications: NotificationManager = Depends(get_notification_manager)
):
    """Create a notification. Admins may address any user, others only themselves."""
    if request.user_id != user.id and not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to create notifications for other users"
        )

    try:
        notification = await notifications.create(
            request.user_id,
            request.type,
            request.title,
            request.message,
            request.data
        )
    except RecipientNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

    await deliver(notification)
    return notification

@router.patch("/{notification_id}/read", response_model=Notification)
async def mark_notification_read(
    notification_id: int,
    user: CurrentUser = Depends(get_current_user),
    notifications: NotificationManager = Depends(get_notification_manager)
):
    try:
        return await notifications.mark_read(notification_id, user.id)
    except NotificationNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    user: CurrentUser = Depends(get_current_user),
    notifications: NotificationManager = Depends(get_notification_manager)
):
    """Delete a notification. Admins may delete anyone's."""
    try:
        await notifications.delete(notification_id, user.id, is_admin=user.is_admin)
        return {"success": True}
    except NotificationNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

# Export the router
__all__ = ['router', 'get_notification_manager']
