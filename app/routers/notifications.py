from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.notification import NotificationList, NotificationMarkRead
from app.schemas.base import StatusMessage
from app.services import notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationList)
async def list_notifications(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"notifications": await notification_service.get_notifications(db, user.id)}


@router.patch("", response_model=StatusMessage)
async def mark_notifications_read(
    data: NotificationMarkRead,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await notification_service.mark_read(
        db, user.id, notification_id=data.notification_id, mark_all=data.mark_all_read
    )
    return {"message": f"{count} notification(s) marked as read"}
