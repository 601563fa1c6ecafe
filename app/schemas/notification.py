import uuid
from datetime import datetime

from app.schemas.base import CamelModel


class NotificationResponse(CamelModel):
    id: uuid.UUID
    title: str
    message: str
    type: str
    read: bool
    related_id: str | None
    created_at: datetime


class NotificationList(CamelModel):
    notifications: list[NotificationResponse]


class NotificationMarkRead(CamelModel):
    notification_id: uuid.UUID | None = None
    mark_all_read: bool = False
