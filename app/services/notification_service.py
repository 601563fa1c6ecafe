import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ValidationError
from app.models.notification import Notification
from app.models.user import User

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = ("achievement", "task", "system", "friend_request")


async def create_notification(
    db: AsyncSession,
    user_id: uuid.UUID,
    title: str,
    message: str,
    notification_type: str,
    related_id: str | None = None,
    dedup_key: str | None = None,
) -> Notification | None:
    """Record an in-app notification.

    With a ``dedup_key`` the write happens at most once; a repeat returns the
    existing row instead of creating another.
    """
    if notification_type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {notification_type}")

    if dedup_key is not None:
        existing = await db.execute(
            select(Notification).where(Notification.dedup_key == dedup_key)
        )
        found = existing.scalar_one_or_none()
        if found is not None:
            return found

    notification = Notification(
        user_id=user_id,
        title=title[:100],
        message=message[:500],
        type=notification_type,
        related_id=related_id,
        dedup_key=dedup_key,
    )
    try:
        async with db.begin_nested():
            db.add(notification)
    except IntegrityError:
        # Lost a race on dedup_key; the other writer's row stands
        logger.info("Duplicate notification suppressed: %s", dedup_key)
        return None
    return notification


async def get_notifications(
    db: AsyncSession, user_id: uuid.UUID, limit: int = 50
) -> list[Notification]:
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def mark_read(
    db: AsyncSession,
    user_id: uuid.UUID,
    notification_id: uuid.UUID | None = None,
    mark_all: bool = False,
) -> int:
    """Mark one or all of a user's notifications read. Returns rows changed."""
    query = update(Notification).where(
        Notification.user_id == user_id, Notification.read == False  # noqa: E712
    )
    if not mark_all:
        if notification_id is None:
            raise ValidationError("Either notificationId or markAllRead is required")
        query = query.where(Notification.id == notification_id)
    result = await db.execute(query.values(read=True))
    return result.rowcount


async def mark_action_taken(
    db: AsyncSession, user_id: uuid.UUID, notification_type: str, related_id: str
) -> None:
    await db.execute(
        update(Notification)
        .where(
            Notification.user_id == user_id,
            Notification.type == notification_type,
            Notification.related_id == related_id,
        )
        .values(action_taken=True, read=True)
    )


def display_name_or(user: User | None, fallback: str = "Someone") -> str:
    return (user.display_name if user else None) or fallback
