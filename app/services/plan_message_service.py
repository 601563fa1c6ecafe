import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.shared_plan_message import SharedPlanMessage
from app.models.user import User
from app.services import plan_service
from app.services.message_service import clean_content
from app.services.user_service import get_users_by_id, public_profile


def _serialize(message: SharedPlanMessage, sender: User | None) -> dict:
    return {
        "id": message.id,
        "content": message.content,
        "sender": public_profile(sender) or {"id": message.sender_id, "display_name": ""},
        "created_at": message.created_at,
    }


async def send_message(
    db: AsyncSession, sender_id: uuid.UUID, plan_id: uuid.UUID, content: str
) -> dict:
    """Post to a plan's chat. Only current members may post."""
    content = clean_content(content)
    await plan_service.load_plan_for_member(db, plan_id, sender_id)

    message = SharedPlanMessage(plan_id=plan_id, sender_id=sender_id, content=content)
    db.add(message)
    await db.flush()

    sender = await db.get(User, sender_id)
    return _serialize(message, sender)


async def get_messages(
    db: AsyncSession,
    plan_id: uuid.UUID,
    user_id: uuid.UUID,
    limit: int = 50,
    before: datetime | None = None,
) -> dict:
    """Same paging contract as direct messages: newest page, returned oldest first."""
    await plan_service.load_plan_for_member(db, plan_id, user_id)

    query = select(SharedPlanMessage).where(SharedPlanMessage.plan_id == plan_id)
    if before is not None:
        query = query.where(SharedPlanMessage.created_at < before)
    query = query.order_by(SharedPlanMessage.created_at.desc()).limit(limit)
    result = await db.execute(query)
    page = list(result.scalars().all())

    senders = await get_users_by_id(db, {m.sender_id for m in page})
    return {
        "messages": [_serialize(m, senders.get(m.sender_id)) for m in reversed(page)],
        "has_more": len(page) == limit,
    }
