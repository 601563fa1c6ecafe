import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User


def public_profile(user: User | None) -> dict | None:
    if user is None:
        return None
    return {
        "id": user.id,
        "display_name": user.display_name,
        "avatar_url": user.avatar_url,
        "avatar_type": user.avatar_type,
    }


async def get_users_by_id(
    db: AsyncSession, user_ids: set[uuid.UUID] | list[uuid.UUID]
) -> dict[uuid.UUID, User]:
    """Batch-load users, keyed by id. Missing ids are simply absent."""
    ids = set(user_ids)
    if not ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(ids)))
    return {u.id: u for u in result.scalars().all()}
