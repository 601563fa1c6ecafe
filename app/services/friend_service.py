"""Friendship lifecycle.

One row per unordered pair of users. ``requester_id`` remembers who asked;
the other party is the recipient. Only the recipient resolves a pending
request, either party may block, and nothing leaves ``blocked``.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from app.models.friendship import Friendship
from app.models.user import User
from app.services import notification_service
from app.services.user_service import get_users_by_id

logger = logging.getLogger(__name__)

SEARCH_MIN_LENGTH = 2
SEARCH_LIMIT = 20


def canonical_pair(user_a: uuid.UUID, user_b: uuid.UUID) -> tuple[uuid.UUID, uuid.UUID]:
    return (min(user_a, user_b), max(user_a, user_b))


async def get_friendship_between(
    db: AsyncSession, user_a: uuid.UUID, user_b: uuid.UUID
) -> Friendship | None:
    uid1, uid2 = canonical_pair(user_a, user_b)
    result = await db.execute(
        select(Friendship).where(
            Friendship.user_id_1 == uid1,
            Friendship.user_id_2 == uid2,
        )
    )
    return result.scalar_one_or_none()


async def are_friends(db: AsyncSession, user_a: uuid.UUID, user_b: uuid.UUID) -> bool:
    """Check if two users are accepted friends, regardless of who asked."""
    friendship = await get_friendship_between(db, user_a, user_b)
    return friendship is not None and friendship.status == "accepted"


async def _check_daily_limit(redis_client, user_id: uuid.UUID) -> str | None:
    if redis_client is None:
        return None
    today_key = f"friend_requests:{user_id}:{datetime.now(timezone.utc).date()}"
    count = await redis_client.get(today_key)
    if count and int(count) >= settings.FRIEND_REQUEST_DAILY_LIMIT:
        raise RateLimitError(
            f"Daily friend request limit reached ({settings.FRIEND_REQUEST_DAILY_LIMIT}/day)"
        )
    return today_key


async def send_request(
    db: AsyncSession,
    requester_id: uuid.UUID,
    recipient_id: uuid.UUID,
    redis_client=None,
) -> Friendship:
    """Create a pending friendship. Any existing row for the pair is a conflict."""
    if requester_id == recipient_id:
        raise ValidationError("Cannot send friend request to yourself")

    recipient = await db.get(User, recipient_id)
    if recipient is None:
        raise NotFoundError("User not found")

    today_key = await _check_daily_limit(redis_client, requester_id)

    existing = await get_friendship_between(db, requester_id, recipient_id)
    if existing is not None:
        if existing.status == "accepted":
            raise ConflictError("Already friends")
        if existing.status == "pending":
            raise ConflictError("Friend request already pending")
        raise ConflictError("Cannot send friend request")

    uid1, uid2 = canonical_pair(requester_id, recipient_id)
    friendship = Friendship(
        user_id_1=uid1,
        user_id_2=uid2,
        requester_id=requester_id,
        status="pending",
    )
    try:
        async with db.begin_nested():
            db.add(friendship)
    except IntegrityError:
        # The other side asked at the same moment
        raise ConflictError("Friend request already pending")

    if today_key is not None:
        await redis_client.incr(today_key)
        await redis_client.expire(today_key, 86400)

    requester = await db.get(User, requester_id)
    await notification_service.create_notification(
        db,
        recipient_id,
        title="New Friend Request",
        message=f"{notification_service.display_name_or(requester)} sent you a friend request",
        notification_type="friend_request",
        related_id=str(friendship.id),
    )
    logger.info("Friend request %s: %s -> %s", friendship.id, requester_id, recipient_id)
    return friendship


async def respond_to_request(
    db: AsyncSession, user_id: uuid.UUID, friendship_id: uuid.UUID, accept: bool
) -> Friendship:
    """Accept or decline a pending request. Only the recipient may answer."""
    friendship = await db.get(Friendship, friendship_id)
    if friendship is None:
        raise NotFoundError("Friend request not found")

    if friendship.recipient_id != user_id:
        raise ForbiddenError("Not authorized")

    if friendship.status != "pending":
        raise ConflictError("Friend request is no longer pending")

    friendship.status = "accepted" if accept else "declined"
    await db.flush()

    await notification_service.mark_action_taken(
        db, user_id, "friend_request", str(friendship.id)
    )

    if accept:
        accepter = await db.get(User, user_id)
        await notification_service.create_notification(
            db,
            friendship.requester_id,
            title="Friend Request Accepted",
            message=f"{notification_service.display_name_or(accepter)} accepted your friend request",
            notification_type="system",
            related_id=str(friendship.id),
        )

    logger.info("Friend request %s %s by %s", friendship.id, friendship.status, user_id)
    return friendship


async def block(
    db: AsyncSession, user_id: uuid.UUID, friendship_id: uuid.UUID
) -> Friendship:
    """Either party may block, from any status. Re-blocking changes nothing."""
    friendship = await db.get(Friendship, friendship_id)
    if friendship is None:
        raise NotFoundError("Friendship not found")

    if user_id not in (friendship.user_id_1, friendship.user_id_2):
        raise ForbiddenError("Not authorized")

    if friendship.status != "blocked":
        friendship.status = "blocked"
        await db.flush()
        logger.info("Friendship %s blocked by %s", friendship.id, user_id)
    return friendship


async def remove(db: AsyncSession, user_id: uuid.UUID, friendship_id: uuid.UUID) -> None:
    """Unfriend or cancel a request. Blocked pairs stay blocked."""
    friendship = await db.get(Friendship, friendship_id)
    if friendship is None:
        raise NotFoundError("Friendship not found")

    if user_id not in (friendship.user_id_1, friendship.user_id_2):
        raise ForbiddenError("Not authorized")

    if friendship.status == "blocked":
        raise ConflictError("Blocked friendships cannot be removed")

    await db.delete(friendship)
    await db.flush()


def _friend_card(friendship: Friendship, other: User, date_key: str, date_value) -> dict:
    return {
        "friendship_id": friendship.id,
        "id": other.id,
        "display_name": other.display_name,
        "email": other.email,
        "avatar_url": other.avatar_url,
        "avatar_type": other.avatar_type,
        date_key: date_value,
    }


async def get_friends(db: AsyncSession, user_id: uuid.UUID) -> dict:
    """Accepted friends plus pending requests received and sent."""
    result = await db.execute(
        select(Friendship).where(
            or_(
                Friendship.user_id_1 == user_id,
                Friendship.user_id_2 == user_id,
            ),
            Friendship.status.in_(("accepted", "pending")),
        )
    )
    friendships = result.scalars().all()
    users = await get_users_by_id(db, {f.other_party(user_id) for f in friendships})

    friends, pending, sent = [], [], []
    for f in friendships:
        other = users.get(f.other_party(user_id))
        if other is None:
            continue
        if f.status == "accepted":
            friends.append(_friend_card(f, other, "since", f.updated_at))
        elif f.requester_id == user_id:
            sent.append(_friend_card(f, other, "requested_at", f.created_at))
        else:
            pending.append(_friend_card(f, other, "requested_at", f.created_at))

    return {"friends": friends, "pending_requests": pending, "sent_requests": sent}


async def search_users(db: AsyncSession, user_id: uuid.UUID, query: str | None) -> list[dict]:
    """Find other users by name or email, annotated with friendship state."""
    if not query or len(query.strip()) < SEARCH_MIN_LENGTH:
        return []

    query = query.strip()
    result = await db.execute(
        select(User)
        .where(
            User.id != user_id,
            or_(
                User.display_name.icontains(query, autoescape=True),
                User.email.icontains(query, autoescape=True),
            ),
        )
        .order_by(User.display_name)
        .limit(SEARCH_LIMIT)
    )
    users = result.scalars().all()
    if not users:
        return []

    ids = [u.id for u in users]
    friendships = await db.execute(
        select(Friendship).where(
            or_(
                (Friendship.user_id_1 == user_id) & Friendship.user_id_2.in_(ids),
                (Friendship.user_id_2 == user_id) & Friendship.user_id_1.in_(ids),
            )
        )
    )
    by_other = {f.other_party(user_id): f for f in friendships.scalars().all()}

    entries = []
    for u in users:
        f = by_other.get(u.id)
        entries.append({
            "id": u.id,
            "display_name": u.display_name,
            "email": u.email,
            "avatar_url": u.avatar_url,
            "avatar_type": u.avatar_type,
            "friendship_status": f.status if f else None,
            "is_requester": bool(f and f.requester_id == user_id),
        })
    return entries
