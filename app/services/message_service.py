"""Direct messages between accepted friends.

A conversation is not stored anywhere: it is the set of messages sharing a
``conversation_id`` derived from the two participants.
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ForbiddenError, ValidationError
from app.models.base import utcnow
from app.models.direct_message import DirectMessage
from app.models.user import User
from app.services.friend_service import are_friends
from app.services.user_service import get_users_by_id, public_profile

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 2000
# UUID text never contains an underscore
CONVERSATION_SEPARATOR = "_"


def conversation_id_of(user_a: uuid.UUID, user_b: uuid.UUID) -> str:
    """Deterministic, order-independent id for the thread between two users."""
    return CONVERSATION_SEPARATOR.join(sorted([str(user_a), str(user_b)]))


def parse_conversation_id(conversation_id: str) -> tuple[uuid.UUID, uuid.UUID] | None:
    parts = conversation_id.split(CONVERSATION_SEPARATOR)
    if len(parts) != 2:
        return None
    try:
        return uuid.UUID(parts[0]), uuid.UUID(parts[1])
    except ValueError:
        return None


def clean_content(content: str | None) -> str:
    """Shared content rules for direct and plan messages."""
    content = (content or "").strip()
    if not content:
        raise ValidationError("Message content is required")
    if len(content) > MAX_CONTENT_LENGTH:
        raise ValidationError(f"Message is too long (max {MAX_CONTENT_LENGTH} characters)")
    return content


def _participants_or_forbid(conversation_id: str, user_id: uuid.UUID) -> tuple[uuid.UUID, uuid.UUID]:
    participants = parse_conversation_id(conversation_id)
    if participants is None or user_id not in participants:
        raise ForbiddenError("Not authorized")
    return participants


def _serialize(message: DirectMessage, sender: User | None) -> dict:
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "sender": public_profile(sender) or {"id": message.sender_id, "display_name": ""},
        "content": message.content,
        "read": message.read,
        "created_at": message.created_at,
    }


async def send_message(
    db: AsyncSession, sender_id: uuid.UUID, recipient_id: uuid.UUID, content: str
) -> dict:
    content = clean_content(content)

    if not await are_friends(db, sender_id, recipient_id):
        raise ForbiddenError("You can only message friends")

    message = DirectMessage(
        conversation_id=conversation_id_of(sender_id, recipient_id),
        sender_id=sender_id,
        recipient_id=recipient_id,
        content=content,
        read=False,
    )
    db.add(message)
    await db.flush()

    sender = await db.get(User, sender_id)
    return _serialize(message, sender)


async def get_conversations(db: AsyncSession, user_id: uuid.UUID) -> list[dict]:
    """Latest message and unread count per conversation, newest conversation first."""
    result = await db.execute(
        select(DirectMessage)
        .where(
            or_(
                DirectMessage.sender_id == user_id,
                DirectMessage.recipient_id == user_id,
            )
        )
        .order_by(DirectMessage.created_at.desc())
    )

    # Rows arrive newest first, so the first row seen per id is the latest
    # and insertion order of the dict is already the required ordering.
    grouped: dict[str, dict] = {}
    for message in result.scalars():
        entry = grouped.get(message.conversation_id)
        if entry is None:
            entry = grouped[message.conversation_id] = {
                "last_message": message,
                "unread_count": 0,
            }
        if message.recipient_id == user_id and not message.read:
            entry["unread_count"] += 1

    def other_party(message: DirectMessage) -> uuid.UUID:
        return message.recipient_id if message.sender_id == user_id else message.sender_id

    users = await get_users_by_id(
        db, {other_party(e["last_message"]) for e in grouped.values()}
    )

    conversations = []
    for conversation_id, entry in grouped.items():
        last = entry["last_message"]
        conversations.append({
            "conversation_id": conversation_id,
            "other_user": public_profile(users.get(other_party(last))),
            "last_message": {
                "content": last.content,
                "sender": last.sender_id,
                "created_at": last.created_at,
                "read": last.read,
            },
            "unread_count": entry["unread_count"],
        })
    return conversations


async def get_messages(
    db: AsyncSession,
    conversation_id: str,
    user_id: uuid.UUID,
    limit: int = 50,
    before: datetime | None = None,
) -> dict:
    """One page of a conversation, oldest first within the page.

    ``has_more`` is true when the page came back full; it can be true on the
    final page if exactly ``limit`` messages remained.
    """
    participants = _participants_or_forbid(conversation_id, user_id)

    query = select(DirectMessage).where(DirectMessage.conversation_id == conversation_id)
    if before is not None:
        query = query.where(DirectMessage.created_at < before)
    query = query.order_by(DirectMessage.created_at.desc()).limit(limit)
    result = await db.execute(query)
    page = list(result.scalars().all())

    other_id = participants[1] if participants[0] == user_id else participants[0]
    users = await get_users_by_id(db, set(participants))

    return {
        "messages": [_serialize(m, users.get(m.sender_id)) for m in reversed(page)],
        "other_user": public_profile(users.get(other_id)),
        "has_more": len(page) == limit,
    }


async def mark_conversation_read(
    db: AsyncSession, conversation_id: str, user_id: uuid.UUID
) -> int:
    """Mark every unread message addressed to the caller as read. Idempotent."""
    _participants_or_forbid(conversation_id, user_id)

    result = await db.execute(
        update(DirectMessage)
        .where(
            DirectMessage.conversation_id == conversation_id,
            DirectMessage.recipient_id == user_id,
            DirectMessage.read == False,  # noqa: E712
        )
        .values(read=True, read_at=utcnow())
    )
    if result.rowcount:
        logger.debug("Marked %d messages read in %s", result.rowcount, conversation_id)
    return result.rowcount
