from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.message import (
    ConversationList,
    ConversationPage,
    DirectMessageCreate,
    DirectMessageEnvelope,
    MarkReadResponse,
)
from app.services import message_service

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("", response_model=ConversationList)
async def list_conversations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"conversations": await message_service.get_conversations(db, user.id)}


@router.post("", response_model=DirectMessageEnvelope, status_code=201)
async def send_message(
    data: DirectMessageCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    message = await message_service.send_message(db, user.id, data.recipient_id, data.content)
    return {"message": message}


@router.get("/{conversation_id}", response_model=ConversationPage)
async def get_conversation(
    conversation_id: str,
    limit: int = Query(default=settings.MESSAGE_PAGE_SIZE, ge=1, le=settings.MESSAGE_PAGE_MAX),
    before: datetime | None = Query(default=None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await message_service.get_messages(
        db, conversation_id, user.id, limit=limit, before=before
    )


@router.patch("/{conversation_id}", response_model=MarkReadResponse)
async def mark_conversation_read(
    conversation_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await message_service.mark_conversation_read(db, conversation_id, user.id)
    return {"message": "Messages marked as read", "count": count}
