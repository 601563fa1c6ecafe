import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user, get_redis
from app.models.user import User
from app.schemas.friend import (
    FriendRequestAction,
    FriendRequestCreate,
    FriendRequestCreated,
    FriendRequestResolved,
    FriendsResponse,
    UserSearchResponse,
)
from app.schemas.base import StatusMessage
from app.services import friend_service

router = APIRouter(prefix="/friends", tags=["friends"])

_ACTION_MESSAGES = {
    "accept": "Friend request accepted",
    "decline": "Friend request declined",
    "block": "User blocked",
}


@router.get("", response_model=FriendsResponse)
async def list_friends(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await friend_service.get_friends(db, user.id)


@router.get("/search", response_model=UserSearchResponse)
async def search_users(
    q: str | None = Query(default=None, max_length=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"users": await friend_service.search_users(db, user.id, q)}


@router.post("", response_model=FriendRequestCreated, status_code=201)
async def send_friend_request(
    data: FriendRequestCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis_client=Depends(get_redis),
):
    friendship = await friend_service.send_request(
        db, user.id, data.recipient_id, redis_client
    )
    return {"message": "Friend request sent", "friendship_id": friendship.id}


@router.patch("", response_model=FriendRequestResolved)
async def resolve_friend_request(
    data: FriendRequestAction,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if data.action == "block":
        friendship = await friend_service.block(db, user.id, data.friendship_id)
    else:
        friendship = await friend_service.respond_to_request(
            db, user.id, data.friendship_id, accept=data.action == "accept"
        )
    return {"message": _ACTION_MESSAGES[data.action], "status": friendship.status}


@router.delete("", response_model=StatusMessage)
async def remove_friend(
    friendship_id: uuid.UUID = Query(alias="id"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await friend_service.remove(db, user.id, friendship_id)
    return {"message": "Friendship removed"}
