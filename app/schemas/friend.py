import uuid
from datetime import datetime
from typing import Literal

from app.schemas.base import CamelModel


class FriendRequestCreate(CamelModel):
    recipient_id: uuid.UUID


class FriendRequestAction(CamelModel):
    friendship_id: uuid.UUID
    action: Literal["accept", "decline", "block"]


class FriendEntry(CamelModel):
    friendship_id: uuid.UUID
    id: uuid.UUID
    display_name: str
    email: str
    avatar_url: str | None
    avatar_type: str
    since: datetime


class FriendRequestEntry(CamelModel):
    friendship_id: uuid.UUID
    id: uuid.UUID
    display_name: str
    email: str
    avatar_url: str | None
    avatar_type: str
    requested_at: datetime


class FriendsResponse(CamelModel):
    friends: list[FriendEntry]
    pending_requests: list[FriendRequestEntry]
    sent_requests: list[FriendRequestEntry]


class FriendRequestCreated(CamelModel):
    message: str
    friendship_id: uuid.UUID


class FriendRequestResolved(CamelModel):
    message: str
    status: str


class UserSearchEntry(CamelModel):
    id: uuid.UUID
    display_name: str
    email: str
    avatar_url: str | None
    avatar_type: str
    friendship_status: str | None
    is_requester: bool


class UserSearchResponse(CamelModel):
    users: list[UserSearchEntry]
