import uuid
from datetime import datetime

from app.schemas.base import CamelModel


class PublicUser(CamelModel):
    id: uuid.UUID
    display_name: str
    avatar_url: str | None = None
    avatar_type: str = "initial"


class UserResponse(PublicUser):
    email: str
    bio: str | None = None
    warnings: int = 0
    created_at: datetime
