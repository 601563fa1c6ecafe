import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, utcnow

FRIENDSHIP_STATUSES = ("pending", "accepted", "declined", "blocked")


class Friendship(Base):
    __tablename__ = "friendships"

    # Canonical ordering: user_id_1 < user_id_2 to prevent duplicates
    user_id_1: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id_2: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    requester_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", index=True
    )  # pending, accepted, declined, blocked
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint("user_id_1", "user_id_2", name="uq_friendships_pair"),
        CheckConstraint("user_id_1 < user_id_2", name="canonical_order"),
        CheckConstraint(
            "status IN ('pending', 'accepted', 'declined', 'blocked')", name="status"
        ),
    )

    @property
    def recipient_id(self) -> uuid.UUID:
        return self.user_id_2 if self.requester_id == self.user_id_1 else self.user_id_1

    def other_party(self, user_id: uuid.UUID) -> uuid.UUID:
        return self.user_id_2 if self.user_id_1 == user_id else self.user_id_1
