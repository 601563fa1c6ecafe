import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, utcnow


class SharedPlanInvitation(Base):
    __tablename__ = "shared_plan_invitations"

    plan_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("shared_plans.id", ondelete="CASCADE"), nullable=False, index=True
    )
    invited_by: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    invited_user: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(10), nullable=False, default="editor")  # editor, viewer
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default="pending"
    )  # pending, accepted, declined
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        # At most one pending invitation per (plan, invitee); resolved ones may pile up.
        Index(
            "uq_shared_plan_invitations_pending",
            "plan_id",
            "invited_user",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )
