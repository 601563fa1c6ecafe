import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, utcnow


class SharedPlanMember(Base):
    __tablename__ = "shared_plan_members"

    plan_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("shared_plans.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(10), nullable=False, default="editor")  # editor, viewer
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    plan: Mapped["SharedPlan"] = relationship(back_populates="members")  # noqa: F821

    __table_args__ = (
        UniqueConstraint("plan_id", "user_id", name="uq_shared_plan_members_pair"),
        CheckConstraint("role IN ('editor', 'viewer')", name="role"),
    )
