import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, utcnow


class SharedPlan(Base):
    __tablename__ = "shared_plans"

    # The owner lives only here; it is never duplicated into shared_plan_members.
    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Relationships
    members: Mapped[list["SharedPlanMember"]] = relationship(  # noqa: F821
        back_populates="plan",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SharedPlanMember.joined_at",
    )
    tasks: Mapped[list["SharedPlanTask"]] = relationship(  # noqa: F821
        back_populates="plan",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SharedPlanTask.created_at",
    )
