"""Plan invitations: ``pending`` -> ``accepted`` | ``declined``, exactly once.

Resolving an invitation is a compare-and-swap on its status. Only the request
whose UPDATE moves the row out of ``pending`` goes on to touch the plan, so a
double-submitted accept cannot add the member twice.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
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
from app.models.base import utcnow
from app.models.shared_plan import SharedPlan
from app.models.shared_plan_invitation import SharedPlanInvitation
from app.models.user import User
from app.services import notification_service, plan_service
from app.services.user_service import get_users_by_id, public_profile

logger = logging.getLogger(__name__)


async def invite(
    db: AsyncSession,
    inviter_id: uuid.UUID,
    plan_id: uuid.UUID,
    invitee_id: uuid.UUID,
    role: str = plan_service.EDITOR,
    redis_client=None,
) -> SharedPlanInvitation:
    plan = await plan_service.load_plan(db, plan_id)
    if not plan_service.can_edit(plan, inviter_id):
        raise ForbiddenError("Not authorized to invite")

    if role not in plan_service.MEMBER_ROLES:
        raise ValidationError("Invalid role")

    invitee = await db.get(User, invitee_id)
    if invitee is None:
        raise NotFoundError("User not found")

    if plan_service.is_member(plan, invitee_id):
        raise ConflictError("User is already a member")

    existing = await db.execute(
        select(SharedPlanInvitation).where(
            SharedPlanInvitation.plan_id == plan_id,
            SharedPlanInvitation.invited_user == invitee_id,
            SharedPlanInvitation.status == "pending",
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Invitation already sent")

    today_key = None
    if redis_client is not None:
        today_key = f"plan_invites:{inviter_id}:{datetime.now(timezone.utc).date()}"
        count = await redis_client.get(today_key)
        if count and int(count) >= settings.PLAN_INVITE_DAILY_LIMIT:
            raise RateLimitError(
                f"Daily invitation limit reached ({settings.PLAN_INVITE_DAILY_LIMIT}/day)"
            )

    invitation = SharedPlanInvitation(
        plan_id=plan_id,
        invited_by=inviter_id,
        invited_user=invitee_id,
        role=role,
        status="pending",
    )
    try:
        async with db.begin_nested():
            db.add(invitation)
    except IntegrityError:
        raise ConflictError("Invitation already sent")

    if today_key is not None:
        await redis_client.incr(today_key)
        await redis_client.expire(today_key, 86400)

    inviter = await db.get(User, inviter_id)
    await notification_service.create_notification(
        db,
        invitee_id,
        title="Plan Invitation",
        message=f'{notification_service.display_name_or(inviter)} invited you to join "{plan.name}"',
        notification_type="system",
        related_id=str(invitation.id),
    )
    logger.info("Invitation %s: %s invited %s to plan %s", invitation.id, inviter_id, invitee_id, plan_id)
    return invitation


async def get_plan_invitations(
    db: AsyncSession, user_id: uuid.UUID, plan_id: uuid.UUID
) -> list[dict]:
    """Pending invitations of one plan. Owners and editors only."""
    plan = await plan_service.load_plan(db, plan_id)
    if not plan_service.can_edit(plan, user_id):
        raise ForbiddenError("Not authorized")

    result = await db.execute(
        select(SharedPlanInvitation)
        .where(
            SharedPlanInvitation.plan_id == plan_id,
            SharedPlanInvitation.status == "pending",
        )
        .order_by(SharedPlanInvitation.created_at)
    )
    invitations = result.scalars().all()
    users = await get_users_by_id(
        db, {i.invited_user for i in invitations} | {i.invited_by for i in invitations}
    )

    return [
        {
            "id": inv.id,
            "invited_user": public_profile(users[inv.invited_user]),
            "invited_by": public_profile(users[inv.invited_by]),
            "role": inv.role,
            "created_at": inv.created_at,
        }
        for inv in invitations
        if inv.invited_user in users and inv.invited_by in users
    ]


async def cancel_invitation(
    db: AsyncSession, user_id: uuid.UUID, plan_id: uuid.UUID, invitation_id: uuid.UUID
) -> None:
    plan = await plan_service.load_plan(db, plan_id)
    if not plan_service.can_edit(plan, user_id):
        raise ForbiddenError("Not authorized")

    invitation = await db.get(SharedPlanInvitation, invitation_id)
    if invitation is None or invitation.plan_id != plan_id:
        raise NotFoundError("Invitation not found")
    if invitation.status != "pending":
        raise ConflictError("Invitation is no longer pending")

    await db.delete(invitation)
    await db.flush()


async def get_my_invitations(db: AsyncSession, user_id: uuid.UUID) -> list[dict]:
    """Pending invitations addressed to the user."""
    result = await db.execute(
        select(SharedPlanInvitation, SharedPlan)
        .join(SharedPlan, SharedPlan.id == SharedPlanInvitation.plan_id)
        .where(
            SharedPlanInvitation.invited_user == user_id,
            SharedPlanInvitation.status == "pending",
        )
        .order_by(SharedPlanInvitation.created_at.desc())
    )
    rows = result.all()
    inviters = await get_users_by_id(db, {inv.invited_by for inv, _ in rows})

    invitations = []
    for inv, plan in rows:
        inviter = inviters.get(inv.invited_by)
        if inviter is None:
            continue
        invitations.append({
            "id": inv.id,
            "plan": {"id": plan.id, "name": plan.name, "description": plan.description},
            "invited_by": public_profile(inviter),
            "role": inv.role,
            "created_at": inv.created_at,
        })
    return invitations


async def respond(
    db: AsyncSession, user_id: uuid.UUID, invitation_id: uuid.UUID, accept: bool
) -> str:
    """Accept or decline. Returns a status message for the caller."""
    invitation = await db.get(SharedPlanInvitation, invitation_id)
    if invitation is None:
        raise NotFoundError("Invitation not found")

    if invitation.invited_user != user_id:
        raise ForbiddenError("Not authorized")

    if invitation.status != "pending":
        raise ConflictError("Invitation is no longer pending")

    new_status = "accepted" if accept else "declined"
    result = await db.execute(
        update(SharedPlanInvitation)
        .where(
            SharedPlanInvitation.id == invitation_id,
            SharedPlanInvitation.status == "pending",
        )
        .values(status=new_status, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # Another request resolved it between our read and our write
        raise ConflictError("Invitation is no longer pending")
    await db.refresh(invitation)

    if not accept:
        logger.info("Invitation %s declined", invitation_id)
        return "Invitation declined"

    plan = await plan_service.load_plan(db, invitation.plan_id)
    added = await plan_service.add_member_if_absent(db, plan, user_id, invitation.role)

    accepter = await db.get(User, user_id)
    await notification_service.create_notification(
        db,
        invitation.invited_by,
        title="Invitation Accepted",
        message=f'{notification_service.display_name_or(accepter)} joined "{plan.name}"',
        notification_type="system",
        related_id=str(plan.id),
        dedup_key=f"plan_invitation_accepted:{invitation.id}",
    )
    logger.info("Invitation %s accepted (member added: %s)", invitation_id, added)
    return "Joined plan"
