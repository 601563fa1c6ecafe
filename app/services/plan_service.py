"""Shared plans, their members and their task list.

The owner is stored once, as ``SharedPlan.owner_id``. ``shared_plan_members``
only ever holds editors and viewers, so the owner can be neither demoted nor
removed through it. Membership is always read from freshly loaded rows.
"""

import logging
import uuid

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.models.base import utcnow
from app.models.shared_plan import SharedPlan
from app.models.shared_plan_invitation import SharedPlanInvitation
from app.models.shared_plan_member import SharedPlanMember
from app.models.shared_plan_message import SharedPlanMessage
from app.models.shared_plan_task import SharedPlanTask
from app.services.user_service import get_users_by_id, public_profile

logger = logging.getLogger(__name__)

OWNER = "owner"
EDITOR = "editor"
VIEWER = "viewer"
MEMBER_ROLES = (EDITOR, VIEWER)
TASK_STATUSES = ("pending", "in-progress", "completed")

MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_TASK_TITLE_LENGTH = 200
MAX_TASK_DESCRIPTION_LENGTH = 1000


# --- Membership ---


def role_of(plan: SharedPlan, user_id: uuid.UUID) -> str | None:
    if plan.owner_id == user_id:
        return OWNER
    for member in plan.members:
        if member.user_id == user_id:
            return member.role
    return None


def is_member(plan: SharedPlan, user_id: uuid.UUID) -> bool:
    return role_of(plan, user_id) is not None


def can_edit(plan: SharedPlan, user_id: uuid.UUID) -> bool:
    return role_of(plan, user_id) in (OWNER, EDITOR)


def find_member(plan: SharedPlan, user_id: uuid.UUID) -> SharedPlanMember | None:
    return next((m for m in plan.members if m.user_id == user_id), None)


async def load_plan(
    db: AsyncSession, plan_id: uuid.UUID, with_tasks: bool = False
) -> SharedPlan:
    """Fetch a plan with its members, bypassing anything cached in the session."""
    options = [selectinload(SharedPlan.members)]
    if with_tasks:
        options.append(selectinload(SharedPlan.tasks))
    result = await db.execute(
        select(SharedPlan)
        .where(SharedPlan.id == plan_id)
        .options(*options)
        .execution_options(populate_existing=True)
    )
    plan = result.scalar_one_or_none()
    if plan is None:
        raise NotFoundError("Plan not found")
    return plan


async def load_plan_for_member(
    db: AsyncSession, plan_id: uuid.UUID, user_id: uuid.UUID, with_tasks: bool = False
) -> SharedPlan:
    plan = await load_plan(db, plan_id, with_tasks=with_tasks)
    if not is_member(plan, user_id):
        raise ForbiddenError("Not authorized")
    return plan


# --- Serialization ---


async def _serialize_plans(
    db: AsyncSession, plans: list[SharedPlan], user_id: uuid.UUID, include_tasks: bool
) -> list[dict]:
    user_ids = set()
    for plan in plans:
        user_ids.add(plan.owner_id)
        user_ids.update(m.user_id for m in plan.members)
    users = await get_users_by_id(db, user_ids)

    serialized = []
    for plan in plans:
        owner = public_profile(users.get(plan.owner_id)) or {
            "id": plan.owner_id,
            "display_name": "",
        }
        # The owner is presented as the first member even though it has no member row
        members = [{**owner, "role": OWNER, "joined_at": plan.created_at}]
        for m in plan.members:
            profile = public_profile(users.get(m.user_id))
            if profile is None:
                continue
            members.append({**profile, "role": m.role, "joined_at": m.joined_at})

        data = {
            "id": plan.id,
            "name": plan.name,
            "description": plan.description,
            "owner": owner,
            "members": members,
            "task_count": len(plan.tasks),
            "completed_task_count": sum(1 for t in plan.tasks if t.status == "completed"),
            "user_role": role_of(plan, user_id) or VIEWER,
            "created_at": plan.created_at,
            "updated_at": plan.updated_at,
        }
        if include_tasks:
            data["tasks"] = [_serialize_task(t) for t in plan.tasks]
        serialized.append(data)
    return serialized


def _serialize_task(task: SharedPlanTask) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "status": task.status,
        "assigned_to": task.assigned_to,
        "created_by": task.created_by,
        "created_at": task.created_at,
        "completed_at": task.completed_at,
    }


# --- Plans ---


def _clean_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Plan name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Plan name is too long (max {MAX_NAME_LENGTH} characters)")
    return name


def _clean_description(description: str | None) -> str:
    description = (description or "").strip()
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"Plan description is too long (max {MAX_DESCRIPTION_LENGTH} characters)"
        )
    return description


async def get_plans(db: AsyncSession, user_id: uuid.UUID) -> list[dict]:
    """Every plan the user owns or belongs to, most recently updated first."""
    result = await db.execute(
        select(SharedPlan)
        .where(
            or_(
                SharedPlan.owner_id == user_id,
                SharedPlan.id.in_(
                    select(SharedPlanMember.plan_id).where(SharedPlanMember.user_id == user_id)
                ),
            )
        )
        .options(selectinload(SharedPlan.members), selectinload(SharedPlan.tasks))
        .order_by(SharedPlan.updated_at.desc())
    )
    plans = list(result.scalars().all())
    return await _serialize_plans(db, plans, user_id, include_tasks=False)


async def get_plan(db: AsyncSession, user_id: uuid.UUID, plan_id: uuid.UUID) -> dict:
    plan = await load_plan_for_member(db, plan_id, user_id, with_tasks=True)
    return (await _serialize_plans(db, [plan], user_id, include_tasks=True))[0]


async def create_plan(
    db: AsyncSession, owner_id: uuid.UUID, name: str, description: str | None = None
) -> dict:
    """Create a plan; its creator becomes the owner and sole member."""
    plan = SharedPlan(
        owner_id=owner_id,
        name=_clean_name(name),
        description=_clean_description(description),
    )
    db.add(plan)
    await db.flush()

    plan = await load_plan(db, plan.id, with_tasks=True)
    logger.info("Plan %s created by %s", plan.id, owner_id)
    return (await _serialize_plans(db, [plan], owner_id, include_tasks=True))[0]


async def update_plan(
    db: AsyncSession, user_id: uuid.UUID, plan_id: uuid.UUID, data: dict
) -> dict:
    plan = await load_plan(db, plan_id, with_tasks=True)
    if not can_edit(plan, user_id):
        raise ForbiddenError("Not authorized to edit this plan")

    if "name" in data:
        plan.name = _clean_name(data["name"])
    if "description" in data:
        plan.description = _clean_description(data["description"])
    plan.updated_at = utcnow()
    await db.flush()

    return (await _serialize_plans(db, [plan], user_id, include_tasks=True))[0]


async def delete_plan(db: AsyncSession, user_id: uuid.UUID, plan_id: uuid.UUID) -> None:
    """Owner-only. Removes the plan with its members, tasks, invitations and chat."""
    plan = await load_plan(db, plan_id)
    if plan.owner_id != user_id:
        raise ForbiddenError("Only the owner can delete this plan")

    for model in (SharedPlanInvitation, SharedPlanMessage, SharedPlanMember, SharedPlanTask):
        await db.execute(delete(model).where(model.plan_id == plan_id))
    await db.execute(delete(SharedPlan).where(SharedPlan.id == plan_id))
    logger.info("Plan %s deleted by %s", plan_id, user_id)


# --- Members ---


async def change_role(
    db: AsyncSession,
    user_id: uuid.UUID,
    plan_id: uuid.UUID,
    target_id: uuid.UUID,
    role: str,
) -> None:
    plan = await load_plan(db, plan_id)

    if plan.owner_id != user_id:
        raise ForbiddenError("Only owner can change roles")

    if role not in MEMBER_ROLES:
        raise ValidationError("Invalid role")

    if target_id == plan.owner_id:
        raise ValidationError("Cannot change owner role")

    member = find_member(plan, target_id)
    if member is None:
        raise NotFoundError("Member not found")

    member.role = role
    plan.updated_at = utcnow()
    await db.flush()
    logger.info("Plan %s: %s is now %s", plan_id, target_id, role)


async def remove_member(
    db: AsyncSession, user_id: uuid.UUID, plan_id: uuid.UUID, target_id: uuid.UUID
) -> str:
    """Leave a plan, or (owner only) remove someone else. Returns a status message."""
    plan = await load_plan(db, plan_id)
    is_owner = plan.owner_id == user_id
    is_self = target_id == user_id

    if is_self and is_owner:
        raise ValidationError("Owner cannot leave. Delete the plan instead.")

    if not is_self and not is_owner:
        raise ForbiddenError("Not authorized")

    member = find_member(plan, target_id)
    if member is None:
        raise NotFoundError("Member not found")

    plan.members.remove(member)
    plan.updated_at = utcnow()
    await db.flush()
    logger.info("Plan %s: %s removed by %s", plan_id, target_id, user_id)
    return "Left plan" if is_self else "Member removed"


async def add_member_if_absent(
    db: AsyncSession, plan: SharedPlan, user_id: uuid.UUID, role: str
) -> bool:
    """Append a membership unless the user already belongs. Returns True if added."""
    if is_member(plan, user_id):
        return False
    try:
        async with db.begin_nested():
            db.add(SharedPlanMember(plan_id=plan.id, user_id=user_id, role=role))
    except IntegrityError:
        # Someone else added the same user concurrently; unique (plan_id, user_id) held
        return False
    plan.updated_at = utcnow()
    await db.flush()
    return True


# --- Tasks ---


def _clean_task_title(title: str | None) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Task title is required")
    if len(title) > MAX_TASK_TITLE_LENGTH:
        raise ValidationError(f"Task title is too long (max {MAX_TASK_TITLE_LENGTH} characters)")
    return title


def _clean_task_description(description: str | None) -> str:
    description = (description or "").strip()
    if len(description) > MAX_TASK_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"Task description is too long (max {MAX_TASK_DESCRIPTION_LENGTH} characters)"
        )
    return description


async def _load_plan_for_editor(
    db: AsyncSession, plan_id: uuid.UUID, user_id: uuid.UUID, action: str
) -> SharedPlan:
    plan = await load_plan(db, plan_id, with_tasks=True)
    if not can_edit(plan, user_id):
        raise ForbiddenError(f"Not authorized to {action} tasks")
    return plan


def _check_assignee(plan: SharedPlan, assigned_to: uuid.UUID | None) -> None:
    if assigned_to is not None and not is_member(plan, assigned_to):
        raise ValidationError("Tasks can only be assigned to plan members")


async def add_task(
    db: AsyncSession, user_id: uuid.UUID, plan_id: uuid.UUID, data: dict
) -> dict:
    plan = await _load_plan_for_editor(db, plan_id, user_id, "add")
    _check_assignee(plan, data.get("assigned_to"))

    task = SharedPlanTask(
        title=_clean_task_title(data.get("title")),
        description=_clean_task_description(data.get("description")),
        assigned_to=data.get("assigned_to"),
        status="pending",
        created_by=user_id,
    )
    plan.tasks.append(task)
    plan.updated_at = utcnow()
    await db.flush()
    return _serialize_task(task)


async def update_task(
    db: AsyncSession, user_id: uuid.UUID, plan_id: uuid.UUID, task_id: uuid.UUID, data: dict
) -> dict:
    plan = await _load_plan_for_editor(db, plan_id, user_id, "edit")

    task = next((t for t in plan.tasks if t.id == task_id), None)
    if task is None:
        raise NotFoundError("Task not found")

    if "title" in data:
        task.title = _clean_task_title(data["title"])
    if "description" in data:
        task.description = _clean_task_description(data["description"])
    if data.get("status") is not None:
        if data["status"] not in TASK_STATUSES:
            raise ValidationError("Invalid task status")
        task.status = data["status"]
        task.completed_at = utcnow() if task.status == "completed" else None
    if "assigned_to" in data:
        _check_assignee(plan, data["assigned_to"])
        task.assigned_to = data["assigned_to"]

    plan.updated_at = utcnow()
    await db.flush()
    return _serialize_task(task)


async def delete_task(
    db: AsyncSession, user_id: uuid.UUID, plan_id: uuid.UUID, task_id: uuid.UUID
) -> None:
    plan = await _load_plan_for_editor(db, plan_id, user_id, "delete")

    task = next((t for t in plan.tasks if t.id == task_id), None)
    if task is None:
        raise NotFoundError("Task not found")

    plan.tasks.remove(task)
    plan.updated_at = utcnow()
    await db.flush()
