import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies import get_current_user, get_redis
from app.models.user import User
from app.schemas.base import StatusMessage
from app.schemas.shared_plan import (
    InvitationAction,
    InvitationCreate,
    InvitationCreated,
    MemberRoleUpdate,
    MyInvitationList,
    PlanCreate,
    PlanEnvelope,
    PlanInvitationList,
    PlanList,
    PlanMessageCreate,
    PlanMessageEnvelope,
    PlanMessagePage,
    PlanTaskCreate,
    PlanTaskEnvelope,
    PlanTaskUpdate,
    PlanUpdate,
)
from app.services import invitation_service, plan_message_service, plan_service

router = APIRouter(prefix="/shared-plans", tags=["shared-plans"])


# --- Invitations addressed to the current user ---
# Declared before /{plan_id} so "invitations" is never parsed as a plan id.


@router.get("/invitations", response_model=MyInvitationList)
async def list_my_invitations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"invitations": await invitation_service.get_my_invitations(db, user.id)}


@router.patch("/invitations", response_model=StatusMessage)
async def respond_to_invitation(
    data: InvitationAction,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    message = await invitation_service.respond(
        db, user.id, data.invitation_id, accept=data.action == "accept"
    )
    return {"message": message}


# --- Plans ---


@router.get("", response_model=PlanList)
async def list_plans(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"plans": await plan_service.get_plans(db, user.id)}


@router.post("", response_model=PlanEnvelope, status_code=201)
async def create_plan(
    data: PlanCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    plan = await plan_service.create_plan(db, user.id, data.name, data.description)
    return {"plan": plan}


@router.get("/{plan_id}", response_model=PlanEnvelope)
async def get_plan(
    plan_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"plan": await plan_service.get_plan(db, user.id, plan_id)}


@router.patch("/{plan_id}", response_model=PlanEnvelope)
async def update_plan(
    plan_id: uuid.UUID,
    data: PlanUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    plan = await plan_service.update_plan(
        db, user.id, plan_id, data.model_dump(exclude_unset=True)
    )
    return {"plan": plan}


@router.delete("/{plan_id}", response_model=StatusMessage)
async def delete_plan(
    plan_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await plan_service.delete_plan(db, user.id, plan_id)
    return {"message": "Plan deleted"}


# --- Members ---


@router.patch("/{plan_id}/members", response_model=StatusMessage)
async def change_member_role(
    plan_id: uuid.UUID,
    data: MemberRoleUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await plan_service.change_role(db, user.id, plan_id, data.user_id, data.role)
    return {"message": "Role updated"}


@router.delete("/{plan_id}/members", response_model=StatusMessage)
async def remove_member(
    plan_id: uuid.UUID,
    user_id: uuid.UUID = Query(alias="userId"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    message = await plan_service.remove_member(db, user.id, plan_id, user_id)
    return {"message": message}


# --- Plan invitations ---


@router.get("/{plan_id}/invitations", response_model=PlanInvitationList)
async def list_plan_invitations(
    plan_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"invitations": await invitation_service.get_plan_invitations(db, user.id, plan_id)}


@router.post("/{plan_id}/invitations", response_model=InvitationCreated, status_code=201)
async def invite_to_plan(
    plan_id: uuid.UUID,
    data: InvitationCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis_client=Depends(get_redis),
):
    invitation = await invitation_service.invite(
        db, user.id, plan_id, data.user_id, data.role, redis_client
    )
    return {"message": "Invitation sent", "invitation_id": invitation.id}


@router.delete("/{plan_id}/invitations", response_model=StatusMessage)
async def cancel_invitation(
    plan_id: uuid.UUID,
    invitation_id: uuid.UUID = Query(alias="id"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await invitation_service.cancel_invitation(db, user.id, plan_id, invitation_id)
    return {"message": "Invitation cancelled"}


# --- Plan chat ---


@router.get("/{plan_id}/messages", response_model=PlanMessagePage)
async def list_plan_messages(
    plan_id: uuid.UUID,
    limit: int = Query(default=settings.MESSAGE_PAGE_SIZE, ge=1, le=settings.MESSAGE_PAGE_MAX),
    before: datetime | None = Query(default=None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await plan_message_service.get_messages(
        db, plan_id, user.id, limit=limit, before=before
    )


@router.post("/{plan_id}/messages", response_model=PlanMessageEnvelope, status_code=201)
async def send_plan_message(
    plan_id: uuid.UUID,
    data: PlanMessageCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    message = await plan_message_service.send_message(db, user.id, plan_id, data.content)
    return {"message": message}


# --- Plan tasks ---


@router.post("/{plan_id}/tasks", response_model=PlanTaskEnvelope, status_code=201)
async def add_task(
    plan_id: uuid.UUID,
    data: PlanTaskCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    task = await plan_service.add_task(db, user.id, plan_id, data.model_dump())
    return {"task": task}


@router.patch("/{plan_id}/tasks", response_model=PlanTaskEnvelope)
async def update_task(
    plan_id: uuid.UUID,
    data: PlanTaskUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    changes = data.model_dump(exclude_unset=True)
    task_id = changes.pop("task_id")
    task = await plan_service.update_task(db, user.id, plan_id, task_id, changes)
    return {"task": task}


@router.delete("/{plan_id}/tasks", response_model=StatusMessage)
async def delete_task(
    plan_id: uuid.UUID,
    task_id: uuid.UUID = Query(alias="taskId"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await plan_service.delete_task(db, user.id, plan_id, task_id)
    return {"message": "Task deleted"}
