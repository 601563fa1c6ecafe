import uuid
from datetime import datetime
from typing import Literal

from app.schemas.base import CamelModel
from app.schemas.user import PublicUser


class PlanCreate(CamelModel):
    name: str
    description: str | None = None


class PlanUpdate(CamelModel):
    name: str | None = None
    description: str | None = None


class PlanMemberResponse(PublicUser):
    role: str
    joined_at: datetime


class PlanTaskResponse(CamelModel):
    id: uuid.UUID
    title: str
    description: str
    status: str
    assigned_to: uuid.UUID | None
    created_by: uuid.UUID
    created_at: datetime
    completed_at: datetime | None


class PlanSummary(CamelModel):
    id: uuid.UUID
    name: str
    description: str
    owner: PublicUser
    members: list[PlanMemberResponse]
    task_count: int
    completed_task_count: int
    user_role: str
    created_at: datetime
    updated_at: datetime


class PlanDetail(PlanSummary):
    tasks: list[PlanTaskResponse] = []


class PlanList(CamelModel):
    plans: list[PlanSummary]


class PlanEnvelope(CamelModel):
    plan: PlanDetail


class MemberRoleUpdate(CamelModel):
    user_id: uuid.UUID
    # Any string is accepted here; the service rejects anything but editor/viewer
    role: str


class PlanTaskCreate(CamelModel):
    title: str
    description: str | None = None
    assigned_to: uuid.UUID | None = None


class PlanTaskUpdate(CamelModel):
    task_id: uuid.UUID
    title: str | None = None
    description: str | None = None
    status: Literal["pending", "in-progress", "completed"] | None = None
    assigned_to: uuid.UUID | None = None


class PlanTaskEnvelope(CamelModel):
    task: PlanTaskResponse


class InvitationCreate(CamelModel):
    user_id: uuid.UUID
    role: str = "editor"


class InvitationCreated(CamelModel):
    message: str
    invitation_id: uuid.UUID


class InvitationAction(CamelModel):
    invitation_id: uuid.UUID
    action: Literal["accept", "decline"]


class InvitationPlan(CamelModel):
    id: uuid.UUID
    name: str
    description: str


class MyInvitation(CamelModel):
    id: uuid.UUID
    plan: InvitationPlan
    invited_by: PublicUser
    role: str
    created_at: datetime


class MyInvitationList(CamelModel):
    invitations: list[MyInvitation]


class PlanInvitation(CamelModel):
    id: uuid.UUID
    invited_user: PublicUser
    invited_by: PublicUser
    role: str
    created_at: datetime


class PlanInvitationList(CamelModel):
    invitations: list[PlanInvitation]


class PlanMessageCreate(CamelModel):
    content: str


class PlanMessageResponse(CamelModel):
    id: uuid.UUID
    content: str
    sender: PublicUser
    created_at: datetime


class PlanMessageEnvelope(CamelModel):
    message: PlanMessageResponse


class PlanMessagePage(CamelModel):
    messages: list[PlanMessageResponse]
    has_more: bool

