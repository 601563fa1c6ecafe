import asyncio
import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import settings
from app.exceptions import ConflictError, RateLimitError
from app.models import Base
from app.models.notification import Notification
from app.models.shared_plan import SharedPlan
from app.models.shared_plan_invitation import SharedPlanInvitation
from app.models.shared_plan_member import SharedPlanMember
from app.models.user import User
from app.services import invitation_service


@pytest.fixture
async def plan(db_session: AsyncSession, test_user) -> SharedPlan:
    plan = SharedPlan(owner_id=test_user.id, name="Trip", description="")
    db_session.add(plan)
    await db_session.commit()
    return plan


@pytest.fixture
def make_invitation(db_session: AsyncSession):
    async def _make(plan, inviter, invitee, role="editor", status="pending") -> SharedPlanInvitation:
        invitation = SharedPlanInvitation(
            plan_id=plan.id,
            invited_by=inviter.id,
            invited_user=invitee.id,
            role=role,
            status=status,
        )
        db_session.add(invitation)
        await db_session.commit()
        return invitation

    return _make


async def _member_count(db_session: AsyncSession, plan_id) -> int:
    return await db_session.scalar(
        select(func.count()).select_from(SharedPlanMember).where(
            SharedPlanMember.plan_id == plan_id
        )
    )


@pytest.mark.asyncio
async def test_invite_user(client, db_session: AsyncSession, plan, second_user):
    response = await client.post(
        f"/shared-plans/{plan.id}/invitations",
        json={"userId": str(second_user.id), "role": "viewer"},
    )
    assert response.status_code == 201
    invitation = await db_session.get(
        SharedPlanInvitation, uuid.UUID(response.json()["invitationId"])
    )
    assert invitation.status == "pending"
    assert invitation.role == "viewer"

    notified = await db_session.scalar(
        select(func.count()).select_from(Notification).where(
            Notification.user_id == second_user.id
        )
    )
    assert notified == 1


@pytest.mark.asyncio
async def test_duplicate_pending_invitation(client, plan, second_user):
    url = f"/shared-plans/{plan.id}/invitations"
    first = await client.post(url, json={"userId": str(second_user.id)})
    assert first.status_code == 201

    second = await client.post(url, json={"userId": str(second_user.id)})
    assert second.status_code == 409


@pytest.mark.asyncio
async def test_invite_existing_member_or_owner(client, db_session: AsyncSession, plan, test_user, second_user):
    db_session.add(SharedPlanMember(plan_id=plan.id, user_id=second_user.id, role="viewer"))
    await db_session.commit()
    url = f"/shared-plans/{plan.id}/invitations"

    response = await client.post(url, json={"userId": str(second_user.id)})
    assert response.status_code == 409

    response = await client.post(url, json={"userId": str(test_user.id)})
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_invite_permissions_and_validation(client, act_as, db_session: AsyncSession, plan, second_user, third_user):
    db_session.add(SharedPlanMember(plan_id=plan.id, user_id=second_user.id, role="viewer"))
    await db_session.commit()
    url = f"/shared-plans/{plan.id}/invitations"

    response = await client.post(url, json={"userId": str(third_user.id), "role": "owner"})
    assert response.status_code == 400

    response = await client.post(url, json={"userId": str(uuid.uuid4())})
    assert response.status_code == 404

    act_as(second_user)
    response = await client.post(url, json={"userId": str(third_user.id)})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_accept_invitation(client, act_as, db_session: AsyncSession, plan, make_invitation, test_user, second_user):
    invitation = await make_invitation(plan, test_user, second_user, role="viewer")

    act_as(second_user)
    pending = (await client.get("/shared-plans/invitations")).json()["invitations"]
    assert [i["id"] for i in pending] == [str(invitation.id)]
    assert pending[0]["plan"]["name"] == "Trip"

    response = await client.patch(
        "/shared-plans/invitations",
        json={"invitationId": str(invitation.id), "action": "accept"},
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Joined plan"

    detail = (await client.get(f"/shared-plans/{plan.id}")).json()["plan"]
    assert detail["userRole"] == "viewer"
    assert (await client.get("/shared-plans/invitations")).json()["invitations"] == []


@pytest.mark.asyncio
async def test_decline_invitation(client, act_as, db_session: AsyncSession, plan, make_invitation, test_user, second_user):
    invitation = await make_invitation(plan, test_user, second_user)

    act_as(second_user)
    response = await client.patch(
        "/shared-plans/invitations",
        json={"invitationId": str(invitation.id), "action": "decline"},
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Invitation declined"
    assert await _member_count(db_session, plan.id) == 0

    # A declined invitation no longer blocks a fresh one
    act_as(test_user)
    response = await client.post(
        f"/shared-plans/{plan.id}/invitations", json={"userId": str(second_user.id)}
    )
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_only_invitee_can_respond(client, act_as, plan, make_invitation, test_user, second_user, third_user):
    invitation = await make_invitation(plan, test_user, second_user)

    act_as(third_user)
    response = await client.patch(
        "/shared-plans/invitations",
        json={"invitationId": str(invitation.id), "action": "accept"},
    )
    assert response.status_code == 403

    response = await client.patch(
        "/shared-plans/invitations",
        json={"invitationId": str(uuid.uuid4()), "action": "accept"},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_double_accept_adds_member_once(client, act_as, db_session: AsyncSession, plan, make_invitation, test_user, second_user):
    invitation = await make_invitation(plan, test_user, second_user)
    body = {"invitationId": str(invitation.id), "action": "accept"}

    act_as(second_user)
    statuses = [
        (await client.patch("/shared-plans/invitations", json=body)).status_code
        for _ in range(5)
    ]
    assert statuses.count(200) == 1
    assert statuses.count(409) == 4
    assert await _member_count(db_session, plan.id) == 1


@pytest.mark.asyncio
async def test_stale_read_loses_compare_and_swap(
    session_factory, db_session: AsyncSession, plan, make_invitation, test_user, second_user
):
    invitation = await make_invitation(plan, test_user, second_user)

    async with session_factory() as stale, session_factory() as fresh:
        # The stale session has already seen the invitation as pending
        seen = await stale.get(SharedPlanInvitation, invitation.id)
        assert seen.status == "pending"

        assert await invitation_service.respond(fresh, second_user.id, invitation.id, accept=True) == "Joined plan"
        await fresh.commit()

        with pytest.raises(ConflictError):
            await invitation_service.respond(stale, second_user.id, invitation.id, accept=True)
        await stale.rollback()

    assert await _member_count(db_session, plan.id) == 1
    accepted_notices = await db_session.scalar(
        select(func.count()).select_from(Notification).where(
            Notification.dedup_key == f"plan_invitation_accepted:{invitation.id}"
        )
    )
    assert accepted_notices == 1


@pytest.mark.asyncio
async def test_list_and_cancel_plan_invitations(client, act_as, plan, make_invitation, test_user, second_user, third_user):
    invitation = await make_invitation(plan, test_user, second_user)
    await make_invitation(plan, test_user, third_user, status="declined")
    url = f"/shared-plans/{plan.id}/invitations"

    response = await client.get(url)
    assert response.status_code == 200
    invitations = response.json()["invitations"]
    assert [i["invitedUser"]["id"] for i in invitations] == [str(second_user.id)]

    act_as(second_user)
    response = await client.get(url)
    assert response.status_code == 403

    act_as(test_user)
    response = await client.delete(f"{url}?id={invitation.id}")
    assert response.status_code == 200
    assert (await client.get(url)).json()["invitations"] == []


@pytest.mark.asyncio
async def test_invite_daily_limit(db_session: AsyncSession, fake_redis, plan, test_user, second_user):
    key = f"plan_invites:{test_user.id}:{datetime.now(timezone.utc).date()}"
    await fake_redis.set(key, str(settings.PLAN_INVITE_DAILY_LIMIT))

    with pytest.raises(RateLimitError):
        await invitation_service.invite(
            db_session, test_user.id, plan.id, second_user.id, "editor", fake_redis
        )


@pytest.mark.asyncio
async def test_concurrent_accepts_add_member_once(tmp_path):
    # A file database gives every session its own connection, so the accepts interleave
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'accepts.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    owner = User(id=uuid.uuid4(), email="owner@example.com", display_name="Owner")
    invitee = User(id=uuid.uuid4(), email="invitee@example.com", display_name="Invitee")
    async with factory() as session:
        session.add_all([owner, invitee])
        plan = SharedPlan(owner_id=owner.id, name="Trip", description="")
        session.add(plan)
        await session.flush()
        invitation = SharedPlanInvitation(
            plan_id=plan.id, invited_by=owner.id, invited_user=invitee.id, role="editor"
        )
        session.add(invitation)
        await session.commit()

    async def accept() -> str:
        async with factory() as session:
            try:
                message = await invitation_service.respond(
                    session, invitee.id, invitation.id, accept=True
                )
                await session.commit()
                return message
            except ConflictError:
                await session.rollback()
                return "conflict"

    results = await asyncio.gather(*(accept() for _ in range(8)))

    assert results.count("Joined plan") == 1
    assert results.count("conflict") == 7
    async with factory() as session:
        members = await session.scalar(
            select(func.count()).select_from(SharedPlanMember).where(
                SharedPlanMember.plan_id == plan.id
            )
        )
        notices = await session.scalar(
            select(func.count()).select_from(Notification).where(
                Notification.dedup_key == f"plan_invitation_accepted:{invitation.id}"
            )
        )
    assert members == 1
    assert notices == 1

    await engine.dispose()
