"""End-to-end integration test covering the collaboration workflow."""
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.database import get_db
from app.main import app
from app.models import Base


@pytest.mark.asyncio
async def test_full_workflow():
    """Register two users -> befriend -> message -> share a plan -> invite ->
    accept -> chat -> demote -> leave."""

    # Setup
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.state.redis = None

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        # 1. Register Alice and Bob with real tokens
        resp = await client.post("/auth/register", json={
            "email": "alice@test.com", "password": "password123", "displayName": "Alice",
        })
        assert resp.status_code == 201
        alice_id = resp.json()["user"]["id"]
        alice = {"Authorization": f"Bearer {resp.json()['accessToken']}"}

        resp = await client.post("/auth/register", json={
            "email": "bob@test.com", "password": "password123", "displayName": "Bob",
        })
        assert resp.status_code == 201
        bob_id = resp.json()["user"]["id"]
        bob = {"Authorization": f"Bearer {resp.json()['accessToken']}"}
        client.cookies.clear()

        # 2. Alice finds Bob and sends a friend request
        resp = await client.get("/friends/search", params={"q": "bob"}, headers=alice)
        assert [u["id"] for u in resp.json()["users"]] == [bob_id]

        resp = await client.post("/friends", json={"recipientId": bob_id}, headers=alice)
        assert resp.status_code == 201
        friendship_id = resp.json()["friendshipId"]

        # 3. Bob sees the request and a notification, then accepts
        resp = await client.get("/friends", headers=bob)
        assert [r["id"] for r in resp.json()["pendingRequests"]] == [alice_id]
        resp = await client.get("/notifications", headers=bob)
        assert resp.json()["notifications"][0]["type"] == "friend_request"

        resp = await client.patch(
            "/friends", json={"friendshipId": friendship_id, "action": "accept"}, headers=bob
        )
        assert resp.status_code == 200

        # 4. Direct messages
        resp = await client.post(
            "/messages", json={"recipientId": bob_id, "content": "Trip?"}, headers=alice
        )
        assert resp.status_code == 201
        conversation_id = resp.json()["message"]["conversationId"]

        resp = await client.get("/messages", headers=bob)
        assert resp.json()["conversations"][0]["unreadCount"] == 1
        resp = await client.patch(f"/messages/{conversation_id}", headers=bob)
        assert resp.json()["count"] == 1

        # 5. Alice creates a plan and invites Bob
        resp = await client.post("/shared-plans", json={"name": "Trip"}, headers=alice)
        assert resp.status_code == 201
        plan_id = resp.json()["plan"]["id"]

        resp = await client.post(
            f"/shared-plans/{plan_id}/invitations", json={"userId": bob_id}, headers=alice
        )
        assert resp.status_code == 201

        # 6. Bob accepts; the plan now has two members
        resp = await client.get("/shared-plans/invitations", headers=bob)
        invitation_id = resp.json()["invitations"][0]["id"]
        resp = await client.patch(
            "/shared-plans/invitations",
            json={"invitationId": invitation_id, "action": "accept"},
            headers=bob,
        )
        assert resp.json()["message"] == "Joined plan"

        resp = await client.get(f"/shared-plans/{plan_id}", headers=alice)
        members = resp.json()["plan"]["members"]
        assert [(m["id"], m["role"]) for m in members] == [(alice_id, "owner"), (bob_id, "editor")]

        # 7. Plan chat and tasks
        resp = await client.post(
            f"/shared-plans/{plan_id}/messages", json={"content": "Joined!"}, headers=bob
        )
        assert resp.status_code == 201
        resp = await client.post(
            f"/shared-plans/{plan_id}/tasks", json={"title": "Book hotel"}, headers=bob
        )
        assert resp.status_code == 201

        # 8. Alice demotes Bob; viewers cannot add tasks
        resp = await client.patch(
            f"/shared-plans/{plan_id}/members",
            json={"userId": bob_id, "role": "viewer"},
            headers=alice,
        )
        assert resp.status_code == 200
        resp = await client.post(
            f"/shared-plans/{plan_id}/tasks", json={"title": "Nope"}, headers=bob
        )
        assert resp.status_code == 403

        # 9. Bob leaves; Alice is the sole member again
        resp = await client.delete(
            f"/shared-plans/{plan_id}/members", params={"userId": bob_id}, headers=bob
        )
        assert resp.json()["message"] == "Left plan"

        resp = await client.get(f"/shared-plans/{plan_id}", headers=alice)
        assert len(resp.json()["plan"]["members"]) == 1

        # 10. Alice cannot leave her own plan
        resp = await client.delete(
            f"/shared-plans/{plan_id}/members", params={"userId": alice_id}, headers=alice
        )
        assert resp.status_code == 400

    # Cleanup
    app.dependency_overrides.clear()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()
