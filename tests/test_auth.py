import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.dependencies import get_current_user
from app.exceptions import ConflictError, ValidationError
from app.main import app
from app.models.user import User
from app.services.auth_service import (
    decode_access_token,
    hash_password,
    issue_access_token,
    login_with_email,
    register_user,
    verify_password,
)


@pytest.mark.asyncio
async def test_issue_access_token():
    user_id = uuid.uuid4()
    tokens = issue_access_token(user_id)
    assert "access_token" in tokens
    assert tokens["token_type"] == "bearer"
    assert tokens["expires_in"] > 0
    assert decode_access_token(tokens["access_token"]) == user_id


def test_decode_rejects_garbage():
    with pytest.raises(ValueError):
        decode_access_token("not-a-token")


def test_password_hash_roundtrip():
    hashed = hash_password("correct horse")
    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong horse", hashed)


@pytest.mark.asyncio
async def test_register_user_normalizes_email(db_session: AsyncSession):
    user = await register_user(db_session, "  New@Example.com ", "password123", "New User")
    assert user.email == "new@example.com"
    assert user.password_hash is not None


@pytest.mark.asyncio
async def test_register_duplicate_email(db_session: AsyncSession, test_user: User):
    with pytest.raises(ConflictError):
        await register_user(db_session, "TEST@example.com", "password123", "Dup")


@pytest.mark.asyncio
async def test_register_blank_display_name(db_session: AsyncSession):
    with pytest.raises(ValidationError):
        await register_user(db_session, "blank@example.com", "password123", "   ")


@pytest.mark.asyncio
async def test_login_wrong_password(db_session: AsyncSession):
    await register_user(db_session, "login@example.com", "password123", "Login")
    with pytest.raises(ValueError):
        await login_with_email(db_session, "login@example.com", "password999")


@pytest.mark.asyncio
async def test_register_and_login_endpoints(client):
    response = await client.post(
        "/auth/register",
        json={"email": "fresh@example.com", "password": "password123", "displayName": "Fresh"},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["tokenType"] == "bearer"
    assert data["user"]["email"] == "fresh@example.com"
    assert "auth_token" in response.cookies

    response = await client.post(
        "/auth/login",
        json={"email": "fresh@example.com", "password": "password123"},
    )
    assert response.status_code == 200
    assert response.json()["user"]["displayName"] == "Fresh"

    response = await client.post(
        "/auth/login",
        json={"email": "fresh@example.com", "password": "nope-nope"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_register_duplicate_endpoint(client, test_user):
    response = await client.post(
        "/auth/register",
        json={"email": test_user.email, "password": "password123", "displayName": "Again"},
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_register_invalid_body(client):
    response = await client.post(
        "/auth/register",
        json={"email": "not-an-email", "password": "short", "displayName": "X"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_me_with_bearer_token(client, test_user):
    app.dependency_overrides.pop(get_current_user)
    token = issue_access_token(test_user.id)["access_token"]

    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.json()["id"] == str(test_user.id)


@pytest.mark.asyncio
async def test_me_without_token(client):
    app.dependency_overrides.pop(get_current_user)

    response = await client.get("/auth/me")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_banned_user_is_rejected(client, db_session: AsyncSession, test_user: User):
    app.dependency_overrides.pop(get_current_user)
    test_user.is_banned = True
    test_user.ban_reason = "spam"
    db_session.add(test_user)
    await db_session.commit()
    token = issue_access_token(test_user.id)["access_token"]

    response = await client.get("/friends", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403
    assert response.json()["detail"] == "Account suspended"


def test_hash_password_rejects_over_72_bytes():
    with pytest.raises(ValidationError):
        hash_password("p" * 100)
    assert not verify_password("p" * 100, hash_password("p" * 72))


@pytest.mark.asyncio
async def test_register_overlong_password(client):
    response = await client.post(
        "/auth/register",
        json={"email": "long@example.com", "password": "p" * 100, "displayName": "Long"},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid request"


@pytest.mark.asyncio
async def test_register_multibyte_password_over_72_bytes(client):
    # 45 characters, 90 bytes
    response = await client.post(
        "/auth/register",
        json={"email": "emoji@example.com", "password": "é" * 45, "displayName": "Emoji"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_login_overlong_password(client, db_session: AsyncSession):
    await register_user(db_session, "login2@example.com", "password123", "Login")
    await db_session.commit()

    response = await client.post(
        "/auth/login",
        json={"email": "login2@example.com", "password": "p" * 100},
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"
