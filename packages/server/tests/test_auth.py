"""
Tests for authentication: password hashing, token extraction, login,
logout/revocation, the current-user dependency and user management.
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import jwt
import pytest

from app.core.auth import (
    extract_token,
    hash_password,
    needs_rehash,
    verify_password,
)
from app.core.config import get_settings
from app.core.tokens import issue_session_token, verify_token
from app.models.user import User

from conftest import DOMAIN, bearer, make_role, make_user

settings = get_settings()


# ---------------------------------------------------------------------------
# Unit Tests: Password hashing
# ---------------------------------------------------------------------------

class TestPasswordHashing:
    def test_hash_and_verify(self):
        hashed = hash_password("MySecureP@ssw0rd!")
        assert hashed != "MySecureP@ssw0rd!"
        assert verify_password("MySecureP@ssw0rd!", hashed)
        assert not verify_password("wrong", hashed)

    def test_different_hashes_for_same_password(self):
        """bcrypt uses random salt, so hashes differ."""
        assert hash_password("same") != hash_password("same")

    def test_legacy_plaintext(self):
        assert verify_password("123456", "123456")
        assert not verify_password("1234567", "123456")
        assert needs_rehash("123456")
        assert not needs_rehash(hash_password("123456"))

    @pytest.mark.parametrize("stored", [None, ""])
    def test_missing_hash_never_matches(self, stored):
        assert not verify_password("", stored)
        assert not needs_rehash(stored)


class TestExtractToken:
    def test_bearer_wins(self):
        assert extract_token("Bearer abc", "xyz") == "abc"

    def test_query_fallback(self):
        assert extract_token(None, "xyz") == "xyz"
        assert extract_token("Basic Zm9v", "xyz") == "xyz"
        assert extract_token("Bearer ", "xyz") == "xyz"

    def test_nothing(self):
        assert extract_token(None, None) is None
        assert extract_token("", "") is None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

class TestLogin:
    @pytest.mark.asyncio
    async def test_login_returns_token_and_role(self, client, session):
        role = await make_role(session, "DOCENTE")
        user = await make_user(session, password_hash=hash_password("s3cret"), role_id=role.id)
        await session.commit()

        resp = await client.post("/auth/login", json={"email": f"ANA@{DOMAIN}", "password": "s3cret"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Signed in"
        assert body["role"] == "DOCENTE"
        assert body["data"]["id"] == str(user.id)
        assert "password_hash" not in body["data"]
        assert verify_token(body["token"])["uid"] == str(user.id)

    @pytest.mark.asyncio
    async def test_legacy_password_is_upgraded(self, client, session):
        user = await make_user(session, password_hash="123456")
        await session.commit()

        resp = await client.post("/auth/login", json={"email": user.email, "password": "123456"})
        assert resp.status_code == 200

        user_id = user.id
        session.expire_all()
        stored = (await session.get(User, user_id)).password_hash
        assert stored.startswith("$2")
        assert verify_password("123456", stored)

    @pytest.mark.asyncio
    async def test_wrong_password(self, client, session):
        await make_user(session, password_hash=hash_password("s3cret"))
        await session.commit()
        resp = await client.post("/auth/login", json={"email": f"ana@{DOMAIN}", "password": "nope"})
        assert resp.status_code == 401
        assert resp.json() == {"ok": False, "error": "Invalid email or password", "code": "UNAUTHENTICATED"}

    @pytest.mark.asyncio
    async def test_unknown_and_inactive_users_look_the_same(self, client, session):
        await make_user(session, password_hash=hash_password("s3cret"), active=False)
        await session.commit()
        for email in (f"ana@{DOMAIN}", f"nobody@{DOMAIN}"):
            resp = await client.post("/auth/login", json={"email": email, "password": "s3cret"})
            assert resp.status_code == 401
            assert resp.json()["error"] == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_non_institutional_email(self, client):
        resp = await client.post("/auth/login", json={"email": "ana@gmail.com", "password": "x"})
        assert resp.status_code == 400
        assert resp.json()["error"] == f"The email must be institutional (@{DOMAIN})"

    @pytest.mark.asyncio
    async def test_missing_fields(self, client):
        resp = await client.post("/auth/login", json={"email": "", "password": ""})
        assert resp.status_code == 400


class TestSession:
    @pytest.mark.asyncio
    async def test_me(self, client, session):
        user = await make_user(session)
        await session.commit()
        resp = await client.get("/auth/me", headers=bearer(user))
        assert resp.status_code == 200
        assert resp.json()["data"]["email"] == user.email
        assert resp.json()["role"] is None

    @pytest.mark.asyncio
    async def test_me_via_query_token(self, client, session):
        user = await make_user(session)
        await session.commit()
        resp = await client.get(f"/auth/me?t={issue_session_token(user.id)}")
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_anonymous(self, client):
        resp = await client.get("/auth/me")
        assert resp.status_code == 401
        assert resp.json() == {"ok": False, "error": "Not authenticated", "code": "UNAUTHENTICATED"}

    @pytest.mark.asyncio
    async def test_expired_token_is_anonymous(self, client, session):
        user = await make_user(session)
        await session.commit()
        token = issue_session_token(user.id, expires_delta=timedelta(seconds=-1))
        resp = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json()["error"] == "Not authenticated"

    @pytest.mark.asyncio
    async def test_token_for_deleted_user(self, client):
        resp = await client.get(
            "/auth/me", headers={"Authorization": f"Bearer {issue_session_token(uuid.uuid4())}"}
        )
        assert resp.status_code == 401

    @pytest.mark.asyncio
    @pytest.mark.parametrize("claims", [{"sub": "x"}, {"uid": "not-a-uuid"}])
    async def test_token_without_usable_uid(self, client, claims):
        token = jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)
        resp = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json()["error"] == "Not authenticated"

    @pytest.mark.asyncio
    async def test_logout_revokes_jti(self, client, session):
        user = await make_user(session)
        await session.commit()
        token = issue_session_token(user.id)
        jti = verify_token(token)["jti"]

        with patch("app.api.v1.auth.revoke_token", AsyncMock()) as revoke:
            resp = await client.post("/auth/logout", headers={"Authorization": f"Bearer {token}"})

        assert resp.json() == {"ok": True, "message": "Logged out"}
        revoke.assert_awaited_once()
        args = revoke.await_args.args
        assert args[0] == jti
        assert 0 < args[1] <= 24 * 60 * 60

    @pytest.mark.asyncio
    async def test_revoked_token_is_rejected(self, client, session, not_revoked):
        user = await make_user(session)
        await session.commit()
        not_revoked.return_value = True
        resp = await client.get("/auth/me", headers=bearer(user))
        assert resp.status_code == 401
        assert resp.json()["error"] == "Session has been revoked"


class TestRevocationList:
    @pytest.mark.asyncio
    async def test_revoke_and_check(self):
        mock_redis = AsyncMock()
        mock_redis.exists = AsyncMock(return_value=1)

        with patch("app.core.redis.get_redis", return_value=mock_redis):
            from app.core.redis import is_token_revoked, revoke_token

            await revoke_token("jti-123", 3600)
            mock_redis.setex.assert_awaited_once_with("gt:session:revoked:jti-123", 3600, "1")
            assert await is_token_revoked("jti-123") is True

    @pytest.mark.asyncio
    async def test_ttl_is_at_least_one_second(self):
        mock_redis = AsyncMock()
        with patch("app.core.redis.get_redis", return_value=mock_redis):
            from app.core.redis import revoke_token

            await revoke_token("jti-old", -30)
            mock_redis.setex.assert_awaited_once_with("gt:session:revoked:jti-old", 1, "1")

    @pytest.mark.asyncio
    async def test_unknown_jti(self):
        mock_redis = AsyncMock()
        mock_redis.exists = AsyncMock(return_value=0)
        with patch("app.core.redis.get_redis", return_value=mock_redis):
            from app.core.redis import is_token_revoked

            assert await is_token_revoked("other") is False


class TestUsers:
    @pytest.mark.asyncio
    async def test_crud(self, client, session):
        admin = await make_user(session)
        role = await make_role(session, "DOCENTE")
        await session.commit()
        headers = bearer(admin)

        payload = {
            "first_name": "Beto",
            "last_name": "Rojas",
            "phone": "70000000",
            "ci": 123,
            "email": f"Beto@{DOMAIN}",
            "password": "pw",
            "confirm_password": "pw",
            "role_id": str(role.id),
        }
        resp = await client.post("/users", json=payload, headers=headers)
        assert resp.status_code == 201
        created = resp.json()["data"]
        assert created["email"] == f"beto@{DOMAIN}"

        resp = await client.post("/users", json=payload, headers=headers)
        assert resp.status_code == 400

        resp = await client.put(
            f"/users/{created['id']}", json={"last_name": "Vargas"}, headers=headers
        )
        assert resp.json()["data"]["last_name"] == "Vargas"

        resp = await client.get("/users", headers=headers)
        assert {u["email"] for u in resp.json()["data"]} == {admin.email, f"beto@{DOMAIN}"}

        resp = await client.delete(f"/users/{created['id']}", headers=headers)
        assert resp.json()["message"] == "User deleted"
        resp = await client.get(f"/users/{created['id']}", headers=headers)
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_password_mismatch_is_rejected(self, client, session):
        admin = await make_user(session)
        await session.commit()
        resp = await client.post(
            "/users",
            json={
                "first_name": "B", "last_name": "R", "phone": "1", "ci": 1,
                "email": f"b@{DOMAIN}", "password": "a", "confirm_password": "b",
                "role_id": str(uuid.uuid4()),
            },
            headers=bearer(admin),
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_role(self, client, session):
        admin = await make_user(session)
        await session.commit()
        resp = await client.post(
            "/users",
            json={
                "first_name": "B", "last_name": "R", "phone": "1", "ci": 1,
                "email": f"b@{DOMAIN}", "password": "a", "confirm_password": "a",
                "role_id": str(uuid.uuid4()),
            },
            headers=bearer(admin),
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "Unknown role"
