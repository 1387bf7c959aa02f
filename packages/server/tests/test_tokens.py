"""
Tests for session, state and GitHub App tokens.
"""

from __future__ import annotations

import uuid
from datetime import timedelta

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from app.core import tokens
from app.core.config import get_settings
from app.core.errors import InvalidToken
from app.core.tokens import (
    GitHubAppConfigError,
    decode_state_token,
    issue_app_token,
    issue_session_token,
    issue_state_token,
    user_id_from_claims,
    verify_token,
)
from gestteam_shared.schemas.common import AccountType
from gestteam_shared.schemas.github import LinkState

settings = get_settings()


class TestSessionTokens:
    def test_round_trip(self):
        uid = uuid.uuid4()
        token = issue_session_token(uid)
        claims = verify_token(token)
        assert claims["uid"] == str(uid)
        assert claims["jti"]
        assert claims["exp"] > claims["iat"]
        assert user_id_from_claims(claims) == uid

    def test_each_token_has_its_own_jti(self):
        uid = uuid.uuid4()
        assert verify_token(issue_session_token(uid))["jti"] != verify_token(issue_session_token(uid))["jti"]

    def test_default_lifetime_is_a_day(self):
        claims = verify_token(issue_session_token(uuid.uuid4()))
        assert claims["exp"] - claims["iat"] == settings.session_expire_minutes * 60

    def test_expired_rejected(self):
        token = issue_session_token(uuid.uuid4(), expires_delta=timedelta(seconds=-5))
        with pytest.raises(InvalidToken):
            verify_token(token)

    def test_tampered_rejected(self):
        token = issue_session_token(uuid.uuid4())
        header, payload, signature = token.split(".")
        forged = f"{header}.{payload}.{signature[::-1]}"
        with pytest.raises(InvalidToken):
            verify_token(forged)

    def test_foreign_secret_rejected(self):
        token = jwt.encode(
            {"uid": str(uuid.uuid4())}, "a-different-secret-of-reasonable-length", algorithm="HS256"
        )
        with pytest.raises(InvalidToken):
            verify_token(token)

    @pytest.mark.parametrize("value", [None, "", "garbage", "a.b.c"])
    def test_malformed_rejected(self, value):
        with pytest.raises(InvalidToken):
            verify_token(value)

    def test_missing_uid(self):
        token = jwt.encode({"sub": "x"}, settings.secret_key, algorithm=settings.jwt_algorithm)
        with pytest.raises(InvalidToken):
            user_id_from_claims(verify_token(token))


class TestStateTokens:
    def test_round_trip(self):
        state = LinkState(identity="session-token", intent=AccountType.PERSONAL)
        decoded = decode_state_token(issue_state_token(state))
        assert decoded == state

    def test_url_safe(self):
        token = issue_state_token(LinkState(identity="x" * 300, intent=AccountType.INSTITUTIONAL))
        assert all(c.isalnum() or c in "-_." for c in token)

    def test_session_token_is_not_a_state(self):
        with pytest.raises(InvalidToken):
            decode_state_token(issue_session_token(uuid.uuid4()))

    def test_expired_state_rejected(self):
        token = issue_state_token(
            LinkState(identity="t", intent=AccountType.PERSONAL),
            expires_delta=timedelta(seconds=-1),
        )
        with pytest.raises(InvalidToken):
            decode_state_token(token)


class TestAppToken:
    @pytest.fixture
    def rsa_key(self):
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        pem = key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ).decode()
        return key, pem

    def test_claims_and_signature(self, monkeypatch, rsa_key):
        key, pem = rsa_key
        monkeypatch.setattr(settings, "github_app_id", "4242")
        monkeypatch.setattr(settings, "github_app_private_key", pem.replace("\n", "\\n"))

        token = issue_app_token(now=1_700_000_000)
        claims = jwt.decode(
            token,
            key.public_key(),
            algorithms=["RS256"],
            options={"verify_exp": False, "verify_iat": False},
        )
        assert claims == {"iat": 1_700_000_000 - 60, "exp": 1_700_000_000 + 540, "iss": "4242"}

    def test_key_file(self, monkeypatch, rsa_key, tmp_path):
        _, pem = rsa_key
        path = tmp_path / "app.pem"
        path.write_text(pem)
        monkeypatch.setattr(settings, "github_app_id", "1")
        monkeypatch.setattr(settings, "github_app_private_key", None)
        monkeypatch.setattr(settings, "github_app_private_key_path", str(path))
        assert tokens.load_app_private_key() == pem
        assert issue_app_token().count(".") == 2

    def test_missing_app_id(self, monkeypatch):
        monkeypatch.setattr(settings, "github_app_id", "")
        with pytest.raises(GitHubAppConfigError):
            issue_app_token()

    def test_missing_key(self, monkeypatch):
        monkeypatch.setattr(settings, "github_app_id", "1")
        monkeypatch.setattr(settings, "github_app_private_key", None)
        monkeypatch.setattr(settings, "github_app_private_key_path", None)
        with pytest.raises(GitHubAppConfigError):
            issue_app_token()
