"""
Session Authenticator state machine.
"""
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from citygate.core import auth
from citygate.core.auth import AuthState, authenticate, decode_credential, issue_credential
from citygate.core.config import settings
from citygate.core.db import get_conn
from citygate.core.errors import StoreUnavailable, TokenExpired, TokenInvalid
from citygate.repositories import user_repo


class TestCredentials:
    def test_round_trip_claims(self, world):
        token, expires_at = issue_credential(world.users["u2"].id)
        payload = decode_credential(token)
        assert payload["sub"] == world.users["u2"].id
        assert payload["typ"] == "session"
        assert payload["jti"]
        assert expires_at > datetime.now(timezone.utc)

    def test_expired(self):
        past = datetime.now(timezone.utc) - timedelta(days=1)
        token, _ = issue_credential("someone", lifetime=timedelta(minutes=5), now=past)
        with pytest.raises(TokenExpired):
            decode_credential(token)

    def test_wrong_signature(self):
        forged = jwt.encode(
            {"sub": "someone", "iat": datetime.now(timezone.utc),
             "exp": datetime.now(timezone.utc) + timedelta(hours=1), "typ": "session"},
            "not-the-secret-not-the-secret-not-the-secret",
            algorithm="HS256",
        )
        with pytest.raises(TokenInvalid):
            decode_credential(forged)

    def test_wrong_token_type(self):
        now = datetime.now(timezone.utc)
        other = jwt.encode(
            {"sub": "someone", "iat": now, "exp": now + timedelta(hours=1), "typ": "refresh"},
            settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
        )
        with pytest.raises(TokenInvalid):
            decode_credential(other)


class TestAuthenticate:
    def test_no_credential_is_not_an_error(self):
        result = authenticate(None)
        assert result.state is AuthState.UNAUTHENTICATED
        assert result.subject is None

    def test_valid_credential(self, world):
        token, _ = issue_credential(world.users["u3"].id)
        result = authenticate(token)
        assert result.is_authenticated
        assert result.subject == world.users["u3"].id
        assert result.rotated_credential is None
        assert result.transitions == [AuthState.UNAUTHENTICATED, AuthState.VALIDATING, AuthState.AUTHENTICATED]

    @pytest.mark.parametrize("raw", ["garbage", "a.b.c", "Bearer x"])
    def test_malformed_is_rejected(self, engine, raw):
        result = authenticate(raw)
        assert result.state is AuthState.REJECTED
        assert result.subject is None

    def test_expired_is_rejected(self, world):
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token, _ = issue_credential(world.users["u3"].id, lifetime=timedelta(minutes=30), now=past)
        result = authenticate(token)
        assert result.state is AuthState.REJECTED
        assert result.reason == "expired"
        assert result.credential_is_dead

    def test_unknown_and_inactive_subjects(self, world):
        token, _ = issue_credential("ghost")
        assert authenticate(token).reason == "unknown_subject"

        with get_conn() as conn:
            user_repo.set_active(conn, world.users["u2"].id, False)
        token, _ = issue_credential(world.users["u2"].id)
        assert authenticate(token).reason == "inactive_subject"

    def test_store_unavailable_is_rejected(self, world, monkeypatch):
        def down(*args, **kwargs):
            raise StoreUnavailable()

        monkeypatch.setattr(user_repo, "fetch_user", down)
        token, _ = issue_credential(world.users["u3"].id)
        result = authenticate(token)
        assert result.state is AuthState.REJECTED
        assert result.reason == "store_unavailable"
        assert not result.credential_is_dead

    def test_rotation_inside_refresh_window(self, world, near_expiry):
        now = datetime.now(timezone.utc)
        token, old_exp = issue_credential(world.users["u4"].id, lifetime=near_expiry, now=now)
        result = authenticate(token, now=now)
        assert result.is_authenticated
        assert AuthState.REFRESHING in result.transitions
        assert result.rotated_credential and result.rotated_credential != token
        assert result.expires_at > old_exp
        assert decode_credential(result.rotated_credential)["jti"] != decode_credential(token)["jti"]

    def test_failed_rotation_is_rejected(self, world, near_expiry, monkeypatch):
        token, _ = issue_credential(world.users["u4"].id, lifetime=near_expiry)

        def broken(*args, **kwargs):
            raise jwt.PyJWTError("signing failed")

        monkeypatch.setattr(auth, "issue_credential", broken)
        result = authenticate(token)
        assert result.state is AuthState.REJECTED
        assert result.transitions[-2:] == [AuthState.REFRESHING, AuthState.REJECTED]
        assert not result.credential_is_dead
