"""
Session Authenticator: credential signing, validation and rotation.

Rules:
- Sign credentials with the private key from the environment (JWT_SECRET)
- NEVER log credentials
- No credential is a normal outcome (UNAUTHENTICATED), not an error
- Any signature/format/expiry problem, unknown or deactivated subject -> REJECTED
- Near expiry the credential is re-issued with a new jti; rotation is stateless,
  so two concurrent refreshes of the same credential both succeed
- Credentials are read from the session cookie first, then Authorization: Bearer
"""
from __future__ import annotations
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional
import jwt
from sqlalchemy.exc import SQLAlchemyError
from starlette.requests import HTTPConnection
from citygate.core.config import settings
from citygate.core.db import get_conn
from citygate.core.errors import CityGateError, TokenError, TokenExpired, TokenInvalid
from citygate.core.logger import get_logger
from citygate.core.roles import GlobalRole
from citygate.repositories import user_repo

log = get_logger("auth")

TOKEN_TYPE = "session"

# Rejections that say the credential itself can never succeed again.
# Store outages and failed refreshes leave a still-valid credential alone.
DEAD_CREDENTIAL_REASONS = frozenset({"invalid", "expired", "unknown_subject", "inactive_subject"})


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    VALIDATING = "validating"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"
    REJECTED = "rejected"


@dataclass
class AuthResult:
    """
    Outcome of one authentication pass.

    `transitions` records every state visited, ending in `state`.
    `rotated_credential` is set only when the credential was refreshed; the
    caller must hand it back to the client and use it for the rest of the
    request.
    """
    state: AuthState
    subject: Optional[str] = None
    role: Optional[GlobalRole] = None
    expires_at: Optional[datetime] = None
    rotated_credential: Optional[str] = None
    reason: Optional[str] = None
    transitions: list[AuthState] = field(default_factory=list)

    @property
    def is_authenticated(self) -> bool:
        return self.state is AuthState.AUTHENTICATED

    @property
    def credential_is_dead(self) -> bool:
        return self.state is AuthState.REJECTED and self.reason in DEAD_CREDENTIAL_REASONS


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def issue_credential(
    user_id: str,
    lifetime: Optional[timedelta] = None,
    now: Optional[datetime] = None,
) -> tuple[str, datetime]:
    """
    Sign a new session credential for `user_id`.

    Args:
        user_id: Subject of the credential
        lifetime: Override of the configured lifetime (tests, rotation)
        now: Issue time, defaults to the current UTC time

    Returns:
        (encoded credential, expiry)
    """
    now = now or _utcnow()
    expires_at = now + (lifetime or timedelta(minutes=settings.credential_lifetime_minutes))
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": expires_at,
        "jti": uuid.uuid4().hex,
        "typ": TOKEN_TYPE,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM), expires_at


def decode_credential(raw: str, now: Optional[datetime] = None) -> dict[str, Any]:
    """
    Verify signature, format and expiry.

    Raises:
        TokenExpired: signature valid but past `exp`
        TokenInvalid: anything else wrong with it
    """
    try:
        payload = jwt.decode(
            raw,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["sub", "exp", "iat"], "verify_exp": False, "verify_iat": False},
        )
    except jwt.InvalidTokenError as e:
        raise TokenInvalid() from e

    if payload.get("typ") != TOKEN_TYPE or not payload.get("sub"):
        raise TokenInvalid()
    # Expiry checked here so `now` can be injected
    exp = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
    if exp <= (now or _utcnow()):
        raise TokenExpired()
    return payload


def needs_refresh(expires_at: datetime, now: datetime) -> bool:
    return expires_at - now < timedelta(minutes=settings.JWT_REFRESH_WINDOW_MIN)


def authenticate(raw: Optional[str], now: Optional[datetime] = None) -> AuthResult:
    """
    Run the session state machine for one request.

    UNAUTHENTICATED -> VALIDATING -> AUTHENTICATED
                                  -> REFRESHING -> AUTHENTICATED | REJECTED
                                  -> REJECTED
    Never raises.
    """
    now = now or _utcnow()
    trail = [AuthState.UNAUTHENTICATED]
    if not raw:
        return AuthResult(state=AuthState.UNAUTHENTICATED, transitions=trail)

    def reject(reason: str, subject: Optional[str] = None) -> AuthResult:
        trail.append(AuthState.REJECTED)
        log.info("Session rejected", extra={"action": "authenticate", "result": reason, "user_id": subject})
        return AuthResult(state=AuthState.REJECTED, subject=None, reason=reason, transitions=trail)

    trail.append(AuthState.VALIDATING)
    try:
        payload = decode_credential(raw, now)
    except TokenExpired:
        return reject("expired")
    except TokenError:
        return reject("invalid")

    subject = str(payload["sub"])
    try:
        with get_conn() as conn:
            user = user_repo.fetch_user(conn, subject)
    except (CityGateError, SQLAlchemyError):
        return reject("store_unavailable", subject)
    if user is None:
        return reject("unknown_subject", subject)
    if not user.is_active:
        return reject("inactive_subject", subject)

    expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
    rotated = None
    if needs_refresh(expires_at, now):
        trail.append(AuthState.REFRESHING)
        try:
            rotated, expires_at = issue_credential(subject, now=now)
        except jwt.PyJWTError:
            return reject("refresh_failed", subject)

    trail.append(AuthState.AUTHENTICATED)
    return AuthResult(
        state=AuthState.AUTHENTICATED,
        subject=subject,
        role=user.role,
        expires_at=expires_at,
        rotated_credential=rotated,
        transitions=trail,
    )


def extract_credential(conn: HTTPConnection) -> Optional[str]:
    """Session cookie first, then `Authorization: Bearer <token>`."""
    cookie = conn.cookies.get(settings.SESSION_COOKIE_NAME)
    if cookie:
        return cookie
    header = conn.headers.get("authorization")
    if header and header.lower().startswith("bearer "):
        return header.split(" ", 1)[1].strip() or None
    return None
