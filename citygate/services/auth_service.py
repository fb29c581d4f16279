"""
Authentication service for user login.

Rules:
- Validates credentials securely
- Returns minimal information on failure (no "user not found vs wrong password" distinction)
- Logs security events (login attempts)
- NEVER logs plaintext passwords or hashes
"""
from __future__ import annotations
from citygate.core.auth import issue_credential
from citygate.core.db import get_conn
from citygate.core.errors import Unauthenticated
from citygate.core.logger import log_security_event
from citygate.core.security import verify_password
from citygate.repositories import grant_repo, user_repo


def login_issue_token(email: str, password: str, ip: str | None = None) -> dict:
    """
    Authenticate user and issue a session credential.

    Args:
        email: User email address
        password: Plaintext password (compared against the bcrypt hash)
        ip: Client IP address (optional, for logging)

    Returns:
        Dict with token, expires_at, user and grants

    Raises:
        Unauthenticated: unknown email, wrong password or deactivated user
    """
    meta = {"ip": ip} if ip else {}
    with get_conn() as conn:
        row = user_repo.fetch_login_row(conn, email)
        if not row:
            log_security_event(action="login", result="failure", meta={**meta, "reason": "user_not_found"})
            raise Unauthenticated("Invalid credentials")

        user_id, pwd_hash, is_active = row
        if not is_active:
            log_security_event(
                action="login", result="failure", user_id=str(user_id), meta={**meta, "reason": "user_disabled"}
            )
            raise Unauthenticated("Invalid credentials")

        if not verify_password(password, pwd_hash):
            log_security_event(
                action="login", result="failure", user_id=str(user_id), meta={**meta, "reason": "invalid_password"}
            )
            raise Unauthenticated("Invalid credentials")

        user = user_repo.fetch_user(conn, user_id)
        grants = grant_repo.list_grants_for_user(conn, user_id)

    token, expires_at = issue_credential(user.id)
    log_security_event(action="login", result="success", user_id=user.id, meta={**meta, "role": user.role.value})

    return {
        "ok": True,
        "token": token,
        "expires_at": expires_at,
        "user": user,
        "grants": grants,
    }


def current_user(user_id: str) -> dict:
    """
    Profile and grants of the authenticated subject.

    Raises:
        Unauthenticated: the subject no longer exists or was deactivated
    """
    with get_conn() as conn:
        user = user_repo.fetch_user(conn, user_id)
        if user is None or not user.is_active:
            raise Unauthenticated()
        grants = grant_repo.list_grants_for_user(conn, user_id)
    return {"ok": True, "user": user, "grants": grants}
