"""
Client-Side Auth Guard.

For rendering contexts that cannot see the credential the gatekeeper
validated. Before first paint of protected content it re-runs an equivalent,
side-effect-free session check.

This is a client library: nothing in the server imports it. Its server
counterpart is GET /api/v1/auth/session (citygate.api.v1.auth), which
SessionCheck calls over httpx.

Rules:
- Authentication only; tenant-role authorization stays with the data calls
- While pending (or stale) render a deterministic neutral loading view,
  never the protected content
- On failure redirect to login with the same returnTo shape as the gatekeeper
- A positive check is trusted for at most GUARD_MAX_STALENESS_SEC and never
  past the credential's own expiry
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional, Union
import httpx
from citygate.api.gatekeeper import build_login_redirect, split_locale
from citygate.core.config import settings
from citygate.core.logger import get_logger

log = get_logger("guard")

LOADING_VIEW = '<div class="citygate-guard" role="status" aria-busy="true"></div>'


class GuardPhase(str, Enum):
    PENDING = "pending"
    AUTHENTICATED = "authenticated"
    REDIRECT = "redirect"


@dataclass(frozen=True)
class SessionStatus:
    authenticated: bool
    user_id: Optional[str] = None
    expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class GuardView:
    phase: GuardPhase
    html: Optional[str] = None
    redirect_to: Optional[str] = None


SessionCheckFn = Callable[[], Awaitable[SessionStatus]]
Children = Union[str, Callable[[], str]]


class SessionCheck:
    """Asks the server whether the browser's credential is still good."""

    def __init__(self, client: httpx.AsyncClient, path: str = "/api/v1/auth/session"):
        self.client = client
        self.path = path

    async def __call__(self) -> SessionStatus:
        resp = await self.client.get(self.path)
        if resp.status_code != 200:
            return SessionStatus(authenticated=False)
        data = resp.json()
        if not data.get("authenticated"):
            return SessionStatus(authenticated=False)
        expires_at = data.get("expires_at")
        return SessionStatus(
            authenticated=True,
            user_id=data.get("user_id"),
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
        )


class AuthGuard:
    def __init__(
        self,
        check: SessionCheckFn,
        return_to: str,
        max_staleness: Optional[timedelta] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.check = check
        self.return_to = return_to
        self.max_staleness = max_staleness or timedelta(seconds=settings.GUARD_MAX_STALENESS_SEC)
        self.clock = clock
        self.phase = GuardPhase.PENDING
        self.status: Optional[SessionStatus] = None
        self.checked_at: Optional[datetime] = None

    @property
    def login_url(self) -> str:
        locale, _ = split_locale(self.return_to)
        return build_login_redirect(self.return_to, locale)

    @property
    def valid_until(self) -> Optional[datetime]:
        if self.checked_at is None:
            return None
        bound = self.checked_at + self.max_staleness
        if self.status and self.status.expires_at and self.status.expires_at < bound:
            return self.status.expires_at
        return bound

    def is_stale(self, now: Optional[datetime] = None) -> bool:
        until = self.valid_until
        return until is None or (now or self.clock()) >= until

    async def mount(self) -> GuardPhase:
        """Run the check; any failure to complete it counts as unauthenticated."""
        self.phase = GuardPhase.PENDING
        try:
            status = await self.check()
        except Exception:
            log.warning("Session check failed", exc_info=True, extra={"path": self.return_to})
            status = SessionStatus(authenticated=False)

        self.status = status
        self.checked_at = self.clock()
        self.phase = GuardPhase.AUTHENTICATED if status.authenticated else GuardPhase.REDIRECT
        return self.phase

    def render(self, children: Children) -> GuardView:
        """
        Loading view, login redirect or the children.

        `children` may be a callable so protected content is only produced once
        the check has passed.
        """
        if self.phase is GuardPhase.AUTHENTICATED and self.is_stale():
            self.phase = GuardPhase.PENDING
        if self.phase is GuardPhase.PENDING:
            return GuardView(phase=GuardPhase.PENDING, html=LOADING_VIEW)
        if self.phase is GuardPhase.REDIRECT:
            return GuardView(phase=GuardPhase.REDIRECT, redirect_to=self.login_url)
        html = children() if callable(children) else children
        return GuardView(phase=GuardPhase.AUTHENTICATED, html=html)
