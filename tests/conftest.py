"""
Shared fixtures: a fresh SQLite database per test, three cities and five users.

Environment is set before anything from citygate is imported, since
settings are read at import time.
"""
import os

os.environ.setdefault("JWT_SECRET", "citygate-test-secret-0123456789-abcdefghijklmnop")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import timedelta
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from citygate.core import db
from citygate.core.auth import issue_credential
from citygate.core.roles import GlobalRole, TenantRole, TenantStatus
from citygate.core.security import hash_password
from citygate.domain.models import UserIdentity
from citygate.main import create_app
from citygate.repositories import grant_repo, tenant_repository, user_repo

PASSWORD = "correct-horse-battery"
# bcrypt is slow on purpose; hash once per session
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture
def engine(tmp_path):
    eng = db.configure_engine(f"sqlite:///{tmp_path / 'citygate.db'}")
    db.init_schema()
    yield eng
    eng.dispose()


@pytest.fixture
def world(engine):
    """
    Tenants: amsterdam, rotterdam, utrecht.

    Users:
    - s1: superuser, zero grants
    - u1: global admin, admin of rotterdam only
    - u2: global operator, no grants
    - u3: global operator, operator of utrecht
    - u4: global operator, operator of amsterdam
    """
    with db.get_conn() as conn:
        tenants = {
            slug: tenant_repository.create_tenant(conn, slug, slug.title(), TenantStatus.ACTIVE)
            for slug in ("amsterdam", "rotterdam", "utrecht")
        }

        def make(name, role):
            identity = UserIdentity(email=f"{name}@citygate.org", full_name=name.upper(), role=role)
            return user_repo.create_user(conn, identity, password_hash=PASSWORD_HASH)

        users = {
            "s1": make("s1", GlobalRole.SUPERUSER),
            "u1": make("u1", GlobalRole.ADMIN),
            "u2": make("u2", GlobalRole.OPERATOR),
            "u3": make("u3", GlobalRole.OPERATOR),
            "u4": make("u4", GlobalRole.OPERATOR),
        }
        grant_repo.grant_access(conn, tenants["rotterdam"].id, users["u1"].id, TenantRole.ADMIN)
        grant_repo.grant_access(conn, tenants["utrecht"].id, users["u3"].id, TenantRole.OPERATOR)
        grant_repo.grant_access(conn, tenants["amsterdam"].id, users["u4"].id, TenantRole.OPERATOR)

    return SimpleNamespace(tenants=tenants, users=users)


@pytest.fixture
def app(engine):
    return create_app()


@pytest.fixture
def client(app):
    with TestClient(app, follow_redirects=False) as c:
        yield c


@pytest.fixture
def bearer():
    """bearer(user) -> Authorization header with a freshly issued credential."""
    def make(user, lifetime=None):
        token, _ = issue_credential(user.id, lifetime=lifetime)
        return {"Authorization": f"Bearer {token}"}
    return make


@pytest.fixture
def near_expiry():
    """A lifetime inside the refresh window."""
    return timedelta(minutes=2)
