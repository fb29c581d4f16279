"""
Identity Store: raw reads and writes on `users`.

No authorization here. Callers decide who may call what; the permission
predicates read this module directly.
"""
from __future__ import annotations
from typing import Optional
from sqlalchemy import select, insert, update
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError
from citygate.core.errors import DuplicateIdentity
from citygate.core.roles import GlobalRole, parse_global_role
from citygate.domain.models import User, UserIdentity
from citygate.domain.sqlalchemy_models import User as UserRow, new_id

users = UserRow.__table__


def _to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        full_name=row.full_name,
        role=parse_global_role(row.role),
        is_active=bool(row.is_active),
    )


def fetch_user(conn: Connection, user_id: str) -> Optional[User]:
    row = conn.execute(select(users).where(users.c.id == user_id)).first()
    return _to_user(row) if row else None


def fetch_user_by_email(conn: Connection, email: str) -> Optional[User]:
    row = conn.execute(select(users).where(users.c.email == email.strip().lower())).first()
    return _to_user(row) if row else None


def fetch_login_row(conn: Connection, email: str):
    """
    Returns (user_id, password_hash, is_active) or None.

    The only read that exposes the password hash; used by login alone.
    """
    return conn.execute(
        select(users.c.id, users.c.password_hash, users.c.is_active)
        .where(users.c.email == email.strip().lower())
    ).first()


def fetch_global_role(conn: Connection, user_id: str) -> Optional[GlobalRole]:
    """Role of an active user, or None for unknown/deactivated users."""
    row = conn.execute(
        select(users.c.role).where(users.c.id == user_id, users.c.is_active.is_(True))
    ).first()
    return parse_global_role(row.role) if row else None


def create_user(conn: Connection, identity: UserIdentity, password_hash: Optional[str] = None) -> User:
    """
    Create a user, idempotent on the identity key (email).

    - email unknown and id unknown (or not given): insert
    - email known and bound to the same id (or no id given): return existing
    - email or id bound to a different identity: DuplicateIdentity
    """
    email = str(identity.email).strip().lower()
    by_email = fetch_user_by_email(conn, email)
    if by_email:
        if identity.id is None or identity.id == by_email.id:
            return by_email
        raise DuplicateIdentity()

    if identity.id and fetch_user(conn, identity.id):
        raise DuplicateIdentity()

    user_id = identity.id or new_id()
    try:
        conn.execute(
            insert(users).values(
                id=user_id,
                email=email,
                full_name=identity.full_name,
                password_hash=password_hash,
                role=identity.role.value,
                is_active=True,
            )
        )
    except IntegrityError as e:
        # Lost a race on the unique email / primary key
        raise DuplicateIdentity() from e
    return User(id=user_id, email=email, full_name=identity.full_name, role=identity.role, is_active=True)


def update_role(conn: Connection, user_id: str, role: GlobalRole) -> Optional[User]:
    conn.execute(update(users).where(users.c.id == user_id).values(role=role.value))
    return fetch_user(conn, user_id)


def update_profile(conn: Connection, user_id: str, full_name: Optional[str]) -> Optional[User]:
    conn.execute(update(users).where(users.c.id == user_id).values(full_name=full_name))
    return fetch_user(conn, user_id)


def set_active(conn: Connection, user_id: str, active: bool) -> Optional[User]:
    conn.execute(update(users).where(users.c.id == user_id).values(is_active=active))
    return fetch_user(conn, user_id)
