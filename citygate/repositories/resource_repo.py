"""
Raw row access for tenant-owned resource tables.

Generic over SQLAlchemy Core tables. Nothing here checks permissions; the
resource service applies the policy layer before calling in.
"""
from __future__ import annotations
from typing import Any, Optional
from sqlalchemy import Table, select, insert, update, delete, func
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError
from citygate.core.errors import ConstraintViolation, DuplicateResource
from citygate.domain.sqlalchemy_models import new_id


def _as_dict(row) -> dict[str, Any]:
    return dict(row._mapping)


def _integrity_error(e: IntegrityError) -> Exception:
    # psycopg2 carries the SQLSTATE; sqlite only says it in the message
    unique = getattr(e.orig, "pgcode", None) == "23505" or "UNIQUE constraint failed" in str(e.orig)
    return DuplicateResource() if unique else ConstraintViolation()


def select_row(conn: Connection, table: Table, row_id: str) -> Optional[dict[str, Any]]:
    row = conn.execute(select(table).where(table.c.id == row_id)).first()
    return _as_dict(row) if row else None


def select_by_tenant(conn: Connection, table: Table, tenant_column: str, tenant_id: str) -> list[dict[str, Any]]:
    rows = conn.execute(
        select(table).where(table.c[tenant_column] == tenant_id).order_by(table.c.id)
    ).all()
    return [_as_dict(r) for r in rows]


def select_by_parent_tenant(
    conn: Connection,
    table: Table,
    parent_key: str,
    parent: Table,
    parent_tenant_column: str,
    tenant_id: str,
) -> list[dict[str, Any]]:
    """Rows whose parent row (one hop) belongs to `tenant_id`."""
    rows = conn.execute(
        select(table)
        .join(parent, table.c[parent_key] == parent.c.id)
        .where(parent.c[parent_tenant_column] == tenant_id)
        .order_by(table.c.id)
    ).all()
    return [_as_dict(r) for r in rows]


def insert_row(conn: Connection, table: Table, values: dict[str, Any]) -> dict[str, Any]:
    values = {"id": new_id(), **values}
    try:
        conn.execute(insert(table).values(**values))
    except IntegrityError as e:
        raise _integrity_error(e) from e
    return select_row(conn, table, values["id"])


def update_row(conn: Connection, table: Table, row_id: str, changes: dict[str, Any]) -> Optional[dict[str, Any]]:
    if "updated_at" in table.c:
        changes = {**changes, "updated_at": func.now()}
    try:
        conn.execute(update(table).where(table.c.id == row_id).values(**changes))
    except IntegrityError as e:
        raise _integrity_error(e) from e
    return select_row(conn, table, row_id)


def delete_row(conn: Connection, table: Table, row_id: str) -> bool:
    return conn.execute(delete(table).where(table.c.id == row_id)).rowcount > 0
