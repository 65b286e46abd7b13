from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from typing import Any

from .db import get_conn
from .models import UserInfo
from .security import hash_password


USER_ROW_SQL = (
    "select u.id as id, u.user_email, u.created_at, u.updated_at, "
    "ur.role_text as role_text, "
    "(select count(*) from users_address where user_id = u.id) as address_count "
    "from users u "
    "left join user_roles ur on u.id = ur.user_id"
)
USER_COUNT_SQL = "select count(*) as count from users"


class DuplicateUserError(Exception):
    pass


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def user_list_queries(query: str) -> tuple[str, str, list[Any]]:
    """Row SQL, count SQL and bind params for the user listing."""
    q = (query or "").strip()
    if not q:
        return USER_ROW_SQL, USER_COUNT_SQL, []
    return (
        USER_ROW_SQL + " where u.user_email like ?",
        USER_COUNT_SQL + " where user_email like ?",
        [f"%{q}%"],
    )


def create_user(*, email: str, password: str, user_info: UserInfo) -> int:
    now = _now_iso()
    try:
        with get_conn() as conn:
            cur = conn.execute(
                (
                    "insert into users("
                    "user_email, password, user_info, created_at, updated_at"
                    ") values(?, ?, ?, ?, ?)"
                ),
                (
                    email,
                    hash_password(password),
                    json.dumps(user_info.to_dict()),
                    now,
                    now,
                ),
            )
            conn.commit()
            return int(cur.lastrowid)
    except sqlite3.IntegrityError as e:
        if "unique" in str(e).lower():
            raise DuplicateUserError(email) from e
        raise


def delete_user(user_id: int) -> int:
    """Delete a user with its address bindings and role in one transaction."""
    with get_conn() as conn:
        conn.execute("begin immediate")
        try:
            cur = conn.execute("delete from users where id = ?", (user_id,))
            conn.execute("delete from users_address where user_id = ?", (user_id,))
            conn.execute("delete from user_roles where user_id = ?", (user_id,))
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise
        return int(cur.rowcount)


def reset_password(user_id: int, password: str) -> int:
    with get_conn() as conn:
        cur = conn.execute(
            "update users set password = ?, updated_at = ? where id = ?",
            (hash_password(password), _now_iso(), user_id),
        )
        conn.commit()
        return int(cur.rowcount)


def clear_user_role(user_id: int) -> None:
    with get_conn() as conn:
        conn.execute("delete from user_roles where user_id = ?", (user_id,))
        conn.commit()


def set_user_role(user_id: int, role_text: str) -> None:
    now = _now_iso()
    with get_conn() as conn:
        conn.execute(
            (
                "insert into user_roles(user_id, role_text, created_at, updated_at) "
                "values(?, ?, ?, ?) "
                "on conflict(user_id) do update set "
                "role_text = excluded.role_text, "
                "updated_at = excluded.updated_at"
            ),
            (user_id, role_text, now, now),
        )
        conn.commit()


def get_user_role(user_id: int) -> str | None:
    with get_conn() as conn:
        row = conn.execute(
            "select role_text from user_roles where user_id = ?",
            (user_id,),
        ).fetchone()
        return str(row["role_text"]) if row is not None else None


def list_bound_addresses(user_id: int) -> list[dict[str, Any]]:
    with get_conn() as conn:
        rows = conn.execute(
            (
                "select a.*, "
                "(select count(*) from raw_mails where address = a.name) as mail_count, "
                "(select count(*) from sendbox where address = a.name) as send_count "
                "from address a "
                "join users_address ua on ua.address_id = a.id "
                "where ua.user_id = ? "
                "order by a.id desc"
            ),
            (user_id,),
        ).fetchall()
        return [dict(r) for r in rows]
