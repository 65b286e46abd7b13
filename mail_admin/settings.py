from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Optional

from .db import get_conn


USER_SETTINGS_KEY = "user_settings"

DEFAULTS = {
    "trusted_proxy_cidrs": "",
    "admin_bind_host": "0.0.0.0",
    "admin_port": "2580",
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_setting(key: str) -> str:
    with get_conn() as conn:
        row = conn.execute("select value from settings where key = ?", (key,)).fetchone()
        if row is None:
            return DEFAULTS.get(key, "")
        return str(row["value"])


def set_setting(key: str, value: str) -> None:
    with get_conn() as conn:
        conn.execute(
            "insert into settings(key, value) values(?, ?) on conflict(key) do update set value = excluded.value",
            (key, value),
        )
        conn.commit()


def get_json_setting(key: str) -> Optional[dict[str, Any]]:
    with get_conn() as conn:
        row = conn.execute(
            "select value from json_settings where key = ?",
            (key,),
        ).fetchone()
    if row is None:
        return None
    try:
        value = json.loads(str(row["value"]))
    except ValueError:
        return None
    if not isinstance(value, dict):
        return None
    return value


def save_json_setting(key: str, value: dict[str, Any]) -> int:
    """Replace the whole blob stored under ``key``; returns the new version."""
    raw = json.dumps(value)
    with get_conn() as conn:
        conn.execute(
            (
                "insert into json_settings(key, value, version, updated_at) "
                "values(?, ?, 1, ?) "
                "on conflict(key) do update set "
                "value = excluded.value, "
                "version = json_settings.version + 1, "
                "updated_at = excluded.updated_at"
            ),
            (key, raw, _now_iso()),
        )
        row = conn.execute(
            "select version from json_settings where key = ?",
            (key,),
        ).fetchone()
        conn.commit()
        return int(row["version"])
