from __future__ import annotations

import os
from datetime import datetime, timezone

from .db import data_dir, get_conn


MAX_LOG_BYTES = 5 * 1024 * 1024


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _log_path() -> str:
    return os.path.join(data_dir(), "admin.log")


def _cap_file(path: str, max_bytes: int) -> None:
    try:
        size = os.path.getsize(path)
    except OSError:
        return
    if size <= max_bytes:
        return

    try:
        with open(path, "rb") as f:
            f.seek(-max_bytes, os.SEEK_END)
            tail = f.read(max_bytes)
        # drop the partial first line
        nl = tail.find(b"\n")
        if nl != -1 and nl + 1 < len(tail):
            tail = tail[nl + 1 :]
        with open(path, "wb") as f:
            f.write(tail)
    except OSError:
        return


def log_line(line: str) -> None:
    msg = line.replace("\r", " ").replace("\n", " ").strip()
    if not msg:
        return
    path = _log_path()
    try:
        with open(path, "a", encoding="utf-8") as f:
            f.write(f"{_now_iso()} {msg}\n")
    except OSError:
        return
    _cap_file(path, MAX_LOG_BYTES)


def record(actor: str, action: str, details: str) -> None:
    """Write one audit row and mirror it to the admin log file."""
    with get_conn() as conn:
        conn.execute(
            (
                "insert into audit_log(actor, action, details, created_at) "
                "values(?, ?, ?, ?)"
            ),
            (actor, action, details, _now_iso()),
        )
        conn.commit()
    log_line(f"actor={actor or '-'} action={action} {details}")
