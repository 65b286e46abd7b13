from __future__ import annotations

from typing import Any, Optional, Sequence

from .db import get_conn
from .errors import BadRequestError


MAX_LIMIT = 100


def _parse_int(raw: Any) -> Optional[int]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def handle_list_query(
    *,
    query: str,
    count_query: str,
    params: Sequence[Any],
    limit: Any,
    offset: Any,
) -> dict[str, Any]:
    """Run a paginated listing; ``query`` must expose an ``id`` column."""
    lim = _parse_int(limit)
    if lim is None or lim <= 0 or lim > MAX_LIMIT:
        raise BadRequestError("Invalid limit")
    off = _parse_int(offset)
    if off is None or off < 0:
        raise BadRequestError("Invalid offset")

    with get_conn() as conn:
        rows = conn.execute(
            f"{query} order by id desc limit ? offset ?",
            (*params, lim, off),
        ).fetchall()
        row = conn.execute(count_query, tuple(params)).fetchone()

    return {
        "results": [dict(r) for r in rows],
        "count": int(row["count"]) if row is not None else 0,
    }
