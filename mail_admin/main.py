from __future__ import annotations

import sys

import uvicorn

from .db import init_db
from .settings import get_setting


def main() -> None:
    if sys.version_info < (3, 10):
        raise RuntimeError("mail_admin requires Python 3.10+")

    init_db()

    from .admin_app import create_admin_app

    host = get_setting("admin_bind_host").strip() or "0.0.0.0"
    try:
        port = int(get_setting("admin_port").strip() or "2580")
    except ValueError:
        port = 2580

    app = create_admin_app()
    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
