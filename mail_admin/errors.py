from __future__ import annotations

from fastapi import Request
from fastapi.responses import PlainTextResponse


class AdminError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class BadRequestError(AdminError):
    status_code = 400


class PreconditionError(AdminError):
    status_code = 403


class ServerError(AdminError):
    status_code = 500


async def admin_error_handler(request: Request, exc: AdminError) -> PlainTextResponse:
    return PlainTextResponse(content=exc.message, status_code=exc.status_code)
