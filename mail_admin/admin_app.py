from __future__ import annotations

import json
import sqlite3
from dataclasses import asdict
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from . import audit
from .config import get_domains, get_user_roles
from .db import get_conn
from .errors import AdminError, BadRequestError, PreconditionError, ServerError, admin_error_handler
from .geo import build_user_info, get_client_ip
from .kv import get_kv
from .listing import handle_list_query
from .models import UserSettings, as_address_count
from .security import PasswordPolicyError, check_user_password
from .settings import USER_SETTINGS_KEY, get_json_setting, save_json_setting
from .users import (
    DuplicateUserError,
    clear_user_role,
    create_user,
    delete_user,
    list_bound_addresses,
    reset_password,
    set_user_role,
    user_list_queries,
)


def _parse_user_id(raw: Any) -> int:
    if raw is None or isinstance(raw, bool):
        raise BadRequestError("Invalid user_id")
    try:
        user_id = int(str(raw).strip())
    except ValueError:
        raise BadRequestError("Invalid user_id")
    if user_id <= 0:
        raise BadRequestError("Invalid user_id")
    return user_id


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except ValueError:
        raise BadRequestError("Invalid json")
    if not isinstance(payload, dict):
        raise BadRequestError("Invalid json")
    return payload


def _audit(request: Request, action: str, details: str) -> None:
    # Called after the mutation commits; audit failures are logged, not raised.
    try:
        audit.record(get_client_ip(request), action, details)
    except sqlite3.Error as e:
        audit.log_line(f"audit failed action={action} {details} error={e}")


def _validate_user_settings(settings: UserSettings) -> None:
    if settings.enableMailVerify and get_kv() is None:
        raise PreconditionError(
            "Please enable KV first if you want to enable mail verify"
        )
    if settings.enableMailVerify and not settings.verifyMailSender:
        raise BadRequestError("Please provide verifyMailSender")
    if settings.enableMailVerify and settings.verifyMailSender:
        sender = settings.verifyMailSender
        mail_domain = sender.split("@", 1)[1].lower() if "@" in sender else ""
        domains = get_domains()
        if mail_domain not in domains:
            raise BadRequestError(
                f"VerifyMailSender({sender}) domain must in "
                f"{json.dumps(domains, indent=2)}"
            )
    count = as_address_count(settings.maxAddressCount)
    if count is None or count < 0:
        raise BadRequestError("Invalid maxAddressCount")
    settings.maxAddressCount = count


def _save_user_settings(request: Request, settings: UserSettings) -> None:
    version = save_json_setting(USER_SETTINGS_KEY, settings.to_dict())
    _audit(request, "user_settings.save", f"version={version}")


def _create_user(request: Request, email: str, password: str) -> None:
    user_info = build_user_info(request, email)
    try:
        user_id = create_user(email=email, password=password, user_info=user_info)
    except DuplicateUserError:
        raise BadRequestError("User already exists")
    except sqlite3.Error as e:
        audit.log_line(f"create_user failed email={email} error={e}")
        raise ServerError(f"Failed to register: {e}")
    _audit(request, "user.create", f"id={user_id} email={email}")


def _reset_password(request: Request, user_id: int, password: str) -> None:
    try:
        reset_password(user_id, password)
    except sqlite3.Error as e:
        audit.log_line(f"reset_password failed id={user_id} error={e}")
        raise ServerError(f"Failed to reset password: {e}")
    _audit(request, "user.reset_password", f"id={user_id}")


def _update_user_role(request: Request, user_id: int, role_text: str) -> None:
    try:
        if role_text:
            set_user_role(user_id, role_text)
        else:
            clear_user_role(user_id)
    except sqlite3.Error as e:
        audit.log_line(f"update_user_role failed id={user_id} error={e}")
        raise ServerError("Failed to update user roles")
    if role_text:
        _audit(request, "user_role.set", f"id={user_id} role={role_text}")
    else:
        _audit(request, "user_role.clear", f"id={user_id}")


def create_admin_app() -> FastAPI:
    app = FastAPI(title="Mail Admin")
    app.add_exception_handler(AdminError, admin_error_handler)

    # Store and hashing work stays off the event loop: body-less routes are
    # sync (threadpool), the rest go through run_in_threadpool.

    @app.get("/healthz")
    def healthz():
        try:
            with get_conn() as conn:
                conn.execute("select 1").fetchone()
        except sqlite3.Error:
            raise HTTPException(status_code=503, detail="db unavailable")
        return {"ok": True}

    @app.get("/admin/user_settings")
    def get_user_settings():
        settings = UserSettings.from_dict(get_json_setting(USER_SETTINGS_KEY))
        return settings.to_dict()

    @app.post("/admin/user_settings")
    async def save_user_settings(request: Request):
        payload = await _json_body(request)
        settings = UserSettings.from_dict(payload)
        _validate_user_settings(settings)
        await run_in_threadpool(_save_user_settings, request, settings)
        return {"success": True}

    @app.get("/admin/user_roles")
    def list_user_roles():
        return [asdict(r) for r in get_user_roles()]

    @app.get("/admin/users")
    def get_users(
        limit: Optional[str] = None,
        offset: Optional[str] = None,
        query: Optional[str] = None,
    ):
        row_sql, count_sql, params = user_list_queries(query or "")
        return handle_list_query(
            query=row_sql,
            count_query=count_sql,
            params=params,
            limit=limit,
            offset=offset,
        )

    @app.post("/admin/users")
    async def create_user_route(request: Request):
        payload = await _json_body(request)
        email = str(payload.get("email") or "").strip()
        password = payload.get("password")
        if not email or not password:
            raise BadRequestError("Invalid email or password")
        try:
            check_user_password(password)
        except PasswordPolicyError as e:
            raise ServerError(f"Failed to register: {e}")

        await run_in_threadpool(_create_user, request, email, password)
        return {"success": True}

    @app.delete("/admin/users/{user_id}")
    def delete_user_route(request: Request, user_id: str):
        uid = _parse_user_id(user_id)
        try:
            deleted = delete_user(uid)
        except sqlite3.Error as e:
            audit.log_line(f"delete_user failed id={uid} error={e}")
            raise ServerError("Failed to delete user")

        _audit(request, "user.delete", f"id={uid} rows={deleted}")
        return {"success": True}

    @app.post("/admin/users/{user_id}/reset_password")
    async def reset_password_route(request: Request, user_id: str):
        uid = _parse_user_id(user_id)
        payload = await _json_body(request)
        password = payload.get("password")
        try:
            check_user_password(password)
        except PasswordPolicyError as e:
            raise ServerError(f"Failed to reset password: {e}")

        await run_in_threadpool(_reset_password, request, uid, password)
        return {"success": True}

    @app.post("/admin/user_roles")
    async def update_user_roles(request: Request):
        payload = await _json_body(request)
        uid = _parse_user_id(payload.get("user_id"))
        raw_role = payload.get("role_text")
        role_text = str(raw_role) if raw_role else ""

        if role_text and not any(r.role == role_text for r in get_user_roles()):
            raise BadRequestError("Invalid role_text")

        await run_in_threadpool(_update_user_role, request, uid, role_text)
        return {"success": True}

    @app.get("/admin/users/bind_address/{user_id}")
    def get_binded_addresses(user_id: str):
        uid = _parse_user_id(user_id)
        return {"results": list_bound_addresses(uid)}

    return app
