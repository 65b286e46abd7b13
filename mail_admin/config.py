from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class RoleDefinition:
    role: str
    domains: list[str] = field(default_factory=list)
    prefix: str = ""


def _parse_list(raw: str) -> list[Any]:
    s = (raw or "").strip()
    if not s:
        return []
    if s.startswith("["):
        try:
            out = json.loads(s)
        except ValueError:
            return []
        return out if isinstance(out, list) else []
    return [p.strip() for p in s.replace(",", "\n").splitlines() if p.strip()]


def get_domains() -> list[str]:
    out: list[str] = []
    for d in _parse_list(os.environ.get("MAIL_API_DOMAINS", "")):
        if isinstance(d, str) and d.strip():
            out.append(d.strip().lower())
    return out


def get_user_roles() -> list[RoleDefinition]:
    roles: list[RoleDefinition] = []
    for item in _parse_list(os.environ.get("MAIL_API_USER_ROLES", "")):
        if isinstance(item, str):
            item = {"role": item}
        if not isinstance(item, dict):
            continue
        role = str(item.get("role", "")).strip()
        if not role:
            continue
        domains = item.get("domains") or []
        if not isinstance(domains, list):
            domains = []
        roles.append(
            RoleDefinition(
                role=role,
                domains=[str(d).strip().lower() for d in domains if str(d).strip()],
                prefix=str(item.get("prefix") or ""),
            )
        )
    return roles
