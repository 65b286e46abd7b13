from __future__ import annotations

from typing import Any

from passlib.context import CryptContext


_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

MAX_PASSWORD_LENGTH = 100


class PasswordPolicyError(ValueError):
    pass


def check_user_password(password: Any) -> str:
    if not isinstance(password, str) or not password:
        raise PasswordPolicyError("Invalid password")
    if len(password) > MAX_PASSWORD_LENGTH:
        raise PasswordPolicyError("Invalid password")
    return password


def hash_password(password: str) -> str:
    return _pwd.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return _pwd.verify(password, password_hash)
    except (ValueError, TypeError):
        return False
