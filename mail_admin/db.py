import os
import sqlite3
from contextlib import contextmanager


def data_dir() -> str:
    base_dir = os.environ.get("MAIL_API_DATA_DIR")
    if not base_dir:
        base_dir = os.path.join(os.getcwd(), "data")
    os.makedirs(base_dir, exist_ok=True)
    return base_dir


def _db_path() -> str:
    return os.path.join(data_dir(), "mail_admin.db")


def init_db() -> None:
    with get_conn() as conn:
        conn.execute(
            """
            create table if not exists settings (
                key text primary key,
                value text not null
            )
            """
        )
        conn.execute(
            """
            create table if not exists json_settings (
                key text primary key,
                value text not null,
                version integer not null default 1,
                updated_at text not null
            )
            """
        )
        conn.execute(
            """
            create table if not exists users (
                id integer primary key autoincrement,
                user_email text not null unique,
                password text not null,
                user_info text not null default '{}',
                created_at text not null,
                updated_at text not null
            )
            """
        )
        conn.execute(
            """
            create table if not exists user_roles (
                id integer primary key autoincrement,
                user_id integer not null unique,
                role_text text not null,
                created_at text not null,
                updated_at text not null
            )
            """
        )
        conn.execute(
            """
            create table if not exists address (
                id integer primary key autoincrement,
                name text not null unique,
                created_at text not null,
                updated_at text not null
            )
            """
        )
        conn.execute(
            """
            create table if not exists users_address (
                id integer primary key autoincrement,
                user_id integer not null,
                address_id integer not null unique,
                created_at text not null,
                updated_at text not null
            )
            """
        )
        conn.execute(
            "create index if not exists idx_users_address_user_id "
            "on users_address(user_id)"
        )
        conn.execute(
            """
            create table if not exists raw_mails (
                id integer primary key autoincrement,
                address text not null,
                source text not null default '',
                raw text not null default '',
                created_at text not null
            )
            """
        )
        conn.execute(
            "create index if not exists idx_raw_mails_address "
            "on raw_mails(address)"
        )
        conn.execute(
            """
            create table if not exists sendbox (
                id integer primary key autoincrement,
                address text not null,
                raw text not null default '',
                created_at text not null
            )
            """
        )
        conn.execute(
            "create index if not exists idx_sendbox_address "
            "on sendbox(address)"
        )
        conn.execute(
            """
            create table if not exists audit_log (
                id integer primary key autoincrement,
                actor text not null,
                action text not null,
                details text not null,
                created_at text not null
            )
            """
        )
        conn.commit()


@contextmanager
def get_conn():
    conn = sqlite3.connect(_db_path())
    try:
        conn.row_factory = sqlite3.Row
        yield conn
    finally:
        conn.close()
