from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

import redis


def kv_url() -> str:
    return (os.environ.get("MAIL_API_KV_URL") or "").strip()


@lru_cache(maxsize=4)
def _client_for(url: str) -> redis.Redis:
    # from_url does not connect until the first command.
    return redis.Redis.from_url(url, decode_responses=True)


def get_kv() -> Optional[redis.Redis]:
    url = kv_url()
    if not url:
        return None
    return _client_for(url)
