from __future__ import annotations

import ipaddress
from typing import Optional

from fastapi import Request

from .models import GeoData, UserInfo
from .settings import get_setting


# Visitor-location headers added by the edge proxy.
_GEO_HEADERS = {
    "country": "cf-ipcountry",
    "region": "cf-region",
    "city": "cf-ipcity",
    "timezone": "cf-timezone",
    "postal_code": "cf-postal-code",
    "latitude": "cf-iplatitude",
    "longitude": "cf-iplongitude",
}


def _trusted_networks() -> list[ipaddress._BaseNetwork]:
    raw = get_setting("trusted_proxy_cidrs").strip()
    nets: list[ipaddress._BaseNetwork] = []
    for chunk in raw.replace(",", "\n").splitlines():
        s = chunk.strip()
        if not s:
            continue
        try:
            nets.append(ipaddress.ip_network(s, strict=False))
        except ValueError:
            continue
    return nets


def _is_trusted(ip: str, nets: list[ipaddress._BaseNetwork]) -> bool:
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return any(addr in n for n in nets)


def get_client_ip(request: Request) -> str:
    """Resolve the originating client address.

    Forwarding headers are honoured only when the direct peer is one of the
    configured trusted proxies. ``cf-connecting-ip`` wins over
    ``x-forwarded-for``; in the latter the right-most untrusted hop is used.
    """
    peer_ip = request.client.host if request.client else ""
    trusted = _trusted_networks()
    if not peer_ip or not trusted or not _is_trusted(peer_ip, trusted):
        return peer_ip

    edge_ip = (request.headers.get("cf-connecting-ip") or "").strip()
    if edge_ip:
        return edge_ip

    xff = request.headers.get("x-forwarded-for") or ""
    forwarded = [p.strip() for p in xff.split(",") if p.strip()]
    for ip in reversed(forwarded):
        if not _is_trusted(ip, trusted):
            return ip
    return forwarded[0] if forwarded else peer_ip


def _header(request: Request, name: str) -> Optional[str]:
    value = (request.headers.get(name) or "").strip()
    return value or None


def build_geo_data(request: Request) -> GeoData:
    values = {attr: _header(request, h) for attr, h in _GEO_HEADERS.items()}
    return GeoData(ip=get_client_ip(request), **values)


def build_user_info(request: Request, email: str) -> UserInfo:
    return UserInfo(geoData=build_geo_data(request), userEmail=email)
