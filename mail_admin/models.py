from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional


_KNOWN_SETTINGS = {"enable", "enableMailVerify", "verifyMailSender", "maxAddressCount"}

DEFAULT_MAX_ADDRESS_COUNT = 5


def as_address_count(value: Any) -> Optional[int]:
    """Return ``value`` as an int when it is integral, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


@dataclass
class UserSettings:
    enable: bool = False
    enableMailVerify: bool = False
    verifyMailSender: str = ""
    # raw payload value; checked with as_address_count before saving
    maxAddressCount: Any = DEFAULT_MAX_ADDRESS_COUNT
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "UserSettings":
        """Build settings from a stored blob or request payload.

        Unknown keys are kept in ``extra`` and written back untouched.
        Never raises on field values.
        """
        data = data or {}
        raw_count = data.get("maxAddressCount")
        if raw_count is None or raw_count == "":
            raw_count = DEFAULT_MAX_ADDRESS_COUNT

        return cls(
            enable=bool(data.get("enable", False)),
            enableMailVerify=bool(data.get("enableMailVerify", False)),
            verifyMailSender=str(data.get("verifyMailSender") or "").strip(),
            maxAddressCount=raw_count,
            extra={k: v for k, v in data.items() if k not in _KNOWN_SETTINGS},
        )

    def to_dict(self) -> dict[str, Any]:
        out = dict(self.extra)
        out.update(
            {
                "enable": self.enable,
                "enableMailVerify": self.enableMailVerify,
                "verifyMailSender": self.verifyMailSender,
                "maxAddressCount": self.maxAddressCount,
            }
        )
        return out


@dataclass(frozen=True)
class GeoData:
    ip: str
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    timezone: Optional[str] = None
    postal_code: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None


@dataclass(frozen=True)
class UserInfo:
    geoData: GeoData
    userEmail: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
