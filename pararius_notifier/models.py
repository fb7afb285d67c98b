from __future__ import annotations

import hashlib
from dataclasses import dataclass, field


def fingerprint(url: str) -> str:
    """SHA-256 hex digest of a listing URL, used as its identity on disk."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class Listing:
    title: str
    url: str
    address: str = ""
    price_value: int = 0
    size: str = ""
    rooms: str = ""
    property_type: str = ""
    description: str = ""
    fingerprint: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fingerprint", fingerprint(self.url))

    def to_record(self) -> dict[str, object]:
        return {
            "Title": self.title,
            "Address": self.address,
            "PriceValue": self.price_value,
            "Size": self.size,
            "Rooms": self.rooms,
            "Type": self.property_type,
            "URL": self.url,
            "Description": self.description,
            "Hash": self.fingerprint,
        }


@dataclass(frozen=True)
class Subscriber:
    chat_id: int
    first_name: str = ""
    username: str = ""

    def to_record(self) -> dict[str, object]:
        return {
            "ChatID": self.chat_id,
            "FirstName": self.first_name,
            "Username": self.username,
        }

    @classmethod
    def from_record(cls, record: dict) -> Subscriber:
        return cls(
            chat_id=int(record["ChatID"]),
            first_name=str(record.get("FirstName") or ""),
            username=str(record.get("Username") or ""),
        )


@dataclass(frozen=True)
class WatchTarget:
    url: str
    label: str = ""

    @property
    def name(self) -> str:
        return self.label or self.url
