from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class PushMessage:
    to: str
    title: str
    body: str
    data: Dict[str, Any] = field(default_factory=dict)
    sound: Optional[str] = "default"
    priority: str = "high"
    ttl: Optional[int] = None
    badge: Optional[int] = None
    channel_id: Optional[str] = None
    mutable_content: bool = False

    def to_payload(self) -> Dict[str, Any]:
        """Serialize into the Expo push API request format."""
        payload: Dict[str, Any] = {
            "to": self.to,
            "title": self.title,
            "body": self.body,
            "data": self.data,
            "priority": self.priority,
        }
        if self.sound is not None:
            payload["sound"] = self.sound
        if self.ttl is not None:
            payload["ttl"] = self.ttl
        if self.badge is not None:
            payload["badge"] = self.badge
        if self.channel_id is not None:
            payload["channelId"] = self.channel_id
        if self.mutable_content:
            payload["mutableContent"] = True
        return payload


@dataclass
class PushTicket:
    status: str
    id: Optional[str] = None
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_ok(self) -> bool:
        return self.status == "ok"

    @property
    def error(self) -> Optional[str]:
        """Expo error code, e.g. ``DeviceNotRegistered``."""
        return self.details.get("error")

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "PushTicket":
        return cls(
            status=payload.get("status", "error"),
            id=payload.get("id"),
            message=payload.get("message"),
            details=payload.get("details") or {},
        )


@dataclass
class PushReceipt:
    id: str
    status: str
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_ok(self) -> bool:
        return self.status == "ok"

    @property
    def error(self) -> Optional[str]:
        return self.details.get("error")

    @classmethod
    def from_payload(cls, receipt_id: str, payload: Dict[str, Any]) -> "PushReceipt":
        return cls(
            id=receipt_id,
            status=payload.get("status", "error"),
            message=payload.get("message"),
            details=payload.get("details") or {},
        )
