from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from src.db.database import Base
from src.models.base import TimestampMixin, utcnow


class Device(Base, TimestampMixin):
    __tablename__ = "devices"

    id: Mapped[int] = mapped_column(primary_key=True)
    token: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    platform: Mapped[str] = mapped_column(String(20), nullable=False)  # ios / android
    device_name: Mapped[str] = mapped_column(String(255), nullable=False)
    device_info: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "platform": self.platform,
            "device_name": self.device_name,
            "device_info": self.device_info or {},
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }

    def __repr__(self) -> str:
        return f"<Device {self.platform}:{self.device_name}>"
