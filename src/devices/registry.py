from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from loguru import logger
from sqlalchemy.orm import Session

from src.config import get_settings
from src.models.base import utcnow
from src.models.device import Device
from src.notifications.tokens import has_token_envelope

SUPPORTED_PLATFORMS = ("ios", "android")


class DeviceValidationError(ValueError):
    pass


class DeviceNotFoundError(LookupError):
    pass


def _validate_token(token: Any) -> None:
    if not token or not isinstance(token, str):
        raise DeviceValidationError("Push token is required and must be a string")
    if not has_token_envelope(token):
        raise DeviceValidationError("Invalid Expo push token format")


def _normalize_platform(platform: Any) -> str:
    if not platform or not isinstance(platform, str):
        raise DeviceValidationError(f"Unsupported platform: {platform}")
    normalized = platform.lower()
    if normalized not in SUPPORTED_PLATFORMS:
        raise DeviceValidationError(f"Unsupported platform: {platform}")
    return normalized


def _validate_device_name(device_name: Any) -> None:
    if not device_name or not isinstance(device_name, str):
        raise DeviceValidationError("Device name is required and must be a string")


class DeviceRegistry:
    """Registered push devices, backed by the ``devices`` table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory
        self.settings = get_settings()

    @property
    def expiry_window(self) -> timedelta:
        return timedelta(days=self.settings.device_token_expiry_days)

    def register_device(
        self,
        token: str,
        platform: str,
        device_name: str,
        device_info: Optional[Dict[str, Any]] = None,
    ) -> Device:
        """Register a device, or refresh it when the token is already known."""
        _validate_token(token)
        platform = _normalize_platform(platform)
        _validate_device_name(device_name)

        with self.session_factory() as session:
            device = session.query(Device).filter_by(token=token).first()
            if device is None:
                device = Device(token=token)
                session.add(device)
            device.platform = platform
            device.device_name = device_name
            device.device_info = dict(device_info or {})
            device.last_updated = utcnow()
            session.commit()
            session.refresh(device)
            session.expunge(device)

        logger.info(f"Device registered successfully: {device_name} ({platform})")
        return device

    def update_device(
        self,
        token: str,
        platform: str,
        device_name: str,
        device_info: Optional[Dict[str, Any]] = None,
    ) -> Device:
        _validate_token(token)
        platform = _normalize_platform(platform)
        _validate_device_name(device_name)

        with self.session_factory() as session:
            device = session.query(Device).filter_by(token=token).first()
            if device is None:
                raise DeviceNotFoundError(f"Device not found: {token}")
            device.platform = platform
            device.device_name = device_name
            if device_info is not None:
                device.device_info = dict(device_info)
            device.last_updated = utcnow()
            session.commit()
            session.refresh(device)
            session.expunge(device)

        logger.info(f"Device updated successfully: {device_name}")
        return device

    def remove_device(self, token: str) -> bool:
        with self.session_factory() as session:
            device = session.query(Device).filter_by(token=token).first()
            if device is None:
                return False
            session.delete(device)
            session.commit()

        logger.info(f"Device removed successfully: {token}")
        return True

    def get_device(self, token: str) -> Optional[Device]:
        with self.session_factory() as session:
            device = session.query(Device).filter_by(token=token).first()
            if device is not None:
                session.expunge(device)
            return device

    def get_all_devices(self) -> List[Device]:
        with self.session_factory() as session:
            devices = session.query(Device).order_by(Device.id).all()
            session.expunge_all()
            return devices

    def get_devices_by_platform(self, platform: str) -> List[Device]:
        platform = _normalize_platform(platform)
        with self.session_factory() as session:
            devices = session.query(Device).filter_by(platform=platform).order_by(Device.id).all()
            session.expunge_all()
            return devices

    def get_active_tokens(self, now: Optional[datetime] = None) -> List[str]:
        """Tokens of devices updated within the freshness window."""
        cutoff = (now or utcnow()) - self.expiry_window
        with self.session_factory() as session:
            rows = (
                session.query(Device.token)
                .filter(Device.last_updated > cutoff)
                .order_by(Device.id)
                .all()
            )
        return [row.token for row in rows]

    def get_active_tokens_by_platform(
        self, platform: str, now: Optional[datetime] = None
    ) -> List[str]:
        platform = _normalize_platform(platform)
        cutoff = (now or utcnow()) - self.expiry_window
        with self.session_factory() as session:
            rows = (
                session.query(Device.token)
                .filter(Device.platform == platform, Device.last_updated > cutoff)
                .order_by(Device.id)
                .all()
            )
        return [row.token for row in rows]

    def cleanup_expired_devices(self, now: Optional[datetime] = None) -> int:
        """Delete devices not updated within the freshness window."""
        cutoff = (now or utcnow()) - self.expiry_window
        with self.session_factory() as session:
            expired = session.query(Device).filter(Device.last_updated <= cutoff).all()
            for device in expired:
                session.delete(device)
            session.commit()

        if expired:
            logger.info(f"Cleaned up {len(expired)} expired devices")
        return len(expired)
