"""Housekeeping jobs that run on the shared scheduler."""
from __future__ import annotations

from loguru import logger

from src.db.database import get_sync_session
from src.devices.registry import DeviceRegistry


def run_device_cleanup():
    """每日清理超過有效期限的裝置"""
    logger.info("Starting expired device cleanup")
    try:
        removed = DeviceRegistry(get_sync_session).cleanup_expired_devices()
    except Exception as e:
        logger.error(f"Error cleaning up expired devices: {e}")
        return
    logger.info(f"Expired device cleanup completed: {removed} removed")
