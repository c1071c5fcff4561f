from __future__ import annotations

from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Any, Mapping, Optional

from loguru import logger

from src.devices.registry import DeviceRegistry
from src.scheduler.registry import JobRegistry, ScheduledNotification


class RecurringFeedUpdater(ABC):
    """Recurring push whose body is built from an external feed.

    The body is computed once when the job is armed and stays the same for
    every fire until the updater is restarted.
    """

    job_name: str = ""
    title: str = ""
    data: Mapping[str, Any] = MappingProxyType({})

    def __init__(self, registry: JobRegistry, devices: DeviceRegistry, cron_expression: str):
        self.registry = registry
        self.devices = devices
        self.cron_expression = cron_expression
        self.job: Optional[ScheduledNotification] = None

    @property
    def running(self) -> bool:
        return self.job is not None

    @abstractmethod
    def check_feed(self) -> None:
        """Raise if the upstream feed cannot be used right now."""
        ...

    @abstractmethod
    def build_message(self) -> str:
        """Build the push body from the latest feed data."""
        ...

    def validate_services(self) -> None:
        self.check_feed()
        devices = self.devices.get_all_devices()
        if not isinstance(devices, list):
            raise RuntimeError("Device registry returned invalid data")
        logger.debug(f"{self.job_name}: services validation successful")

    def start(self) -> bool:
        """Arm the recurring job. Returns False when there is nobody to notify."""
        self.validate_services()

        tokens = self.devices.get_active_tokens()
        if not tokens:
            logger.warning(f"{self.job_name}: no active devices found for notifications")
            return False

        self.job = self.registry.schedule_recurring(
            self.job_name,
            self.cron_expression,
            tokens,
            self.title,
            self.build_message(),
            dict(self.data),
        )
        logger.info(
            f"{self.job_name} started for {len(tokens)} tokens ({self.cron_expression})"
        )
        return True

    def stop(self) -> None:
        if self.job is not None:
            self.registry.cancel(self.job_name)
            self.job = None
            logger.info(f"{self.job_name} stopped")

    def restart(self) -> bool:
        logger.info(f"Restarting {self.job_name}")
        self.stop()
        return self.start()
