from __future__ import annotations

from types import MappingProxyType
from typing import Optional

from src.config import get_settings
from src.devices.registry import DeviceRegistry
from src.feeds.base import FeedError
from src.feeds.exchange_rate import ExchangeRateService
from src.notifications.formatter import RATE_UNAVAILABLE_MESSAGE, format_rate_message
from src.scheduler.registry import JobRegistry
from src.updaters.base import RecurringFeedUpdater


class ExchangeRateUpdater(RecurringFeedUpdater):
    job_name = "exchange-rate-update"
    title = "日元汇率更新"
    data = MappingProxyType({"type": "exchange_rate"})

    def __init__(
        self,
        registry: JobRegistry,
        devices: DeviceRegistry,
        rates: ExchangeRateService,
        cron_expression: Optional[str] = None,
    ):
        super().__init__(
            registry, devices, cron_expression or get_settings().exchange_rate_cron
        )
        self.rates = rates

    def check_feed(self) -> None:
        result = self.rates.get_exchange_rates()
        if not result.success or not result.rates.get("CNY"):
            raise FeedError("Exchange rate service returned invalid data")

    # TODO: move the fetch into the fire callback once JobRegistry accepts a body factory
    def build_message(self) -> str:
        result = self.rates.get_exchange_rates()
        if not result.success:
            return RATE_UNAVAILABLE_MESSAGE
        return format_rate_message(result.rates)
