from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler
from loguru import logger

from src.config import get_settings
from src.devices.registry import DeviceRegistry
from src.feeds.base import FeedError
from src.feeds.okx import OkxTickerFeed
from src.notifications.dispatcher import PushDispatcher
from src.notifications.formatter import format_price_alert, format_price_message
from src.scheduler.registry import JobRegistry
from src.updaters.base import RecurringFeedUpdater

ALERT_JOB_ID = "btc-price-alert"
ALERT_TITLE = "BTC价格预警"


class PriceAlertTracker:
    """Decides when a below-threshold price deserves a new alert.

    The first breach always alerts. After that a new alert needs either the
    cooldown to have passed, or the price to have fallen another
    ``drop_ratio`` below the last alerted price.
    """

    def __init__(self, threshold: float, cooldown: timedelta, drop_ratio: float = 0.05):
        self.threshold = threshold
        self.cooldown = cooldown
        self.drop_ratio = drop_ratio
        self.last_alert_price: Optional[float] = None
        self.last_alert_time: Optional[datetime] = None

    def should_alert(self, price: float, now: datetime) -> bool:
        if price >= self.threshold:
            return False
        if self.last_alert_time is None:
            return True
        if now - self.last_alert_time > self.cooldown:
            return True
        return (
            self.last_alert_price is not None
            and price < self.last_alert_price * (1 - self.drop_ratio)
        )

    def record(self, price: float, now: datetime) -> None:
        self.last_alert_price = price
        self.last_alert_time = now


class BtcPriceMonitor(RecurringFeedUpdater):
    """Half-hourly BTC price push plus a polling below-threshold alert."""

    job_name = "btc-price-update"
    title = "BTC价格更新"
    data = MappingProxyType({"type": "btc_price_update"})

    def __init__(
        self,
        registry: JobRegistry,
        devices: DeviceRegistry,
        dispatcher: PushDispatcher,
        ticker: OkxTickerFeed,
        scheduler: BaseScheduler,
        cron_expression: Optional[str] = None,
        tracker: Optional[PriceAlertTracker] = None,
    ):
        settings = get_settings()
        super().__init__(registry, devices, cron_expression or settings.btc_update_cron)
        self.dispatcher = dispatcher
        self.ticker = ticker
        self.scheduler = scheduler
        self.check_interval_minutes = settings.btc_alert_check_minutes
        self.tracker = tracker or PriceAlertTracker(
            threshold=settings.btc_price_threshold,
            cooldown=timedelta(minutes=settings.btc_alert_cooldown_minutes),
            drop_ratio=settings.btc_alert_drop_ratio,
        )

    def check_feed(self) -> None:
        if self.ticker.fetch_price() is None:
            raise FeedError("Price ticker returned no data")

    def build_message(self) -> str:
        return format_price_message(self.ticker.fetch_price())

    def start(self) -> bool:
        if not super().start():
            return False

        self.scheduler.add_job(
            self.check_price_alert,
            "interval",
            minutes=self.check_interval_minutes,
            id=ALERT_JOB_ID,
            name="BTC Price Alert",
            replace_existing=True,
        )
        logger.info(f"BTC price alert check armed every {self.check_interval_minutes} minutes")
        return True

    def stop(self) -> None:
        super().stop()
        try:
            self.scheduler.remove_job(ALERT_JOB_ID)
            logger.info("BTC price alert check stopped")
        except JobLookupError:
            pass

    def check_price_alert(self, now: Optional[datetime] = None) -> bool:
        """Poll the ticker once and push an alert if warranted.

        Returns True when an alert was sent. Never raises.
        """
        try:
            ticker = self.ticker.fetch_price()
            if ticker is None:
                return False

            now = now or datetime.now(timezone.utc)
            price = ticker.price
            logger.debug(
                f"Checking price alert: price={price} threshold={self.tracker.threshold} "
                f"last_alert_price={self.tracker.last_alert_price} "
                f"last_alert_time={self.tracker.last_alert_time}"
            )
            if not self.tracker.should_alert(price, now):
                return False

            tokens = self.devices.get_active_tokens()
            self.dispatcher.send_to_tokens(
                tokens,
                ALERT_TITLE,
                format_price_alert(price, self.tracker.threshold),
                {"type": "btc_price_alert"},
            )
            self.tracker.record(price, now)
            logger.info(
                f"Price alert notification sent: price={price} "
                f"threshold={self.tracker.threshold}"
            )
            return True
        except Exception as e:
            logger.error(f"Failed to check price alert: {e}")
            return False
