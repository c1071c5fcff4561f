from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import httpx
from loguru import logger

from src.config import get_settings
from src.feeds.base import ExchangeRateResult, FeedError
from src.feeds.utils import fetch_json

TARGET_CURRENCIES = ("CNY", "JPY")


def calculate_cross_rate(cny_rate: float, jpy_rate: float) -> float:
    """JPY/CNY = (CNY/USD) / (JPY/USD)"""
    return cny_rate / jpy_rate


class ExchangeRateService:
    """USD-based exchange rates with a short in-memory cache."""

    def __init__(self, client: Optional[httpx.Client] = None):
        self.settings = get_settings()
        self.client = client or httpx.Client(timeout=self.settings.feed_timeout)
        self.cache_duration = timedelta(minutes=self.settings.exchange_rate_cache_minutes)
        self._cached_rates: Optional[Dict[str, float]] = None
        self._cached_at: Optional[datetime] = None

    def _is_cache_valid(self, now: datetime) -> bool:
        if not self._cached_rates or self._cached_at is None:
            return False
        return now - self._cached_at < self.cache_duration

    def clear_cache(self) -> None:
        self._cached_rates = None
        self._cached_at = None

    def close(self) -> None:
        self.client.close()

    def get_exchange_rates(self) -> ExchangeRateResult:
        """取得最新匯率；失敗時回傳 success=False 而不拋出例外"""
        now = datetime.now(timezone.utc)
        if self._is_cache_valid(now):
            logger.debug("Using cached exchange rates")
            return ExchangeRateResult(
                success=True,
                rates=dict(self._cached_rates),
                timestamp=self._cached_at.isoformat(),
            )

        try:
            data = fetch_json(self.client, self.settings.exchange_rate_api_url)
        except FeedError as e:
            logger.error(f"Failed to get exchange rates: {e}")
            return ExchangeRateResult(success=False, error="Failed to fetch exchange rates")

        upstream = data.get("rates") if isinstance(data, dict) else None
        if not isinstance(upstream, dict):
            logger.error("Exchange rate response has no rates")
            return ExchangeRateResult(success=False, error="Invalid exchange rate response")

        rates: Dict[str, float] = {}
        if all(upstream.get(currency) for currency in TARGET_CURRENCIES):
            rates["CNY"] = float(upstream["CNY"])
            rates["JPY"] = float(upstream["JPY"])
            rates["JPY_CNY"] = calculate_cross_rate(rates["CNY"], rates["JPY"])

        self._cached_rates = rates
        self._cached_at = now
        logger.info(f"Exchange rates updated successfully: {rates}")
        return ExchangeRateResult(success=True, rates=dict(rates), timestamp=now.isoformat())
