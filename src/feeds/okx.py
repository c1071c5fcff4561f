from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import httpx
from loguru import logger

from src.config import get_settings
from src.feeds.base import FeedError, PriceTicker
from src.feeds.utils import fetch_json


class OkxTickerFeed:
    """Spot ticker from the OKX public market API."""

    def __init__(self, client: Optional[httpx.Client] = None, inst_id: Optional[str] = None):
        self.settings = get_settings()
        self.client = client or httpx.Client(timeout=self.settings.feed_timeout)
        self.inst_id = inst_id or self.settings.btc_trading_pair

    def close(self) -> None:
        self.client.close()

    def fetch_price(self) -> Optional[PriceTicker]:
        try:
            data = fetch_json(
                self.client, self.settings.okx_ticker_url, params={"instId": self.inst_id}
            )
        except FeedError as e:
            logger.error(f"Failed to fetch {self.inst_id} price: {e}")
            return None

        if not isinstance(data, dict) or data.get("code") != "0" or not data.get("data"):
            logger.error(f"Invalid ticker response for {self.inst_id}: {data}")
            return None

        item = data["data"][0]
        try:
            return PriceTicker(
                price=float(item["last"]),
                high_24h=float(item["high24h"]),
                low_24h=float(item["low24h"]),
                open_24h=float(item["open24h"]),
                timestamp=datetime.fromtimestamp(
                    int(item["ts"]) / 1000, tz=timezone.utc
                ).isoformat(),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed ticker data for {self.inst_id}: {e}")
            return None
