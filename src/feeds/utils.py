from __future__ import annotations

import time
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from src.config import get_settings
from src.feeds.base import FeedError


def fetch_json(
    client: httpx.Client,
    url: str,
    params: Optional[Dict[str, Any]] = None,
    retries: Optional[int] = None,
    retry_delay: Optional[float] = None,
) -> Any:
    """GET a JSON document, retrying a fixed number of times with a fixed delay.

    Raises:
        FeedError: every attempt failed.
    """
    settings = get_settings()
    if retries is None:
        retries = settings.feed_max_retries
    if retry_delay is None:
        retry_delay = settings.feed_retry_delay
    retries = max(1, retries)

    last_error: Optional[Exception] = None
    for attempt in range(retries):
        try:
            response = client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            last_error = e
            logger.warning(f"Fetch attempt {attempt + 1}/{retries} failed for {url}: {e}")
            if attempt < retries - 1:
                time.sleep(retry_delay)

    raise FeedError(f"Failed to fetch {url} after {retries} attempts: {last_error}")
