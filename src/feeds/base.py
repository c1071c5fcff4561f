from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional


class FeedError(Exception):
    """An upstream feed could not be fetched or returned unusable data."""


@dataclass
class ExchangeRateResult:
    success: bool
    rates: Dict[str, float] = field(default_factory=dict)
    timestamp: Optional[str] = None
    error: Optional[str] = None


@dataclass
class PriceTicker:
    price: float
    high_24h: float
    low_24h: float
    open_24h: float
    timestamp: str

    @property
    def change_24h(self) -> float:
        return self.price - self.open_24h

    @property
    def change_24h_percent(self) -> float:
        if not self.open_24h:
            return 0.0
        return self.change_24h / self.open_24h * 100
