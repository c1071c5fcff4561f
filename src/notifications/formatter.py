from __future__ import annotations

from typing import Dict, Optional

from src.feeds.base import PriceTicker

NO_RATE_MESSAGE = "暂无日元兑人民币汇率数据"
RATE_UNAVAILABLE_MESSAGE = "无法获取最新汇率数据"
PRICE_UNAVAILABLE_MESSAGE = "无法获取BTC价格数据"


def format_rate_message(rates: Optional[Dict[str, float]]) -> str:
    """Format the JPY to CNY rate for a push body."""
    if not rates or not rates.get("JPY_CNY"):
        return NO_RATE_MESSAGE

    return f"当前日元兑人民币汇率：\n100 JPY = {rates['JPY_CNY'] * 100:.4f} CNY"


def format_price_message(ticker: Optional[PriceTicker], symbol: str = "BTC") -> str:
    """Format the latest price with 24h range and change."""
    if ticker is None:
        return PRICE_UNAVAILABLE_MESSAGE

    is_positive = ticker.change_24h >= 0
    color_icon = "🟢" if is_positive else "🔴"
    direction_icon = "⬆️" if is_positive else "⬇️"
    change_text = f"{color_icon} {direction_icon} {ticker.change_24h_percent:.2f}%"

    return (
        f"{symbol}最新价格：{ticker.price:.2f} USDT\n"
        f"24h高：{ticker.high_24h:.2f}\n"
        f"24h低：{ticker.low_24h:.2f}\n"
        f"24h涨跌：{change_text}"
    )


def format_price_alert(price: float, threshold: float, symbol: str = "BTC") -> str:
    """Format a below-threshold alert."""
    threshold_diff = (threshold - price) / threshold * 100
    return (
        f"🔴 ⬇️ {symbol}价格预警！\n"
        f"当前价格: {price:.2f} USDT\n"
        f"已跌破 {threshold:g} USDT\n"
        f"低于阈值: {threshold_diff:.2f}%"
    )
