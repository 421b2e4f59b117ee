"""
Message formatting utilities for funding rate Telegram alerts.
"""
from decimal import Decimal
from typing import Optional

from core.models import Signal

EXCHANGE_CHART_URLS = {
    "BINANCE": "https://www.binance.com/en/futures/{pair}",
    "BYBIT": "https://www.bybit.com/trade/usdt/{pair}",
    "MEXC": "https://futures.mexc.com/exchange/{mexc_pair}",
}


def get_exchange_url(venue: str, pair: str) -> str:
    """Link to the pair's chart on the venue's website."""
    template = EXCHANGE_CHART_URLS.get(venue.upper())
    if template is None:
        return f"https://www.{venue.lower()}.com"
    return template.format(pair=pair, mexc_pair=pair.replace("USDT", "_USDT"))


def get_coinglass_url(venue: str, pair: str) -> str:
    """
    Link to the pair's CoinGlass chart.

    CoinGlass uses "Binance_BTCUSDT" style identifiers; MEXC keeps its caps.
    """
    if venue.upper() == "MEXC":
        exchange = "MEXC"
    else:
        exchange = venue[:1].upper() + venue[1:].lower()
    return f"https://www.coinglass.com/tv/{exchange}_{pair}"


def format_price(value: Decimal) -> str:
    """Four decimals for typical prices, more for sub-cent assets."""
    if value < Decimal("0.01"):
        return f"{value:.8f}"
    return f"{value:.4f}"


def format_funding_rate(rate: Decimal) -> str:
    """Fractional funding rate as a signed percent: -0.0015 -> "-0.1500%"."""
    return f"{rate * 100:+.4f}%"


def format_funding_alert(signal: Signal, action_url: Optional[str] = "") -> str:
    """
    Format a triggered signal into a Markdown Telegram message.

    Args:
        signal: Presentation-ready signal (target price already attached)
        action_url: Optional "Trade" link; empty string omits it

    Returns:
        Formatted message string with emojis
    """
    exchange_url = get_exchange_url(signal.venue, signal.pair)
    coinglass_url = get_coinglass_url(signal.venue, signal.pair)

    is_long_bias = signal.funding_rate < 0
    bias_line = "🟢 Analyzing Buy ⬆️" if is_long_bias else "🔴 Analyzing Sell ⬇️"

    lines = [
        f"⚫️ [{signal.venue}]({exchange_url}) - [{signal.symbol}]({coinglass_url}) - {signal.pair}",
        bias_line,
        f"🅿️ {format_price(signal.current_price)}",
        f"📃 {format_funding_rate(signal.funding_rate)}",
    ]

    if signal.target_price is not None:
        lines.append(f"🎯 TP {format_price(signal.target_price)}")

    if action_url and action_url.strip():
        lines.append(f"[🌐 Trade]({action_url.strip()})")

    lines.append(f"Since: {signal.timestamp.strftime('%Y-%m-%d %H:%M:%S')} UTC")

    return "\n".join(lines)
