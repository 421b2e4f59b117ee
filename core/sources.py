"""
Funding rate sources for each supported venue.
Each source turns a venue's public REST data into normalized Signals.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

import aiohttp

from core.errors import SourceError
from core.models import Signal, utcnow
from utils.filters import base_symbol, is_usdt_pair, normalize_pair, parse_decimal

logger = logging.getLogger(__name__)


class SignalSource(ABC):
    """Fetches current funding rate signals for one venue."""

    venue: str = ""
    base_url: str = ""
    # Whether the venue needs an API secret in addition to the key
    requires_secret: bool = False

    def __init__(self, base_url: Optional[str] = None, timeout: float = 15.0):
        """Initialize source with optional base URL override."""
        if base_url:
            self.base_url = base_url
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self):
        """Ensure aiohttp session exists."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)

    async def close(self):
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def _get_json(self, path: str, params: Optional[dict] = None, headers: Optional[dict] = None):
        await self._ensure_session()
        async with self._session.get(f"{self.base_url}{path}", params=params, headers=headers) as response:
            if response.status != 200:
                raise SourceError(self.venue, f"HTTP {response.status} from {path}")
            return await response.json(content_type=None)

    async def fetch_signals(self, api_key: str, api_secret: str = "") -> List[Signal]:
        """
        Fetch the current signals for every USDT perpetual on this venue.

        Raises:
            SourceError: on any transport or payload problem
        """
        try:
            signals = await self._fetch(api_key, api_secret)
        except SourceError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SourceError(self.venue, f"request failed: {e!r}") from e
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise SourceError(self.venue, f"malformed payload: {e!r}") from e

        logger.debug(f"{self.venue}: fetched {len(signals)} signals")
        return signals

    @abstractmethod
    async def _fetch(self, api_key: str, api_secret: str) -> List[Signal]:
        ...

    def make_signal(self, raw_symbol: str, price, funding_rate, captured_at: datetime) -> Optional[Signal]:
        """Build a Signal, or None if the reading is unusable (non-USDT, no price, no rate)."""
        pair = normalize_pair(raw_symbol)
        if not is_usdt_pair(pair):
            return None

        current_price = parse_decimal(price)
        if current_price is None or current_price <= 0:
            return None

        rate = parse_decimal(funding_rate)
        if rate is None:
            return None

        return Signal(
            venue=self.venue,
            symbol=base_symbol(pair),
            pair=pair,
            current_price=current_price,
            funding_rate=rate,
            timestamp=captured_at,
        )


class BinanceSource(SignalSource):
    """Binance USD-M futures: last price joined with last funding rate."""

    venue = "Binance"
    base_url = "https://fapi.binance.com"
    requires_secret = True

    async def _fetch(self, api_key: str, api_secret: str) -> List[Signal]:
        headers = {"X-MBX-APIKEY": api_key} if api_key else None
        prices = await self._get_json("/fapi/v1/ticker/price", headers=headers)
        premium = await self._get_json("/fapi/v1/premiumIndex", headers=headers)
        return self.parse(prices, premium, utcnow())

    def parse(self, prices: list, premium: list, captured_at: datetime) -> List[Signal]:
        funding: Dict[str, str] = {
            item["symbol"]: item.get("lastFundingRate") for item in premium
        }
        signals = []
        for ticker in prices:
            symbol = ticker["symbol"]
            if symbol not in funding:
                continue
            signal = self.make_signal(symbol, ticker.get("price"), funding[symbol], captured_at)
            if signal:
                signals.append(signal)
        return signals


class BybitSource(SignalSource):
    """Bybit linear perpetuals: tickers carry both price and funding rate."""

    venue = "Bybit"
    base_url = "https://api.bybit.com"

    async def _fetch(self, api_key: str, api_secret: str) -> List[Signal]:
        payload = await self._get_json("/v5/market/tickers", params={"category": "linear"})
        return self.parse(payload, utcnow())

    def parse(self, payload: dict, captured_at: datetime) -> List[Signal]:
        if payload.get("retCode") != 0:
            raise SourceError(self.venue, f"API error {payload.get('retCode')}: {payload.get('retMsg')}")

        signals = []
        for ticker in payload["result"]["list"]:
            signal = self.make_signal(
                ticker["symbol"], ticker.get("lastPrice"), ticker.get("fundingRate"), captured_at
            )
            if signal:
                signals.append(signal)
        return signals


class MexcSource(SignalSource):
    """MEXC contracts: BTC_USDT style symbols, normalized to BTCUSDT."""

    venue = "MEXC"
    base_url = "https://contract.mexc.com"

    async def _fetch(self, api_key: str, api_secret: str) -> List[Signal]:
        payload = await self._get_json("/api/v1/contract/ticker")
        return self.parse(payload, utcnow())

    def parse(self, payload: dict, captured_at: datetime) -> List[Signal]:
        if not payload.get("success"):
            raise SourceError(self.venue, f"API error {payload.get('code')}: {payload.get('message')}")

        data = payload["data"]
        if isinstance(data, dict):
            data = [data]

        signals = []
        for ticker in data:
            signal = self.make_signal(
                ticker["symbol"], ticker.get("lastPrice"), ticker.get("fundingRate"), captured_at
            )
            if signal:
                signals.append(signal)
        return signals


def default_sources() -> List[SignalSource]:
    """One source per supported venue."""
    return [BinanceSource(), BybitSource(), MexcSource()]
