"""
Shared fixtures and fakes for Funding Alert Bot tests.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio

from core.errors import DeliveryError, SourceError
from core.ledger import CooldownLedger
from core.models import (
    ChannelConfig, MonitorConfig, MonitorSettings, Signal, VenueConfig
)
from core.sources import SignalSource

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_signal(venue="Binance", symbol="BTC", funding_rate="-0.0015", price="100", pair=None, **kwargs):
    """Build a Signal with readable defaults."""
    return Signal(
        venue=venue,
        symbol=symbol,
        pair=pair or f"{symbol}USDT",
        current_price=Decimal(price),
        funding_rate=Decimal(funding_rate),
        timestamp=kwargs.pop("timestamp", T0),
        **kwargs
    )


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeSource(SignalSource):
    """Returns queued batches of signals; an Exception in the queue is raised."""

    def __init__(self, venue: str, batches=None):
        super().__init__()
        self.venue = venue
        self.batches = list(batches or [])
        self.calls = 0
        self.credentials = []

    def queue(self, *signals):
        self.batches.append(list(signals))

    async def _fetch(self, api_key, api_secret):
        self.calls += 1
        self.credentials.append((api_key, api_secret))
        if not self.batches:
            return []
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return batch


class RecordingNotifier:
    """Records every send; channels in fail_channels raise DeliveryError."""

    def __init__(self, fail_channels=()):
        self.sent = []
        self.fail_channels = set(fail_channels)

    async def send(self, signal, channel_id, action_url=""):
        if channel_id in self.fail_channels:
            raise DeliveryError(channel_id, "simulated failure")
        self.sent.append((signal, channel_id, action_url))

    @property
    def deliveries(self):
        return [(signal.venue, signal.pair, channel_id) for signal, channel_id, _ in self.sent]


def make_config(venues=None, channels=None, **settings) -> MonitorConfig:
    """Valid monitor config with zero pacing."""
    settings.setdefault("pacing_millis", 0)
    return MonitorConfig(
        bot_token="123456:TEST",
        venues=venues if venues is not None else [
            VenueConfig(name="Binance", enabled=True, api_key="key", api_secret="secret",
                        requires_secret=True, threshold=Decimal("-0.1")),
        ],
        channels=channels if channels is not None else [
            ChannelConfig(enabled=True, channel_id="-1001"),
            ChannelConfig(enabled=True, channel_id="-1002"),
        ],
        settings=MonitorSettings(**settings),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def ledger(tmp_path, clock):
    ledger = CooldownLedger(str(tmp_path / "sent_signals.db"), clock=clock)
    await ledger.connect()
    yield ledger
    await ledger.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def failing_source_error():
    return SourceError("Bybit", "HTTP 503 from /v5/market/tickers")
