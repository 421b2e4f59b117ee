"""
Pydantic models for Funding Alert Bot data structures.
"""
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def signal_key(venue: str, symbol: str) -> str:
    """Dedup key shared by hysteresis and the cooldown ledger."""
    return f"{venue}-{symbol}"


class MonitorState(str, Enum):
    """Monitoring lifecycle state."""
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"


class EventKind(str, Enum):
    """Kinds of events the monitor reports to its shell."""
    SOURCE_ERROR = "source_error"
    DELIVERY_ERROR = "delivery_error"
    LEDGER_ERROR = "ledger_error"
    CYCLE_ERROR = "cycle_error"
    ALERT_DELIVERED = "alert_delivered"


class Signal(BaseModel):
    """One funding rate reading for one instrument on one venue."""
    model_config = ConfigDict(frozen=True)

    venue: str
    symbol: str  # base asset, e.g. "BTC"
    pair: str  # e.g. "BTCUSDT"
    current_price: Decimal
    funding_rate: Decimal  # fractional, -0.0015 == -0.15%
    target_price: Optional[Decimal] = None
    timestamp: datetime = Field(default_factory=utcnow)

    @property
    def key(self) -> str:
        return signal_key(self.venue, self.symbol)


class SentRecord(BaseModel):
    """Last time an alert for a (venue, symbol) pair was sent."""
    venue: str
    symbol: str
    last_sent_time: datetime

    @property
    def key(self) -> str:
        return signal_key(self.venue, self.symbol)


class VenueConfig(BaseModel):
    """Per-venue monitoring configuration."""
    name: str
    enabled: bool = False
    api_key: str = ""
    api_secret: str = ""
    requires_secret: bool = False
    threshold: Decimal = Decimal("-0.001")  # same units as Signal.funding_rate


class ChannelConfig(BaseModel):
    """Delivery channel. channel_id is "chat_id" or "chat_id:thread_id"."""
    enabled: bool = False
    channel_id: str = ""


class MonitorSettings(BaseModel):
    """Timing knobs for the monitoring loop."""
    poll_interval_seconds: float = Field(default=60, gt=0)
    cooldown_hours: float = Field(default=8, ge=0)
    retention_hours: float = Field(default=24, gt=0)
    pacing_millis: int = Field(default=200, ge=0)
    cleanup_interval_minutes: float = Field(default=60, gt=0)


class MonitorConfig(BaseModel):
    """Everything the monitor needs to start."""
    bot_token: str = ""
    venues: List[VenueConfig] = Field(default_factory=list)
    channels: List[ChannelConfig] = Field(default_factory=list)
    action_url: str = ""  # empty = no call-to-action link
    settings: MonitorSettings = Field(default_factory=MonitorSettings)

    @property
    def enabled_venues(self) -> List[VenueConfig]:
        return [venue for venue in self.venues if venue.enabled]

    @property
    def enabled_channels(self) -> List[ChannelConfig]:
        return [channel for channel in self.channels if channel.enabled]


class MonitorEvent(BaseModel):
    """Non-fatal occurrence reported by the monitor."""
    kind: EventKind
    message: str
    venue: Optional[str] = None
    symbol: Optional[str] = None
    channel_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)


class CycleReport(BaseModel):
    """Summary of one polling cycle."""
    started_at: datetime = Field(default_factory=utcnow)
    signals: int = 0
    triggered: int = 0
    delivered: int = 0
    failed_venues: List[str] = Field(default_factory=list)
