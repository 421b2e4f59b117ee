"""
Configuration module for Funding Alert Bot.
Loads environment variables and provides application settings.
"""
from decimal import Decimal
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.models import ChannelConfig, MonitorConfig, MonitorSettings, VenueConfig


def percent_to_fraction(value: Decimal) -> Decimal:
    """Convert an operator-facing percent (-0.1) into a funding rate fraction (-0.001)."""
    return Decimal(value) / Decimal(100)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Telegram Bot Configuration
    bot_token: str = ""

    # Only this user may start/stop monitoring from Telegram (None = anyone)
    whitelisted_user_id: Optional[int] = None

    # Venues. Thresholds are in percent: -0.1 means "alert at or below -0.1%"
    binance_enabled: bool = True
    binance_api_key: str = ""
    binance_api_secret: str = ""
    binance_threshold: Decimal = Decimal("-0.1")

    bybit_enabled: bool = True
    bybit_api_key: str = ""
    bybit_api_secret: str = ""
    bybit_threshold: Decimal = Decimal("-0.1")

    mexc_enabled: bool = True
    mexc_api_key: str = ""
    mexc_api_secret: str = ""
    mexc_threshold: Decimal = Decimal("-0.1")

    # Notification Destinations
    # Format: "chat_id" or "chat_id:thread_id" for topics
    channel_1_id: str = ""
    channel_1_enabled: bool = False
    channel_2_id: str = ""
    channel_2_enabled: bool = False

    # Optional "Trade" link appended to every alert
    trade_bot_url: str = ""
    trade_bot_enabled: bool = False

    # Monitoring cadence
    poll_interval_seconds: float = Field(default=60, gt=0)
    cooldown_hours: float = Field(default=8, ge=0)
    retention_hours: float = Field(default=24, gt=0)
    pacing_millis: int = Field(default=200, ge=0)
    cleanup_interval_minutes: float = Field(default=60, gt=0)
    auto_start: bool = False

    # Ledger Configuration
    ledger_path: str = "./data/sent_signals.db"

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def to_monitor_config(self) -> MonitorConfig:
        """Build the monitor configuration, channels in delivery order."""
        venues = [
            VenueConfig(
                name="Binance",
                enabled=self.binance_enabled,
                api_key=self.binance_api_key,
                api_secret=self.binance_api_secret,
                requires_secret=True,
                threshold=percent_to_fraction(self.binance_threshold),
            ),
            VenueConfig(
                name="Bybit",
                enabled=self.bybit_enabled,
                api_key=self.bybit_api_key,
                api_secret=self.bybit_api_secret,
                threshold=percent_to_fraction(self.bybit_threshold),
            ),
            VenueConfig(
                name="MEXC",
                enabled=self.mexc_enabled,
                api_key=self.mexc_api_key,
                api_secret=self.mexc_api_secret,
                threshold=percent_to_fraction(self.mexc_threshold),
            ),
        ]
        channels = [
            ChannelConfig(enabled=self.channel_1_enabled, channel_id=self.channel_1_id.strip()),
            ChannelConfig(enabled=self.channel_2_enabled, channel_id=self.channel_2_id.strip()),
        ]
        return MonitorConfig(
            bot_token=self.bot_token,
            venues=venues,
            channels=channels,
            action_url=self.trade_bot_url if self.trade_bot_enabled else "",
            settings=MonitorSettings(
                poll_interval_seconds=self.poll_interval_seconds,
                cooldown_hours=self.cooldown_hours,
                retention_hours=self.retention_hours,
                pacing_millis=self.pacing_millis,
                cleanup_interval_minutes=self.cleanup_interval_minutes,
            ),
        )


def get_settings() -> Settings:
    """Get application settings singleton."""
    return Settings()


# Create data directory if it doesn't exist
def ensure_data_directory():
    """Ensure the data directory exists for the ledger database."""
    settings = get_settings()
    db_path = Path(settings.ledger_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
