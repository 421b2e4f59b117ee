"""
Funding Alert Bot - Main Entry Point
Polls perpetual funding rates across venues and posts threshold alerts to Telegram.
"""
import asyncio
import sys
import time

from aiogram import Bot, Dispatcher
from aiogram.fsm.storage.memory import MemoryStorage

from config import get_settings, ensure_data_directory
from core.errors import ConfigurationError
from core.ledger import CooldownLedger
from core.models import EventKind, MonitorEvent
from core.scheduler import FundingMonitor
from core.sources import SignalSource, default_sources
from bot.notifier import TelegramNotifier
from bot.handlers import commands, callbacks
from utils.logging_config import setup_logging

# Configure logging system
settings = get_settings()
loggers = setup_logging(log_level=settings.log_level)
logger = loggers['system']


class FundingAlertBot:
    """Main bot application orchestrating all components."""

    def __init__(self):
        """Initialize bot components."""
        self.settings = get_settings()
        if not self.settings.bot_token:
            raise ConfigurationError(["Telegram bot token is not set (BOT_TOKEN)"])

        # Core components
        self.bot = Bot(token=self.settings.bot_token)
        self.dp = Dispatcher(storage=MemoryStorage())
        self.ledger: CooldownLedger = None
        self.monitor: FundingMonitor = None
        self.sources: list[SignalSource] = []

        # Start time for uptime tracking
        self.start_time = time.time()

    async def setup(self):
        """Setup all components."""
        logger.info("Setting up Funding Alert Bot...")

        # Ensure data directory exists
        ensure_data_directory()

        # Open cooldown ledger (never fails startup)
        self.ledger = CooldownLedger(self.settings.ledger_path)
        await self.ledger.connect()

        self.sources = default_sources()
        self.monitor = FundingMonitor(
            config=self.settings.to_monitor_config(),
            sources=self.sources,
            notifier=TelegramNotifier(self.bot),
            ledger=self.ledger,
        )
        self.monitor.on_event = self.handle_event

        # Setup handlers
        commands.monitor = self.monitor
        commands.whitelisted_user_id = self.settings.whitelisted_user_id
        commands.start_time = self.start_time

        self.dp.include_router(commands.router)
        self.dp.include_router(callbacks.router)

        logger.info("Setup complete!")

    def handle_event(self, event: MonitorEvent):
        """Surface monitor events in the logs."""
        where = " ".join(part for part in (event.venue, event.symbol, event.channel_id) if part)
        if event.kind == EventKind.ALERT_DELIVERED:
            logger.info(f"[{event.kind.value}] {where}: {event.message}")
        else:
            logger.warning(f"[{event.kind.value}] {where}: {event.message}")

    async def start(self):
        """Start monitoring (if configured to) and Telegram polling."""
        logger.info("Starting Funding Alert Bot...")

        if self.settings.auto_start:
            try:
                await self.monitor.start()
            except ConfigurationError as e:
                logger.error(f"Auto-start skipped, configuration problems: {e.problems}")

        # Start polling
        try:
            await self.dp.start_polling(self.bot, allowed_updates=self.dp.resolve_used_update_types())
        finally:
            await self.shutdown()

    async def shutdown(self):
        """Graceful shutdown."""
        logger.info("Shutting down Funding Alert Bot...")

        if self.monitor:
            await self.monitor.stop()

        for source in self.sources:
            await source.close()

        if self.ledger:
            await self.ledger.close()

        # Close bot session
        await self.bot.session.close()

        logger.info("Shutdown complete")


async def main():
    """Main entry point."""
    try:
        bot = FundingAlertBot()
        await bot.setup()
        await bot.start()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Received interrupt signal")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user")
