"""
Command handlers for Funding Alert Bot.
Handles /start, /status, /monitor_on and /monitor_off.
"""
import logging
import time
from typing import Optional

from aiogram import Router
from aiogram.filters import Command, CommandStart
from aiogram.types import Message

from bot.keyboards import get_control_keyboard
from core.errors import ConfigurationError
from core.scheduler import FundingMonitor

logger = logging.getLogger(__name__)

router = Router()

# Global references (will be set by main.py)
monitor: FundingMonitor = None
whitelisted_user_id: Optional[int] = None
start_time: float = time.time()


def is_authorized(user_id: int) -> bool:
    """Only the whitelisted user may control monitoring (anyone if unset)."""
    return whitelisted_user_id is None or user_id == whitelisted_user_id


async def start_monitoring() -> str:
    """Start monitoring and describe the outcome for the user."""
    if monitor.is_running:
        return "✅ Monitoring is already running."
    try:
        await monitor.start()
    except ConfigurationError as e:
        problems = "\n".join(f"• {problem}" for problem in e.problems)
        return f"❌ Monitoring not started. Fix the configuration:\n{problems}"
    return "✅ Monitoring started."


async def stop_monitoring() -> str:
    """Stop monitoring and describe the outcome for the user."""
    if not monitor.is_running:
        return "⏹ Monitoring is not running."
    await monitor.stop()
    return "⏹ Monitoring stopped."


async def build_status_text() -> str:
    """Human-readable monitor status."""
    uptime_seconds = time.time() - start_time
    hours = int(uptime_seconds // 3600)
    minutes = int((uptime_seconds % 3600) // 60)

    venues = ", ".join(venue.name for venue in monitor.config.enabled_venues) or "none"
    lines = [
        "📊 Funding Monitor Status",
        "",
        f"State: {monitor.state.value}",
        f"Venues: {venues}",
        f"Channels: {len(monitor.config.enabled_channels)}",
        f"In alert: {len(monitor.fired)}",
        f"Ledger records: {await monitor.ledger.count()}",
        f"Uptime: {hours}h {minutes}m",
    ]

    report = monitor.last_report
    if report:
        lines.append("")
        lines.append(
            f"Last cycle ({report.started_at.strftime('%H:%M:%S')} UTC): "
            f"{report.signals} signals, {report.triggered} triggered, {report.delivered} delivered"
        )
        if report.failed_venues:
            lines.append(f"Failed venues: {', '.join(report.failed_venues)}")

    return "\n".join(lines)


@router.message(CommandStart())
async def cmd_start(message: Message):
    """Handle /start command."""
    welcome_text = """
📈 Funding Alert Bot

Watches perpetual funding rates on Binance, Bybit and MEXC and posts an alert to your channels when a rate crosses its threshold.

Commands:
/status - monitoring status
/monitor_on - start monitoring
/monitor_off - stop monitoring
"""
    await message.answer(welcome_text, reply_markup=get_control_keyboard(monitor.is_running))


@router.message(Command("status"))
async def cmd_status(message: Message):
    """Handle /status command."""
    if not is_authorized(message.from_user.id):
        await message.answer("⛔ You are not allowed to view monitoring status.")
        return

    await message.answer(await build_status_text(), reply_markup=get_control_keyboard(monitor.is_running))


@router.message(Command("monitor_on"))
async def cmd_monitor_on(message: Message):
    """Handle /monitor_on command."""
    if not is_authorized(message.from_user.id):
        await message.answer("⛔ You are not allowed to control monitoring.")
        return

    logger.info(f"User {message.from_user.id} requested monitoring start")
    await message.answer(await start_monitoring(), reply_markup=get_control_keyboard(monitor.is_running))


@router.message(Command("monitor_off"))
async def cmd_monitor_off(message: Message):
    """Handle /monitor_off command."""
    if not is_authorized(message.from_user.id):
        await message.answer("⛔ You are not allowed to control monitoring.")
        return

    logger.info(f"User {message.from_user.id} requested monitoring stop")
    await message.answer(await stop_monitoring(), reply_markup=get_control_keyboard(monitor.is_running))
