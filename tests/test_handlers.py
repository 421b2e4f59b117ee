"""
Telegram control handler tests.
"""
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest_asyncio

from conftest import FakeSource, make_config
from bot.handlers import callbacks, commands
from core.models import CycleReport, VenueConfig
from core.scheduler import FundingMonitor


def make_message(user_id):
    return SimpleNamespace(from_user=SimpleNamespace(id=user_id), answer=AsyncMock())


def make_callback(user_id):
    return SimpleNamespace(
        from_user=SimpleNamespace(id=user_id),
        message=SimpleNamespace(answer=AsyncMock()),
        answer=AsyncMock(),
    )


@pytest_asyncio.fixture
async def monitor(ledger, notifier, monkeypatch):
    monitor = FundingMonitor(make_config(poll_interval_seconds=3600), [FakeSource("Binance")], notifier, ledger)
    monkeypatch.setattr(commands, "monitor", monitor)
    monkeypatch.setattr(commands, "whitelisted_user_id", 42)
    yield monitor
    await monitor.stop()


def test_only_whitelisted_user_is_authorized(monkeypatch):
    monkeypatch.setattr(commands, "whitelisted_user_id", 42)
    assert commands.is_authorized(42)
    assert not commands.is_authorized(7)


def test_everyone_is_authorized_without_whitelist(monkeypatch):
    monkeypatch.setattr(commands, "whitelisted_user_id", None)
    assert commands.is_authorized(7)


async def test_configuration_problems_are_listed(monitor):
    monitor.config.bot_token = ""
    monitor.config.venues = [VenueConfig(name="Binance", enabled=True, requires_secret=True)]

    reply = await commands.start_monitoring()

    assert reply.startswith("❌ Monitoring not started. Fix the configuration:")
    assert "• Telegram bot token is not set" in reply
    assert "• Binance: API key is required" in reply
    assert "• Binance: API secret is required" in reply
    assert not monitor.is_running


async def test_start_and_stop_replies(monitor):
    assert await commands.start_monitoring() == "✅ Monitoring started."
    assert await commands.start_monitoring() == "✅ Monitoring is already running."
    assert await commands.stop_monitoring() == "⏹ Monitoring stopped."
    assert await commands.stop_monitoring() == "⏹ Monitoring is not running."


async def test_status_text_shows_last_cycle(monitor, ledger):
    await ledger.record_send("Binance", "BTC")
    monitor.last_report = CycleReport(signals=12, triggered=2, delivered=1, failed_venues=["Bybit", "MEXC"])

    text = await commands.build_status_text()

    assert "State: idle" in text
    assert "Venues: Binance" in text
    assert "Channels: 2" in text
    assert "Ledger records: 1" in text
    assert "12 signals, 2 triggered, 1 delivered" in text
    assert "Failed venues: Bybit, MEXC" in text


async def test_status_text_without_cycles(monitor):
    text = await commands.build_status_text()
    assert "Last cycle" not in text
    assert "Failed venues" not in text


async def test_monitor_on_denied_for_other_user(monitor):
    message = make_message(user_id=7)

    await commands.cmd_monitor_on(message)

    assert "not allowed" in message.answer.call_args.args[0]
    assert not monitor.is_running


async def test_monitor_on_and_off_for_whitelisted_user(monitor):
    message = make_message(user_id=42)

    await commands.cmd_monitor_on(message)
    assert monitor.is_running
    assert message.answer.call_args.args[0] == "✅ Monitoring started."

    await commands.cmd_monitor_off(message)
    assert not monitor.is_running
    assert message.answer.call_args.args[0] == "⏹ Monitoring stopped."


async def test_status_command_denied_for_other_user(monitor):
    message = make_message(user_id=7)

    await commands.cmd_status(message)

    assert "not allowed" in message.answer.call_args.args[0]


async def test_toggle_callback_starts_then_stops(monitor):
    callback = make_callback(user_id=42)

    await callbacks.callback_toggle(callback)
    assert monitor.is_running

    await callbacks.callback_toggle(callback)
    assert not monitor.is_running
    assert callback.message.answer.call_args.args[0] == "⏹ Monitoring stopped."


async def test_toggle_callback_denied_for_other_user(monitor):
    callback = make_callback(user_id=7)

    await callbacks.callback_toggle(callback)

    assert not monitor.is_running
    callback.message.answer.assert_not_called()
    callback.answer.assert_awaited_once_with("⛔ Not allowed", show_alert=True)


async def test_status_callback_requires_authorization(monitor):
    denied = make_callback(user_id=7)
    await callbacks.callback_status(denied)
    denied.message.answer.assert_not_called()

    allowed = make_callback(user_id=42)
    await callbacks.callback_status(allowed)
    assert "📊 Funding Monitor Status" in allowed.message.answer.call_args.args[0]
