"""
Telegram inline keyboards for Funding Alert Bot.
"""
from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton
from aiogram.utils.keyboard import InlineKeyboardBuilder


def get_control_keyboard(is_running: bool) -> InlineKeyboardMarkup:
    """Start/stop toggle plus status refresh."""
    builder = InlineKeyboardBuilder()

    toggle_text = "⏹ Stop Monitoring" if is_running else "▶️ Start Monitoring"
    builder.row(
        InlineKeyboardButton(text=toggle_text, callback_data="monitor:toggle")
    )
    builder.row(
        InlineKeyboardButton(text="📊 Status", callback_data="monitor:status")
    )

    return builder.as_markup()
