"""
Callback query handlers for the monitoring control keyboard.
"""
import logging

from aiogram import Router, F
from aiogram.types import CallbackQuery

from bot.handlers import commands
from bot.keyboards import get_control_keyboard

logger = logging.getLogger(__name__)

router = Router()


@router.callback_query(F.data == "monitor:toggle")
async def callback_toggle(callback: CallbackQuery):
    """Start monitoring if idle, stop it if running."""
    if not commands.is_authorized(callback.from_user.id):
        await callback.answer("⛔ Not allowed", show_alert=True)
        return

    if commands.monitor.is_running:
        text = await commands.stop_monitoring()
    else:
        text = await commands.start_monitoring()

    await callback.message.answer(
        text,
        reply_markup=get_control_keyboard(commands.monitor.is_running)
    )
    await callback.answer()


@router.callback_query(F.data == "monitor:status")
async def callback_status(callback: CallbackQuery):
    """Show monitoring status."""
    if not commands.is_authorized(callback.from_user.id):
        await callback.answer("⛔ Not allowed", show_alert=True)
        return

    await callback.message.answer(
        await commands.build_status_text(),
        reply_markup=get_control_keyboard(commands.monitor.is_running)
    )
    await callback.answer()
