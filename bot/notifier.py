"""
Notification system for sending funding rate alerts to Telegram channels.
Handles message formatting and delivery with rate limiting.
"""
import asyncio
import logging

from aiogram import Bot
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramForbiddenError, TelegramRetryAfter

from core.errors import DeliveryError
from core.models import Signal
from utils.filters import parse_chat_destination
from utils.formatting import format_funding_alert

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """
    Sends funding alerts to Telegram chats.
    Raises DeliveryError on failure so the caller can isolate channels.
    """

    def __init__(self, bot: Bot):
        """Initialize notifier with bot instance."""
        self.bot = bot

    async def send(self, signal: Signal, channel_id: str, action_url: str = ""):
        """
        Format and send one alert.

        Args:
            signal: Presentation-ready signal
            channel_id: "chat_id" or "chat_id:thread_id"
            action_url: Optional call-to-action link (empty = omit)
        """
        chat_id, thread_id = parse_chat_destination(channel_id)
        if chat_id is None:
            raise DeliveryError(channel_id, "invalid channel ID")

        message = format_funding_alert(signal, action_url)
        await self._send_message(channel_id, chat_id, message, thread_id)

    async def _send_message(self, channel_id: str, chat_id: int, text: str, message_thread_id=None):
        """
        Send message with flood-control handling.

        Args:
            channel_id: Original destination string, for error reporting
            chat_id: Telegram chat ID (user, group, or channel)
            text: Message text to send
            message_thread_id: Optional topic/thread ID for supergroups
        """
        try:
            await self.bot.send_message(
                chat_id=chat_id,
                text=text,
                message_thread_id=message_thread_id,
                parse_mode=ParseMode.MARKDOWN,
                disable_web_page_preview=True
            )

        except TelegramRetryAfter as e:
            # Telegram rate limit hit
            logger.warning(f"Rate limit hit for chat {chat_id}, waiting {e.retry_after}s")
            await asyncio.sleep(e.retry_after)
            # Retry once
            try:
                await self.bot.send_message(
                    chat_id=chat_id,
                    text=text,
                    message_thread_id=message_thread_id,
                    parse_mode=ParseMode.MARKDOWN,
                    disable_web_page_preview=True
                )
            except Exception as retry_error:
                raise DeliveryError(channel_id, f"retry failed: {retry_error}") from retry_error

        except TelegramForbiddenError as e:
            # Bot blocked or removed from the channel
            logger.warning(f"Bot blocked or removed from chat {chat_id}")
            raise DeliveryError(channel_id, "bot is blocked or was removed from this chat") from e

        except Exception as e:
            logger.error(f"Error sending message to chat {chat_id}: {e}")
            raise DeliveryError(channel_id, str(e)) from e
