"""
Parsing and filtering helpers shared by sources, notifier and validation.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

QUOTE_ASSET = "USDT"


def parse_chat_destination(chat_config: Optional[str]) -> Tuple[Optional[int], Optional[int]]:
    """
    Parse chat destination from config string.

    Args:
        chat_config: Either "chat_id" or "chat_id:thread_id"

    Returns:
        Tuple of (chat_id, message_thread_id); (None, None) when invalid
    """
    if not chat_config:
        return None, None

    try:
        if ':' in chat_config:
            chat_id_str, thread_id_str = chat_config.split(':', 1)
            return int(chat_id_str), int(thread_id_str)
        else:
            return int(chat_config), None
    except ValueError:
        logger.error(f"Invalid chat destination format: {chat_config}")
        return None, None


def is_valid_chat_destination(chat_config: Optional[str]) -> bool:
    """True if the string parses as a Telegram destination."""
    chat_id, _ = parse_chat_destination(chat_config)
    return chat_id is not None


def normalize_pair(raw_symbol: str) -> str:
    """Normalize venue pair notation: "BTC_USDT" / "btc-usdt" -> "BTCUSDT"."""
    return raw_symbol.replace('_', '').replace('-', '').upper()


def is_usdt_pair(pair: str) -> bool:
    """Only USDT-quoted perpetuals are monitored."""
    return pair.upper().endswith(QUOTE_ASSET) and len(pair) > len(QUOTE_ASSET)


def base_symbol(pair: str) -> str:
    """Extract base asset from a normalized pair ("BTCUSDT" -> "BTC")."""
    if is_usdt_pair(pair):
        return pair[:-len(QUOTE_ASSET)]
    return pair


def parse_decimal(value) -> Optional[Decimal]:
    """Parse an API number (string or float) into Decimal; None when unparsable."""
    if value is None or value == "":
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result
