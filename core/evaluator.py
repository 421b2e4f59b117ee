"""
Threshold evaluation with edge-triggered hysteresis.

The sign of the configured threshold picks the comparison direction:
negative thresholds alert when the funding rate drops to or below them,
non-negative thresholds alert when it rises to or above them. A key fires once
per crossing and is re-armed only after the condition clears.
"""
import logging
from decimal import Decimal
from typing import Iterator, Optional, Set

from core.models import Signal

logger = logging.getLogger(__name__)


def should_fire(funding_rate: Decimal, threshold: Decimal) -> bool:
    """True if the alert condition holds for this reading."""
    if threshold < 0:
        return funding_rate <= threshold
    return funding_rate >= threshold


def should_reset(funding_rate: Decimal, threshold: Decimal) -> bool:
    """True if the condition has cleared and the key may be re-armed."""
    if threshold < 0:
        return funding_rate > threshold
    return funding_rate < threshold


class FiredState:
    """Keys currently "in alert". Owned by one monitoring session."""

    def __init__(self):
        self._keys: Set[str] = set()

    def __contains__(self, key: str) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._keys))

    def add(self, key: str):
        self._keys.add(key)

    def discard(self, key: str):
        self._keys.discard(key)

    def clear(self):
        self._keys.clear()


def evaluate(signal: Signal, threshold: Decimal, fired: FiredState) -> Optional[Signal]:
    """
    Apply the threshold and hysteresis rules to one signal.

    Args:
        signal: Fresh reading (must have a positive price)
        threshold: Venue threshold, same units as signal.funding_rate
        fired: Hysteresis state, mutated in place

    Returns:
        The signal if it newly triggered, otherwise None
    """
    key = signal.key

    if should_fire(signal.funding_rate, threshold):
        if key in fired:
            logger.debug(f"{key} still past threshold {threshold}, already alerted")
            return None
        fired.add(key)
        logger.info(f"{key} triggered: funding {signal.funding_rate} vs threshold {threshold}")
        return signal

    if key in fired and should_reset(signal.funding_rate, threshold):
        fired.discard(key)
        logger.info(f"{key} reset: funding {signal.funding_rate} back past threshold {threshold}")

    return None
