"""
Exception types raised by Funding Alert Bot components.
"""
from typing import List, Optional


class FundingMonitorError(Exception):
    """Base class for monitor errors."""


class ConfigurationError(FundingMonitorError):
    """Monitoring cannot start; carries every failed configuration check."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems) or "invalid configuration")


class SourceError(FundingMonitorError):
    """A venue fetch failed."""

    def __init__(self, venue: str, message: str):
        self.venue = venue
        super().__init__(f"{venue}: {message}")


class DeliveryError(FundingMonitorError):
    """Sending an alert to one channel failed."""

    def __init__(self, channel_id: str, message: str):
        self.channel_id = channel_id
        super().__init__(f"channel {channel_id}: {message}")


class LedgerError(FundingMonitorError):
    """Persisted ledger state could not be read or written."""

    def __init__(self, message: str, key: Optional[str] = None):
        self.key = key
        super().__init__(message if key is None else f"{key}: {message}")
