"""
Ordered multi-channel delivery of triggered signals.
"""
import asyncio
import logging
from decimal import Decimal
from typing import Awaitable, Callable, Iterable, List, Optional, Protocol

from core.errors import DeliveryError
from core.ledger import CooldownLedger
from core.models import ChannelConfig, EventKind, MonitorEvent, Signal

logger = logging.getLogger(__name__)
alerts_logger = logging.getLogger('alerts')

TAKE_PROFIT_MULTIPLIER = Decimal("1.40")


class Notifier(Protocol):
    """Anything that can deliver one signal to one channel."""

    async def send(self, signal: Signal, channel_id: str, action_url: str = "") -> None:
        ...


def with_target_price(signal: Signal) -> Signal:
    """
    Presentation copy of a signal.

    Negative funding (long bias) gets a take-profit projection of +40%;
    non-negative funding gets none.
    """
    if signal.funding_rate < 0:
        target = signal.current_price * TAKE_PROFIT_MULTIPLIER
    else:
        target = None
    return signal.model_copy(update={"target_price": target})


class DeliveryFanout:
    """
    Sends each signal to every enabled channel in configured order.

    A failing channel never blocks the next channel or the next signal. The
    ledger is updated once all channels were attempted, whatever the outcome.
    """

    def __init__(
        self,
        notifier: Notifier,
        ledger: CooldownLedger,
        channels: List[ChannelConfig],
        action_url: str = "",
        pacing_millis: int = 200,
        emit: Optional[Callable[[MonitorEvent], None]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.notifier = notifier
        self.ledger = ledger
        self.channels = [channel for channel in channels if channel.enabled]
        self.action_url = action_url
        self.pacing_seconds = pacing_millis / 1000
        self._emit = emit or (lambda event: None)
        self._sleep = sleep

    async def deliver(self, signal: Signal) -> int:
        """
        Deliver one signal to all channels, then record the attempt.

        Returns:
            Number of channels that accepted the message
        """
        prepared = with_target_price(signal)
        delivered = 0

        for channel in self.channels:
            try:
                await self.notifier.send(prepared, channel.channel_id, self.action_url)
                delivered += 1
                logger.info(f"Sent {prepared.key} ({prepared.pair}) to channel {channel.channel_id}")
            except Exception as e:
                error = e if isinstance(e, DeliveryError) else DeliveryError(channel.channel_id, str(e))
                logger.error(f"Delivery failed for {prepared.key}: {error}")
                self._emit(MonitorEvent(
                    kind=EventKind.DELIVERY_ERROR,
                    message=str(error),
                    venue=prepared.venue,
                    symbol=prepared.symbol,
                    channel_id=channel.channel_id,
                ))

        if not await self.ledger.record_send(prepared.venue, prepared.symbol):
            self._emit(MonitorEvent(
                kind=EventKind.LEDGER_ERROR,
                message=f"could not record send for {prepared.key}",
                venue=prepared.venue,
                symbol=prepared.symbol,
            ))

        alerts_logger.info(
            f"{prepared.venue} {prepared.pair} funding={prepared.funding_rate} "
            f"price={prepared.current_price} target={prepared.target_price} "
            f"channels={delivered}/{len(self.channels)}"
        )
        if delivered:
            self._emit(MonitorEvent(
                kind=EventKind.ALERT_DELIVERED,
                message=f"{prepared.pair} delivered to {delivered}/{len(self.channels)} channel(s)",
                venue=prepared.venue,
                symbol=prepared.symbol,
            ))
        return delivered

    async def deliver_all(
        self,
        signals: Iterable[Signal],
        should_continue: Callable[[], bool] = lambda: True,
    ) -> int:
        """
        Deliver signals in the given order with a pacing delay between them.

        Returns:
            Number of signals delivered to at least one channel
        """
        delivered_signals = 0
        first = True

        for signal in signals:
            if not should_continue():
                logger.info("Delivery interrupted by stop request")
                break
            if not first and self.pacing_seconds > 0:
                await self._sleep(self.pacing_seconds)
            first = False

            if await self.deliver(signal):
                delivered_signals += 1

        return delivered_signals
