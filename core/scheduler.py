"""
Funding rate monitoring loop.

One background task polls every enabled venue on a fixed cadence, evaluates
each signal against its venue threshold, filters through the cooldown ledger
and hands the survivors to the delivery fan-out. A second task prunes the
ledger periodically. Failures of a single venue, channel or cycle are logged
and reported as events; only a bad configuration stops monitoring from starting.
"""
import asyncio
import logging
from collections import deque
from decimal import Decimal
from typing import Callable, Deque, Dict, Iterable, List, Optional, Tuple

from core.delivery import DeliveryFanout, Notifier
from core.errors import ConfigurationError, SourceError
from core.evaluator import FiredState, evaluate
from core.ledger import CooldownLedger
from core.models import (
    CycleReport, EventKind, MonitorConfig, MonitorEvent, MonitorState, Signal
)
from core.sources import SignalSource
from utils.filters import is_valid_chat_destination

logger = logging.getLogger(__name__)


def validate_config(config: MonitorConfig, sources: Iterable[SignalSource] = ()) -> List[str]:
    """
    Check that monitoring can start.

    Returns:
        Human-readable description of every failed check; empty when valid
    """
    problems = []
    available = {source.venue for source in sources}

    if not config.bot_token.strip():
        problems.append("Telegram bot token is not set")

    enabled_venues = config.enabled_venues
    if not enabled_venues:
        problems.append("Enable at least one venue to monitor")
    for venue in enabled_venues:
        if not venue.api_key.strip():
            problems.append(f"{venue.name}: API key is required")
        if venue.requires_secret and not venue.api_secret.strip():
            problems.append(f"{venue.name}: API secret is required")
        if available and venue.name not in available:
            problems.append(f"{venue.name}: no signal source is registered")

    if not config.enabled_channels:
        problems.append("Enable at least one Telegram channel for alerts")
    for index, channel in enumerate(config.channels, start=1):
        if not channel.enabled:
            continue
        if not channel.channel_id:
            problems.append(f"Channel {index}: channel ID is required")
        elif not is_valid_chat_destination(channel.channel_id):
            problems.append(f"Channel {index}: invalid channel ID '{channel.channel_id}'")

    return problems


class FundingMonitor:
    """
    Owns one monitoring session at a time: Idle -> Running -> Stopping -> Idle.
    """

    def __init__(
        self,
        config: MonitorConfig,
        sources: List[SignalSource],
        notifier: Notifier,
        ledger: CooldownLedger,
    ):
        """Initialize monitor with explicitly injected collaborators."""
        self.config = config
        self.sources: Dict[str, SignalSource] = {source.venue: source for source in sources}
        self.notifier = notifier
        self.ledger = ledger

        self.state = MonitorState.IDLE
        self.fired = FiredState()
        self.last_report: Optional[CycleReport] = None
        self.recent_events: Deque[MonitorEvent] = deque(maxlen=50)

        # Event callback, set by the shell (bot, CLI, tests)
        self.on_event: Optional[Callable[[MonitorEvent], None]] = None

        self._stop_event: Optional[asyncio.Event] = None
        self._stopped: Optional[asyncio.Event] = None
        self._loop_task: Optional[asyncio.Task] = None
        self._cleanup_task: Optional[asyncio.Task] = None
        self._fanout = self._build_fanout()

    @property
    def is_running(self) -> bool:
        return self.state == MonitorState.RUNNING

    @property
    def fired_keys(self) -> List[str]:
        return list(self.fired)

    def _build_fanout(self) -> DeliveryFanout:
        return DeliveryFanout(
            notifier=self.notifier,
            ledger=self.ledger,
            channels=self.config.channels,
            action_url=self.config.action_url,
            pacing_millis=self.config.settings.pacing_millis,
            emit=self._emit,
        )

    def _emit(self, event: MonitorEvent):
        self.recent_events.append(event)
        if self.on_event is None:
            return
        try:
            self.on_event(event)
        except Exception as e:
            logger.error(f"Event handler failed for {event.kind.value}: {e}")

    def _stopping(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; returns True as soon as a stop is requested."""
        if self._stop_event is None:
            await asyncio.sleep(seconds)
            return False
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def start(self):
        """
        Validate configuration and begin monitoring in the background.

        Raises:
            ConfigurationError: listing every check that failed
        """
        if self.state != MonitorState.IDLE:
            logger.warning(f"Start ignored, monitor is {self.state.value}")
            return

        problems = validate_config(self.config, self.sources.values())
        if problems:
            logger.warning(f"Monitoring not started: {'; '.join(problems)}")
            raise ConfigurationError(problems)

        self.fired.clear()
        self._stop_event = asyncio.Event()
        self._stopped = asyncio.Event()
        self._fanout = self._build_fanout()
        self.state = MonitorState.RUNNING

        venues = ", ".join(venue.name for venue in self.config.enabled_venues)
        logger.info(
            f"Monitoring started: venues [{venues}], "
            f"{len(self.config.enabled_channels)} channel(s), "
            f"every {self.config.settings.poll_interval_seconds}s"
        )

        self._loop_task = asyncio.create_task(self._run_loop())
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def stop(self):
        """
        Stop monitoring. Waits for the in-flight venue call; no-op when idle.

        A call made while another stop is in progress returns only once the
        monitor is idle again.
        """
        if self.state == MonitorState.STOPPING:
            await self._stopped.wait()
            return
        if self.state != MonitorState.RUNNING:
            return

        self.state = MonitorState.STOPPING
        logger.info("Stopping monitoring...")
        self._stop_event.set()

        tasks = [task for task in (self._loop_task, self._cleanup_task) if task]
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"Monitoring task ended with error: {result}")

        self._loop_task = None
        self._cleanup_task = None
        self.fired.clear()
        self.state = MonitorState.IDLE
        self._stopped.set()
        logger.info("Monitoring stopped")

    async def _run_loop(self):
        """Cycle until stopped; a failed cycle waits the cadence and retries."""
        interval = self.config.settings.poll_interval_seconds

        while not self._stopping():
            try:
                report = await self.run_cycle()
                logger.info(
                    f"Cycle done: {report.signals} signals, {report.triggered} triggered, "
                    f"{report.delivered} delivered"
                    + (f", failed venues: {report.failed_venues}" if report.failed_venues else "")
                )
            except Exception as e:
                logger.error(f"Error in monitoring cycle: {e}", exc_info=True)
                self._emit(MonitorEvent(kind=EventKind.CYCLE_ERROR, message=str(e)))

            if await self._wait(interval):
                break

    async def _cleanup_loop(self):
        """Prune old ledger records at start and then periodically."""
        interval = self.config.settings.cleanup_interval_minutes * 60
        retention = self.config.settings.retention_hours

        while not self._stopping():
            removed = await self.ledger.cleanup(retention)
            if removed is None:
                self._emit(MonitorEvent(kind=EventKind.LEDGER_ERROR, message="ledger cleanup failed"))

            if await self._wait(interval):
                break

    async def _collect(self, report: CycleReport) -> List[Tuple[Signal, Decimal]]:
        collected: List[Tuple[Signal, Decimal]] = []

        for venue in self.config.enabled_venues:
            if self._stopping():
                break

            source = self.sources.get(venue.name)
            if source is None:
                logger.warning(f"No signal source registered for {venue.name}")
                continue

            try:
                signals = await source.fetch_signals(venue.api_key, venue.api_secret)
            except Exception as e:
                error = e if isinstance(e, SourceError) else SourceError(venue.name, repr(e))
                logger.error(f"Fetch failed: {error}")
                report.failed_venues.append(venue.name)
                self._emit(MonitorEvent(kind=EventKind.SOURCE_ERROR, message=str(error), venue=venue.name))
                continue

            for signal in signals:
                if signal.current_price <= 0:
                    logger.debug(f"Skipping {signal.key}: non-positive price")
                    continue
                collected.append((signal, venue.threshold))

        collected.sort(key=lambda item: (item[0].venue, item[0].pair))
        return collected

    async def run_cycle(self) -> CycleReport:
        """
        Run one poll -> evaluate -> cooldown -> deliver cycle.

        Returns:
            Counts for this cycle
        """
        report = CycleReport()
        collected = await self._collect(report)
        report.signals = len(collected)

        cooldown = self.config.settings.cooldown_hours
        cleared: List[Signal] = []
        for signal, threshold in collected:
            triggered = evaluate(signal, threshold, self.fired)
            if triggered is None:
                continue
            report.triggered += 1
            if await self.ledger.can_send(triggered.venue, triggered.symbol, cooldown):
                cleared.append(triggered)

        report.delivered = await self._fanout.deliver_all(
            cleared, should_continue=lambda: not self._stopping()
        )
        self.last_report = report
        return report
