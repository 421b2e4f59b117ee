"""
Delivery fan-out tests.
"""
from decimal import Decimal

from conftest import RecordingNotifier, T0, make_signal
from core.delivery import DeliveryFanout, with_target_price
from core.models import ChannelConfig, EventKind


def channels(*ids, disabled=()):
    return [ChannelConfig(enabled=channel_id not in disabled, channel_id=channel_id) for channel_id in ids]


def test_negative_funding_gets_take_profit():
    prepared = with_target_price(make_signal(funding_rate="-0.002", price="100"))
    assert prepared.target_price == Decimal("140.00")


def test_positive_funding_gets_no_target():
    prepared = with_target_price(make_signal(funding_rate="0.002", price="100"))
    assert prepared.target_price is None


def test_target_price_does_not_mutate_original():
    original = make_signal(funding_rate="-0.002", price="100")
    with_target_price(original)
    assert original.target_price is None


async def test_channels_receive_in_configured_order(ledger, notifier):
    fanout = DeliveryFanout(notifier, ledger, channels("-1002", "-1001"), pacing_millis=0)

    await fanout.deliver(make_signal())

    assert [channel_id for _, channel_id, _ in notifier.sent] == ["-1002", "-1001"]
    assert all(signal.target_price == Decimal("140.00") for signal, _, _ in notifier.sent)


async def test_disabled_channel_is_skipped(ledger, notifier):
    fanout = DeliveryFanout(notifier, ledger, channels("-1001", "-1002", disabled=("-1001",)), pacing_millis=0)

    await fanout.deliver(make_signal())

    assert [channel_id for _, channel_id, _ in notifier.sent] == ["-1002"]


async def test_failed_channel_does_not_block_next(ledger):
    notifier = RecordingNotifier(fail_channels={"-1001"})
    events = []
    fanout = DeliveryFanout(notifier, ledger, channels("-1001", "-1002"), pacing_millis=0, emit=events.append)

    delivered = await fanout.deliver(make_signal())

    assert delivered == 1
    assert [channel_id for _, channel_id, _ in notifier.sent] == ["-1002"]
    errors = [event for event in events if event.kind == EventKind.DELIVERY_ERROR]
    assert len(errors) == 1
    assert errors[0].channel_id == "-1001"


async def test_unexpected_notifier_exception_is_isolated(ledger):
    class ExplodingNotifier:
        def __init__(self):
            self.calls = []

        async def send(self, signal, channel_id, action_url=""):
            self.calls.append(channel_id)
            raise RuntimeError("boom")

    notifier = ExplodingNotifier()
    events = []
    fanout = DeliveryFanout(notifier, ledger, channels("-1001", "-1002"), pacing_millis=0, emit=events.append)

    assert await fanout.deliver(make_signal()) == 0
    assert notifier.calls == ["-1001", "-1002"]
    assert [event.kind for event in events] == [EventKind.DELIVERY_ERROR, EventKind.DELIVERY_ERROR]


async def test_send_is_recorded_even_when_all_channels_fail(ledger):
    notifier = RecordingNotifier(fail_channels={"-1001", "-1002"})
    fanout = DeliveryFanout(notifier, ledger, channels("-1001", "-1002"), pacing_millis=0)

    await fanout.deliver(make_signal(symbol="ETH"))

    assert await ledger.can_send("Binance", "ETH", 8) is False


async def test_action_url_is_passed_through(ledger, notifier):
    fanout = DeliveryFanout(
        notifier, ledger, channels("-1001"), action_url="https://t.me/tradebot", pacing_millis=0
    )

    await fanout.deliver(make_signal())

    assert notifier.sent[0][2] == "https://t.me/tradebot"


async def test_pacing_delay_between_signals(ledger, notifier):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    fanout = DeliveryFanout(notifier, ledger, channels("-1001"), pacing_millis=200, sleep=fake_sleep)
    signals = [make_signal(symbol=symbol) for symbol in ("AAA", "BBB", "CCC")]

    delivered = await fanout.deliver_all(signals)

    assert delivered == 3
    assert sleeps == [0.2, 0.2]
    assert [signal.symbol for signal, _, _ in notifier.sent] == ["AAA", "BBB", "CCC"]


async def test_deliver_all_stops_when_asked(ledger, notifier):
    fanout = DeliveryFanout(notifier, ledger, channels("-1001"), pacing_millis=0)
    signals = [make_signal(symbol=symbol) for symbol in ("AAA", "BBB", "CCC")]
    remaining = iter([True, False])

    delivered = await fanout.deliver_all(signals, should_continue=lambda: next(remaining, False))

    assert delivered == 1
    assert [signal.symbol for signal, _, _ in notifier.sent] == ["AAA"]


async def test_ledger_write_failure_is_reported(ledger, notifier):
    events = []
    fanout = DeliveryFanout(notifier, ledger, channels("-1001"), pacing_millis=0, emit=events.append)
    await ledger.close()

    delivered = await fanout.deliver(make_signal(timestamp=T0))

    assert delivered == 1
    assert EventKind.LEDGER_ERROR in [event.kind for event in events]
