# File: tests/test_events.py
import io

import pytest

from conftest import FakeClock
from site_intel.events import (
    DedupCache,
    EventBus,
    EventKind,
    NotificationType,
    Phase,
    PhaseStatus,
    PhaseTracker,
    PhaseTransitionError,
    ProgressEvent,
    StreamWriter,
    encode_event,
    read_event_stream,
)


def make_bus(clock: FakeClock, **kwargs) -> EventBus:
    return EventBus("run-1", clock=clock, **kwargs)


def test_dedup_cache_ttl_and_sweep(clock):
    cache = DedupCache(10.0, clock)
    assert cache.check_and_insert("k") is False
    assert cache.check_and_insert("k") is True
    assert "k" in cache
    clock.advance(10.0)
    assert "k" not in cache
    assert cache.sweep() == 1
    assert len(cache) == 0


def test_dedup_cache_rejects_bad_ttl():
    with pytest.raises(ValueError):
        DedupCache(0)


@pytest.mark.asyncio()
async def test_same_event_delivered_once_within_ttl(clock):
    bus = make_bus(clock)
    received = []
    bus.subscribe(received.append)
    event = ProgressEvent(EventKind.DATA, Phase.RAPID_SCRAPE, "run-1", {"url": "u"}, timestamp=42, source="u")

    assert await bus.publish(event) is True
    assert await bus.publish(event) is False
    assert received == [event]

    clock.advance(11)
    assert await bus.publish(event) is True
    assert len(received) == 2


@pytest.mark.asyncio()
async def test_sweep_empties_dedup_tables(clock):
    bus = make_bus(clock, dedup_ttl=5.0, notification_window=1.0)
    await bus.progress(Phase.DISCOVERY, 1, 2, source="a")
    await bus.notify("hello")
    # the notification also travels as a status event
    assert bus.pending_keys == 3
    clock.advance(5.0)
    assert bus.sweep() == 3
    assert bus.pending_keys == 0


@pytest.mark.asyncio()
async def test_notification_window(clock):
    bus = make_bus(clock, dedup_ttl=1.0, notification_window=2.0)
    received = []
    bus.subscribe(received.append)

    assert await bus.notify("Found 5 URLs", NotificationType.SUCCESS) is True
    assert await bus.notify("Found 5 URLs", NotificationType.SUCCESS) is False
    # another level is another notification
    assert await bus.notify("Found 5 URLs", NotificationType.WARNING) is True
    clock.advance(2.0)
    assert await bus.notify("Found 5 URLs", NotificationType.SUCCESS) is True

    assert len(received) == 3
    assert received[0].payload == {"message": "Found 5 URLs", "notification": "success"}


@pytest.mark.asyncio()
async def test_single_terminal_event_per_run(clock):
    bus = make_bus(clock)
    received = []
    bus.subscribe(received.append)

    assert await bus.complete({"pageCount": 3}) is True
    assert await bus.error(Phase.COMPLETE, "late failure") is False
    assert await bus.complete({"pageCount": 3}) is False
    assert bus.terminated()
    assert [e.type for e in received] == [EventKind.COMPLETE]


@pytest.mark.asyncio()
async def test_broken_subscriber_does_not_stop_delivery(clock):
    bus = make_bus(clock)
    received = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(broken)
    bus.subscribe(received.append)
    assert await bus.status(Phase.DISCOVERY, PhaseStatus.IN_PROGRESS) is True
    assert len(received) == 1


@pytest.mark.asyncio()
async def test_unsubscribe(clock):
    bus = make_bus(clock)
    received = []
    unsubscribe = bus.subscribe(received.append)
    unsubscribe()
    await bus.progress(Phase.DISCOVERY, 1, 1)
    assert received == []


@pytest.mark.asyncio()
async def test_progress_percentage(clock):
    bus = make_bus(clock)
    received = []
    bus.subscribe(received.append)
    await bus.progress(Phase.RAPID_SCRAPE, 5, 12, source="batch-1")
    await bus.progress(Phase.RAPID_SCRAPE, 0, 0, source="batch-2")
    assert received[0].payload["percentage"] == 42
    assert received[1].payload["percentage"] == 100


def test_phase_tracker_happy_path():
    tracker = PhaseTracker(skip=[Phase.VALIDATION])
    tracker.start(Phase.DISCOVERY)
    tracker.complete(Phase.DISCOVERY)
    tracker.start(Phase.RAPID_SCRAPE)
    tracker.complete(Phase.RAPID_SCRAPE)
    assert tracker.should_skip(Phase.VALIDATION)
    tracker.skip(Phase.VALIDATION)
    tracker.start(Phase.ENHANCEMENT)
    tracker.fail(Phase.ENHANCEMENT)
    tracker.start(Phase.COMPLETE)
    tracker.complete(Phase.COMPLETE)

    assert tracker.phases_run() == ["discovery", "rapid-scrape", "enhancement"]
    assert tracker.snapshot()["validation"] == "skipped"


def test_phase_tracker_rejects_out_of_order_start():
    tracker = PhaseTracker()
    with pytest.raises(PhaseTransitionError):
        tracker.start(Phase.VALIDATION)
    tracker.start(Phase.DISCOVERY)
    with pytest.raises(PhaseTransitionError):
        tracker.start(Phase.RAPID_SCRAPE)


def test_phase_tracker_rejects_double_finish():
    tracker = PhaseTracker()
    tracker.start(Phase.DISCOVERY)
    tracker.complete(Phase.DISCOVERY)
    with pytest.raises(PhaseTransitionError):
        tracker.complete(Phase.DISCOVERY)
    with pytest.raises(PhaseTransitionError):
        tracker.fail(Phase.DISCOVERY)


def test_phase_tracker_skip_remaining():
    tracker = PhaseTracker()
    tracker.start(Phase.DISCOVERY)
    tracker.complete(Phase.DISCOVERY)
    assert tracker.skip_remaining() == [Phase.RAPID_SCRAPE, Phase.VALIDATION, Phase.ENHANCEMENT]
    tracker.start(Phase.COMPLETE)
    assert tracker.phases_run() == ["discovery"]


def test_terminal_phase_cannot_be_skipped():
    with pytest.raises(PhaseTransitionError):
        PhaseTracker(skip=[Phase.COMPLETE])


def test_encode_event_wire_format():
    event = ProgressEvent(EventKind.PROGRESS, Phase.DISCOVERY, "abc", {"current": 1}, timestamp=7)
    text = encode_event(event)
    assert text.startswith("data: {")
    assert text.endswith("\n\n")
    assert '"correlationId": "abc"' in text


@pytest.mark.asyncio()
async def test_stream_writer_round_trip(clock):
    sink = io.StringIO()
    writer = StreamWriter(sink)
    bus = make_bus(clock)
    bus.subscribe(writer)
    await bus.progress(Phase.DISCOVERY, 1, 4, source="discovery:robots")
    await bus.complete({"pageCount": 0})
    await writer.close()

    lines = sink.getvalue().splitlines()
    assert lines[-2] == "data: [DONE]"
    events = list(read_event_stream(lines))
    assert [e.type for e in events] == [EventKind.PROGRESS, EventKind.COMPLETE]
    assert events[0].payload["percentage"] == 25
    assert events[1].correlation_id == "run-1"


@pytest.mark.asyncio()
async def test_stream_writer_closed_sink_is_benign():
    sink = io.StringIO()
    sink.close()
    writer = StreamWriter(sink)
    await writer.write("data: {}\n\n")
    assert writer.closed
    assert writer.failed is None
    await writer.close()


@pytest.mark.asyncio()
async def test_stream_writer_records_real_failure():
    class Exploding:
        def write(self, text):
            raise OSError("disk full")

    writer = StreamWriter(Exploding())
    await writer.write("data: {}\n\n")
    assert writer.failed is not None
    assert not writer.active


def test_read_event_stream_skips_noise():
    lines = [
        ": keep-alive",
        "",
        'data: {"type": "heartbeat", "phase": "discovery"}',
        "data: {broken",
        'data: {"type": "status", "phase": "validation", "correlationId": "x", "payload": {"status": "complete"}}',
        "data: [DONE]",
    ]
    events = list(read_event_stream(lines))
    assert len(events) == 1
    assert events[0].type is EventKind.STATUS
    assert events[0].phase is Phase.VALIDATION
