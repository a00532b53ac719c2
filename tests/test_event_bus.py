"""
Tests for the event bus and the node metadata store.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from ifcflow.runtime.event_bus import EventBus, EventType, WorkflowEvent
from ifcflow.runtime.sink import NodeMetadataStore


# ---- EventBus ----


@pytest.mark.asyncio
async def test_subscriber_receives_matching_events_only():
    bus = EventBus()
    received = []

    async def handler(event):
        received.append(event)

    bus.subscribe(event_types=[EventType.NODE_STARTED], handler=handler, filter_node="a")

    await bus.emit_node_started(stream_id="s", node_id="a", run_id="r1", kind="filterNode")
    await bus.emit_node_started(stream_id="s", node_id="b", run_id="r1", kind="filterNode")
    await bus.emit_run_stopped(stream_id="s", run_id="r1")

    assert [e.node_id for e in received] == ["a"]
    assert received[0].data == {"kind": "filterNode"}


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery():
    bus = EventBus()
    received = []

    async def handler(event):
        received.append(event)

    sub_id = bus.subscribe(event_types=[EventType.CUSTOM], handler=handler)
    assert bus.unsubscribe(sub_id) is True
    assert bus.unsubscribe(sub_id) is False

    await bus.publish(WorkflowEvent(type=EventType.CUSTOM, stream_id="s"))
    assert received == []


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_break_publish():
    bus = EventBus()
    received = []

    async def broken(event):
        raise RuntimeError("subscriber bug")

    async def healthy(event):
        received.append(event)

    bus.subscribe(event_types=[EventType.CUSTOM], handler=broken)
    bus.subscribe(event_types=[EventType.CUSTOM], handler=healthy)

    await bus.publish(WorkflowEvent(type=EventType.CUSTOM, stream_id="s"))
    assert len(received) == 1


@pytest.mark.asyncio
async def test_history_is_bounded_and_newest_first():
    bus = EventBus(max_history=3)
    for i in range(5):
        await bus.publish(WorkflowEvent(type=EventType.CUSTOM, stream_id="s", data={"i": i}))

    history = bus.get_history()
    assert [e.data["i"] for e in history] == [4, 3, 2]
    assert bus.get_stats()["total_events"] == 3
    assert bus.get_stats()["events_by_type"] == {"custom": 3}


@pytest.mark.asyncio
async def test_history_filters_by_run():
    bus = EventBus()
    await bus.emit_run_started(stream_id="s", run_id="r1", workflow_id="wf")
    await bus.emit_run_started(stream_id="s", run_id="r2", workflow_id="wf")

    history = bus.get_history(run_id="r2")
    assert len(history) == 1
    assert history[0].to_dict()["type"] == "run_started"


@pytest.mark.asyncio
async def test_wait_for_returns_event_or_times_out():
    bus = EventBus()

    waiter = asyncio.create_task(bus.wait_for(EventType.RUN_COMPLETED, run_id="r1", timeout=1))
    await asyncio.sleep(0)
    await bus.emit_run_completed(stream_id="s", run_id="r1", node_count=2)

    event = await waiter
    assert event.data == {"node_count": 2}
    assert await bus.wait_for(EventType.RUN_FAILED, timeout=0.01) is None


# ---- NodeMetadataStore ----


def test_report_merges_patches_without_event_loop():
    store = NodeMetadataStore(event_bus=EventBus())

    store.report("n", loading=True, progress_percentage=30)
    store.report("n", progress_message="half")

    record = store.get("n")
    assert record.loading is True
    assert record.progress_percentage == 30
    assert record.progress_message == "half"


def test_progress_is_clamped():
    store = NodeMetadataStore()

    store.report("n", progress_percentage=250)
    assert store.get("n").progress_percentage == 100

    store.report("n", progress_percentage=-5)
    assert store.get("n").progress_percentage == 0


def test_unknown_fields_are_dropped():
    store = NodeMetadataStore()

    store.report("n", loading=True, colour="red")

    assert "colour" not in store.snapshot()["n"]
    assert store.get("n").loading is True


def test_reset_clears_selected_nodes():
    store = NodeMetadataStore()
    store.report("a", loading=True)
    store.report("b", loading=True)

    store.reset(["a"])
    assert store.get("a") is None
    assert store.get("b") is not None

    store.reset()
    assert store.snapshot() == {}


@pytest.mark.asyncio
async def test_report_publishes_metadata_event():
    bus = EventBus()
    store = NodeMetadataStore(event_bus=bus, stream_id="ui")

    store.for_run("r1").report("n", message_id="msg-7")
    store.report("n", loading=False)
    await store.flush()

    events = bus.get_history(event_type=EventType.NODE_METADATA_CHANGED)
    assert [(e.node_id, e.run_id, e.data) for e in events] == [
        ("n", None, {"loading": False}),
        ("n", "r1", {"message_id": "msg-7"}),
    ]
    assert store.get("n").message_id == "msg-7"


@pytest.mark.asyncio
async def test_stream_filter_with_mock_handler():
    bus = EventBus()
    handler = AsyncMock()
    bus.subscribe(event_types=[EventType.RUN_STOPPED], handler=handler, filter_stream="ui")

    await bus.emit_run_stopped(stream_id="cli", run_id="r1")
    await bus.emit_run_stopped(stream_id="ui", run_id="r2")

    handler.assert_awaited_once()
    assert handler.await_args.args[0].run_id == "r2"
