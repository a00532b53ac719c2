"""
Run event stream.

The executor publishes run and node lifecycle events and the metadata
store publishes every UI metadata patch. Editors, progress bars and tests
subscribe here instead of polling node state.

    bus = EventBus()

    async def on_progress(event: WorkflowEvent):
        print(event.node_id, event.data.get("progress_percentage"))

    bus.subscribe([EventType.NODE_METADATA_CHANGED], on_progress)
"""

import asyncio
import logging
from collections import Counter, deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    RUN_STARTED = "run_started"
    RUN_COMPLETED = "run_completed"
    RUN_FAILED = "run_failed"
    RUN_STOPPED = "run_stopped"

    NODE_STARTED = "node_started"
    NODE_COMPLETED = "node_completed"
    NODE_FAILED = "node_failed"

    # Patches written through NodeMetadataStore
    NODE_METADATA_CHANGED = "node_metadata_changed"

    CUSTOM = "custom"


@dataclass
class WorkflowEvent:
    """One thing that happened during a run. ``stream_id`` names the caller (cli, ui, ...)."""

    type: EventType
    stream_id: str
    node_id: str | None = None
    run_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
    correlation_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "stream_id": self.stream_id,
            "node_id": self.node_id,
            "run_id": self.run_id,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
            "correlation_id": self.correlation_id,
        }


EventHandler = Callable[[WorkflowEvent], Awaitable[None]]


def _selected(
    event: WorkflowEvent, stream_id: str | None, node_id: str | None, run_id: str | None
) -> bool:
    filters = ((stream_id, event.stream_id), (node_id, event.node_id), (run_id, event.run_id))
    return all(wanted is None or wanted == actual for wanted, actual in filters)


@dataclass
class Subscription:
    id: str
    event_types: set[EventType]
    handler: EventHandler
    filter_stream: str | None = None
    filter_node: str | None = None
    filter_run: str | None = None

    def matches(self, event: WorkflowEvent) -> bool:
        if event.type not in self.event_types:
            return False
        return _selected(event, self.filter_stream, self.filter_node, self.filter_run)


class EventBus:
    """
    In-process pub/sub for workflow events.

    Handlers run concurrently, at most ``max_concurrent_handlers`` at a
    time. A failing handler is logged and never reaches the publisher, so
    a broken UI listener cannot abort a run. The last ``max_history``
    events are kept for ``get_history`` and ``get_stats``.
    """

    def __init__(self, max_history: int = 1000, max_concurrent_handlers: int = 10):
        self._subscriptions: dict[str, Subscription] = {}
        self._history: deque[WorkflowEvent] = deque(maxlen=max_history)
        self._semaphore = asyncio.Semaphore(max_concurrent_handlers)
        self._next_id = 0
        self._lock = asyncio.Lock()

    def subscribe(
        self,
        event_types: list[EventType],
        handler: EventHandler,
        filter_stream: str | None = None,
        filter_node: str | None = None,
        filter_run: str | None = None,
    ) -> str:
        """Register ``handler``; returns the id to pass to ``unsubscribe``."""
        self._next_id += 1
        sub_id = f"sub_{self._next_id}"
        self._subscriptions[sub_id] = Subscription(
            sub_id, set(event_types), handler, filter_stream, filter_node, filter_run
        )
        logger.debug(f"{sub_id} listening for {sorted(str(t) for t in event_types)}")
        return sub_id

    def unsubscribe(self, subscription_id: str) -> bool:
        return self._subscriptions.pop(subscription_id, None) is not None

    async def publish(self, event: WorkflowEvent) -> None:
        async with self._lock:
            self._history.append(event)

        handlers = [s.handler for s in self._subscriptions.values() if s.matches(event)]
        if handlers:
            await asyncio.gather(*(self._deliver(h, event) for h in handlers))

    async def _deliver(self, handler: EventHandler, event: WorkflowEvent) -> None:
        async with self._semaphore:
            try:
                await handler(event)
            except Exception as e:
                logger.error(f"✗ Subscriber failed on {event.type} ({event.node_id or '-'}): {e}")

    async def _emit(
        self,
        event_type: EventType,
        stream_id: str,
        run_id: str | None = None,
        node_id: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        await self.publish(
            WorkflowEvent(event_type, stream_id, node_id=node_id, run_id=run_id, data=data or {})
        )

    # ---- run lifecycle ----

    async def emit_run_started(
        self, stream_id: str, run_id: str, workflow_id: str, order: list[str] | None = None
    ) -> None:
        await self._emit(
            EventType.RUN_STARTED,
            stream_id,
            run_id,
            data={"workflow_id": workflow_id, "order": list(order or [])},
        )

    async def emit_run_completed(self, stream_id: str, run_id: str, node_count: int) -> None:
        await self._emit(
            EventType.RUN_COMPLETED, stream_id, run_id, data={"node_count": node_count}
        )

    async def emit_run_failed(
        self, stream_id: str, run_id: str, error: str, node_id: str | None = None
    ) -> None:
        await self._emit(EventType.RUN_FAILED, stream_id, run_id, node_id, {"error": error})

    async def emit_run_stopped(self, stream_id: str, run_id: str) -> None:
        await self._emit(EventType.RUN_STOPPED, stream_id, run_id)

    # ---- node lifecycle ----

    async def emit_node_started(self, stream_id: str, node_id: str, run_id: str, kind: str) -> None:
        await self._emit(EventType.NODE_STARTED, stream_id, run_id, node_id, {"kind": kind})

    async def emit_node_completed(
        self, stream_id: str, node_id: str, run_id: str, kind: str, result_type: str
    ) -> None:
        await self._emit(
            EventType.NODE_COMPLETED,
            stream_id,
            run_id,
            node_id,
            {"kind": kind, "result_type": result_type},
        )

    async def emit_node_failed(
        self, stream_id: str, node_id: str, run_id: str, kind: str, error: str
    ) -> None:
        await self._emit(
            EventType.NODE_FAILED, stream_id, run_id, node_id, {"kind": kind, "error": error}
        )

    async def emit_node_metadata_changed(
        self, stream_id: str, node_id: str, patch: dict[str, Any], run_id: str | None = None
    ) -> None:
        await self._emit(EventType.NODE_METADATA_CHANGED, stream_id, run_id, node_id, dict(patch))

    # ---- queries ----

    def get_history(
        self,
        event_type: EventType | None = None,
        stream_id: str | None = None,
        run_id: str | None = None,
        node_id: str | None = None,
        limit: int = 100,
    ) -> list[WorkflowEvent]:
        """Recorded events, newest first, narrowed by any filters given."""
        matched = [
            e
            for e in reversed(self._history)
            if (event_type is None or e.type == event_type)
            and _selected(e, stream_id, node_id, run_id)
        ]
        return matched[:limit]

    def get_stats(self) -> dict:
        by_type = Counter(event.type.value for event in self._history)
        return {
            "total_events": len(self._history),
            "subscriptions": len(self._subscriptions),
            "events_by_type": dict(by_type),
        }

    async def wait_for(
        self,
        event_type: EventType,
        stream_id: str | None = None,
        node_id: str | None = None,
        run_id: str | None = None,
        timeout: float | None = None,
    ) -> WorkflowEvent | None:
        """Block until a matching event is published; None if ``timeout`` expires first."""
        future: asyncio.Future[WorkflowEvent] = asyncio.get_running_loop().create_future()

        async def resolve(event: WorkflowEvent) -> None:
            if not future.done():
                future.set_result(event)

        sub_id = self.subscribe([event_type], resolve, stream_id, node_id, run_id)
        try:
            return await asyncio.wait_for(future, timeout=timeout)
        except TimeoutError:
            return None
        finally:
            self.unsubscribe(sub_id)
