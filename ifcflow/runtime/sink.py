"""
Node metadata sink.

Handlers push UI-facing state (loading flag, progress, terminal error,
worker message id, watch display) through ``report``. Writes are
fire-and-forget: ``report`` is synchronous, merges the patch into the
node's record and, when an event bus is attached, schedules a
NODE_METADATA_CHANGED publication on the running loop.

The engine writes here but never reads the values back.
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from ifcflow.runtime.event_bus import EventBus

logger = logging.getLogger(__name__)


class NodeMetadata(BaseModel):
    """Latest UI metadata for one node."""

    node_id: str
    loading: bool = False
    progress_percentage: float | None = Field(default=None, ge=0, le=100)
    progress_message: str | None = None
    error: str | None = None
    message_id: str | None = Field(default=None, description="Worker correlation id")
    display: Any = Field(default=None, description="Summary rendered by watch nodes")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


PATCH_FIELDS = frozenset(
    {"loading", "progress_percentage", "progress_message", "error", "message_id", "display"}
)


def _clamp_percentage(value: Any) -> float | None:
    if value is None:
        return None
    return max(0.0, min(100.0, float(value)))


class NodeMetadataStore:
    """
    Per-node metadata records fed by handler reports.

    Example:
        store = NodeMetadataStore(event_bus=bus, stream_id="editor")
        store.for_run("run-1").report("geom-1", loading=True, progress_percentage=40)
        await store.flush()
    """

    def __init__(self, event_bus: EventBus | None = None, stream_id: str = ""):
        self.event_bus = event_bus
        self.stream_id = stream_id
        self._records: dict[str, NodeMetadata] = {}
        self._pending: set[asyncio.Task] = set()

    def report(self, node_id: str, run_id: str | None = None, **patch: Any) -> None:
        unknown = set(patch) - PATCH_FIELDS
        if unknown:
            logger.warning(
                f"⚠ Ignoring unknown metadata fields for '{node_id}': {sorted(unknown)}"
            )
            patch = {key: value for key, value in patch.items() if key in PATCH_FIELDS}
        if not patch:
            return

        if "progress_percentage" in patch:
            patch["progress_percentage"] = _clamp_percentage(patch["progress_percentage"])

        record = self._records.get(node_id) or NodeMetadata(node_id=node_id)
        self._records[node_id] = record.model_copy(
            update={**patch, "updated_at": datetime.now(UTC)}
        )

        if self.event_bus is not None:
            self._schedule_publish(node_id, patch, run_id)

    def for_run(self, run_id: str) -> "RunMetadataSink":
        return RunMetadataSink(self, run_id)

    def _schedule_publish(self, node_id: str, patch: dict[str, Any], run_id: str | None) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop, metadata event for '{node_id}' not published")
            return

        task = loop.create_task(
            self.event_bus.emit_node_metadata_changed(
                stream_id=self.stream_id,
                node_id=node_id,
                patch=patch,
                run_id=run_id,
            )
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def flush(self) -> None:
        """Wait until every scheduled metadata event has been published."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def get(self, node_id: str) -> NodeMetadata | None:
        return self._records.get(node_id)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        return {node_id: record.model_dump() for node_id, record in self._records.items()}

    def reset(self, node_ids: list[str] | None = None) -> None:
        if node_ids is None:
            self._records.clear()
            return
        for node_id in node_ids:
            self._records.pop(node_id, None)


class RunMetadataSink:
    """
    A store view for one run. Every patch published through it carries
    that run's id, even when the handler keeps reporting after stop().
    """

    def __init__(self, store: NodeMetadataStore, run_id: str):
        self.store = store
        self.run_id = run_id

    def report(self, node_id: str, **patch: Any) -> None:
        self.store.report(node_id, run_id=self.run_id, **patch)
