"""Run-time plumbing: event stream and node metadata sink."""

from ifcflow.runtime.event_bus import EventBus, EventType, Subscription, WorkflowEvent
from ifcflow.runtime.sink import NodeMetadata, NodeMetadataStore, RunMetadataSink

__all__ = [
    "EventBus",
    "EventType",
    "Subscription",
    "WorkflowEvent",
    "NodeMetadata",
    "NodeMetadataStore",
    "RunMetadataSink",
]
