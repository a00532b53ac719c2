"""
ifcflow - run node-based IFC/BIM data workflows.

A workflow is a graph of typed nodes (load model, filter, quantity takeoff,
clash check, export, ...) wired by data-flow edges. WorkflowExecutor runs
the graph once in dependency order and returns one result per node.
"""

from ifcflow.graph import (
    EdgeSpec,
    GraphSpec,
    HandlerRegistry,
    NodeContext,
    NodeHandler,
    NodeSpec,
    TaggedResult,
    WorkflowExecutor,
    load_workflow_json,
)
from ifcflow.nodes import create_default_registry, register_builtin_handlers
from ifcflow.runtime import EventBus, EventType, NodeMetadataStore
from ifcflow.services import JsonModelLoader, Services

__version__ = "0.1.0"

__all__ = [
    "EdgeSpec",
    "GraphSpec",
    "NodeSpec",
    "NodeContext",
    "NodeHandler",
    "TaggedResult",
    "HandlerRegistry",
    "WorkflowExecutor",
    "load_workflow_json",
    "create_default_registry",
    "register_builtin_handlers",
    "EventBus",
    "EventType",
    "NodeMetadataStore",
    "JsonModelLoader",
    "Services",
]
