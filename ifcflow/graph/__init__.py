"""Workflow graphs: nodes, edges, ordering, dispatch and execution."""

from ifcflow.graph.dispatcher import HandlerRegistry, NodeDispatcher
from ifcflow.graph.edge import EdgeSpec, GraphSpec, load_workflow_json
from ifcflow.graph.errors import (
    AlreadyRunningError,
    CyclicGraphError,
    ExecutionCancelledError,
    NodeExecutionError,
    UnknownNodeReferenceError,
    WorkflowError,
)
from ifcflow.graph.executor import NodeState, RunContext, RunState, WorkflowExecutor
from ifcflow.graph.node import (
    FunctionHandler,
    NodeContext,
    NodeHandler,
    NodeSpec,
    TaggedResult,
    is_soft_error,
    soft_error,
)
from ifcflow.graph.resolver import InputResolver
from ifcflow.graph.sorter import topological_sort

__all__ = [
    # Node
    "NodeSpec",
    "NodeContext",
    "NodeHandler",
    "FunctionHandler",
    "TaggedResult",
    "soft_error",
    "is_soft_error",
    # Edge
    "EdgeSpec",
    "GraphSpec",
    "load_workflow_json",
    # Execution
    "topological_sort",
    "InputResolver",
    "HandlerRegistry",
    "NodeDispatcher",
    "WorkflowExecutor",
    "RunContext",
    "RunState",
    "NodeState",
    # Errors
    "WorkflowError",
    "CyclicGraphError",
    "UnknownNodeReferenceError",
    "AlreadyRunningError",
    "NodeExecutionError",
    "ExecutionCancelledError",
]
