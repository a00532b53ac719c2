"""
Workflow Executor - Runs IFC workflow graphs.

The executor:
1. Takes a snapshot of the GraphSpec
2. Orders the nodes topologically (rejecting cycles before anything runs)
3. Evaluates each node once, pulling its inputs from upstream results
4. Reports node state to the metadata sink and the event bus
5. Returns every node's result, or propagates the first fatal error

One run at a time per executor. Each run gets a fresh RunContext, so no
two runs ever share a cache.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from ifcflow.graph.dispatcher import HandlerRegistry, NodeDispatcher
from ifcflow.graph.edge import GraphSpec
from ifcflow.graph.errors import (
    AlreadyRunningError,
    CyclicGraphError,
    ExecutionCancelledError,
    NodeExecutionError,
    UnknownNodeReferenceError,
)
from ifcflow.graph.node import NodeHandler, NodeSpec, TaggedResult
from ifcflow.graph.resolver import InputResolver
from ifcflow.graph.sorter import topological_sort
from ifcflow.observability import get_trace_context, set_trace_context
from ifcflow.observability.logging import trace_context
from ifcflow.runtime.event_bus import EventBus
from ifcflow.runtime.sink import NodeMetadataStore, RunMetadataSink
from ifcflow.services import Services


class RunState(StrEnum):
    """Lifecycle of the executor and of each run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


class NodeState(StrEnum):
    """Per-node progress within one run."""

    PENDING = "pending"
    RESOLVING_INPUTS = "resolving_inputs"
    DISPATCHING = "dispatching"
    CACHED = "cached"


@dataclass
class RunContext:
    """State owned by a single execute() call."""

    run_id: str
    graph: GraphSpec
    order: list[str] = field(default_factory=list)
    cache: dict[str, Any] = field(default_factory=dict)
    node_states: dict[str, NodeState] = field(default_factory=dict)
    handlers: dict[str, NodeHandler | None] = field(default_factory=dict)
    state: RunState = RunState.RUNNING
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    error: str | None = None
    sink: RunMetadataSink | None = None

    def __post_init__(self):
        self._nodes: dict[str, NodeSpec] = {node.id: node for node in self.graph.nodes}

    def get_node(self, node_id: str) -> NodeSpec | None:
        return self._nodes.get(node_id)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def results(self) -> dict[str, Any]:
        """Cached results in execution order."""
        return {node_id: self.cache[node_id] for node_id in self.order if node_id in self.cache}


def describe_result(result: Any) -> str:
    if isinstance(result, TaggedResult):
        return result.type
    if result is None:
        return "none"
    if isinstance(result, list):
        return "elements"
    if isinstance(result, dict):
        if isinstance(result.get("error"), str):
            return "error"
        if isinstance(result.get("elements"), list):
            return "model"
    return type(result).__name__


class WorkflowExecutor:
    """
    Executes workflow graphs.

    Example:
        executor = WorkflowExecutor(
            graph=load_workflow_json(document),
            services=Services(loader=JsonModelLoader()),
            event_bus=EventBus(),
        )

        results = await executor.execute()
        walls = results["filter-walls"]
    """

    def __init__(
        self,
        graph: GraphSpec,
        registry: HandlerRegistry | None = None,
        services: Services | None = None,
        event_bus: EventBus | None = None,
        metadata_store: NodeMetadataStore | None = None,
        stream_id: str = "",
    ):
        if registry is None:
            from ifcflow.nodes import create_default_registry

            registry = create_default_registry()

        self.graph = graph
        self.registry = registry
        self.services = services or Services()
        self.event_bus = event_bus
        self.stream_id = stream_id
        self.metadata = metadata_store or NodeMetadataStore(
            event_bus=event_bus, stream_id=stream_id
        )
        self.dispatcher = NodeDispatcher(registry, self.services)
        self.logger = logging.getLogger(__name__)

        self._state = RunState.IDLE
        self._active_run: RunContext | None = None
        self.last_run: RunContext | None = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == RunState.RUNNING

    async def execute(self) -> dict[str, Any]:
        """
        Run the whole graph once.

        Returns:
            node id -> result, in execution order

        Raises:
            AlreadyRunningError: a run is already in flight on this executor
            CyclicGraphError: the graph has a cycle; no node was executed
            UnknownNodeReferenceError: an edge references a missing node
            NodeExecutionError: a handler raised; the run is aborted
            ExecutionCancelledError: stop() was called during the run
        """
        if self._state == RunState.RUNNING:
            raise AlreadyRunningError()

        graph = self.graph.model_copy(deep=True)
        run = RunContext(run_id=uuid.uuid4().hex, graph=graph)
        self._state = RunState.RUNNING
        self._active_run = run
        self.last_run = run
        run.sink = self.metadata.for_run(run.run_id)

        set_trace_context(workflow_id=graph.id, run_id=run.run_id)
        self.logger.info(f"🚀 Starting workflow '{graph.id}' with {len(graph.nodes)} nodes")

        try:
            run.order = topological_sort(graph)
            run.handlers = self.dispatcher.bind(graph)
            run.node_states = {node_id: NodeState.PENDING for node_id in run.order}
            self.logger.info(f"   Execution order: {' → '.join(run.order)}")

            if self.event_bus:
                await self.event_bus.emit_run_started(
                    stream_id=self.stream_id,
                    run_id=run.run_id,
                    workflow_id=graph.id,
                    order=run.order,
                )

            resolver = InputResolver(
                graph, lambda source_id: self._evaluate(run, resolver, source_id)
            )
            for node_id in run.order:
                self._check_cancelled(run)
                await self._evaluate(run, resolver, node_id)
            self._check_cancelled(run)

            run.state = RunState.COMPLETED
            results = run.results()
            self.logger.info(f"✓ Workflow '{graph.id}' completed ({len(results)} nodes)")

            if self.event_bus:
                await self.event_bus.emit_run_completed(
                    stream_id=self.stream_id,
                    run_id=run.run_id,
                    node_count=len(results),
                )
            return results

        except ExecutionCancelledError:
            run.state = RunState.ABORTED
            run.error = "stopped"
            run.cache.clear()
            self.logger.info(f"⏹ Workflow '{graph.id}' stopped")
            if self.event_bus:
                await self.event_bus.emit_run_stopped(stream_id=self.stream_id, run_id=run.run_id)
            raise

        except Exception as e:
            run.state = RunState.ABORTED
            run.error = str(e)
            run.cache.clear()
            self.logger.error(f"✗ Workflow '{graph.id}' failed: {e}")
            if self.event_bus:
                await self.event_bus.emit_run_failed(
                    stream_id=self.stream_id,
                    run_id=run.run_id,
                    error=str(e),
                    node_id=getattr(e, "node_id", None),
                )
            raise

        finally:
            if run.state == RunState.RUNNING:
                run.state = RunState.ABORTED
                run.cache.clear()
            if self._active_run is run:
                self._active_run = None
                self._state = run.state
            await self.metadata.flush()

    def stop(self) -> None:
        """
        Request cooperative cancellation of the current run.

        The executor returns to IDLE immediately, so a new execute() is
        accepted. The stopped run dispatches no further node; a handler
        already suspended on I/O is not interrupted (handlers may poll
        ``ctx.cancelled``). When the stopped run reaches its next node
        boundary it raises ExecutionCancelledError and its cache is
        discarded.
        """
        run = self._active_run
        if run is None or self._state != RunState.RUNNING:
            return

        run.cancel_event.set()
        self._active_run = None
        self._state = RunState.IDLE
        self.logger.info(f"⏹ Stop requested for run {run.run_id[-8:]}")

    def _check_cancelled(self, run: RunContext) -> None:
        if run.cancelled:
            raise ExecutionCancelledError(run.run_id)

    async def _evaluate(self, run: RunContext, resolver: InputResolver, node_id: str) -> Any:
        """Return the node's result, computing it (and its inputs) on first use."""
        if node_id in run.cache:
            return run.cache[node_id]

        node = run.get_node(node_id)
        if node is None:
            referenced_by = next(
                (edge.source for edge in run.graph.edges if edge.target == node_id), None
            )
            raise UnknownNodeReferenceError(node_id, referenced_by=referenced_by)

        if run.node_states.get(node_id) in (NodeState.RESOLVING_INPUTS, NodeState.DISPATCHING):
            # Only reachable if the graph changed after sorting
            raise CyclicGraphError([node_id, node_id])

        self._check_cancelled(run)

        previous_node = get_trace_context().get("node_id")
        set_trace_context(node_id=node_id)
        try:
            run.node_states[node_id] = NodeState.RESOLVING_INPUTS
            inputs = await resolver.resolve(node_id)
            self._check_cancelled(run)

            run.node_states[node_id] = NodeState.DISPATCHING
            result = await self._dispatch(run, node, inputs)

            run.cache[node_id] = result
            run.node_states[node_id] = NodeState.CACHED
            return result
        finally:
            _restore_node_context(previous_node)

    async def _dispatch(self, run: RunContext, node: NodeSpec, inputs: dict[str, Any]) -> Any:
        handler = run.handlers.get(node.id)
        if handler is None:
            return await self.dispatcher.dispatch(node, None, inputs, run_id=run.run_id)

        self.logger.info(f"▶ {node.id} ({node.kind})")
        run.sink.report(node.id, loading=True, error=None)
        if self.event_bus:
            await self.event_bus.emit_node_started(
                stream_id=self.stream_id, node_id=node.id, run_id=run.run_id, kind=node.kind
            )

        try:
            result = await self.dispatcher.dispatch(
                node,
                handler,
                inputs,
                sink=run.sink,
                cancel_event=run.cancel_event,
                run_id=run.run_id,
            )
        except NodeExecutionError as e:
            run.sink.report(node.id, loading=False, error=str(e.original))
            self.logger.error(f"✗ {node.id} ({node.kind}) failed: {e.original}")
            if self.event_bus:
                await self.event_bus.emit_node_failed(
                    stream_id=self.stream_id,
                    node_id=node.id,
                    run_id=run.run_id,
                    kind=node.kind,
                    error=str(e.original),
                )
            raise

        result_type = describe_result(result)
        run.sink.report(node.id, loading=False)
        self.logger.info(f"✓ {node.id} → {result_type}")
        if self.event_bus:
            await self.event_bus.emit_node_completed(
                stream_id=self.stream_id,
                node_id=node.id,
                run_id=run.run_id,
                kind=node.kind,
                result_type=result_type,
            )
        return result


def _restore_node_context(previous_node: str | None) -> None:
    context = get_trace_context()
    if previous_node is None:
        context.pop("node_id", None)
    else:
        context["node_id"] = previous_node
    trace_context.set(context)
