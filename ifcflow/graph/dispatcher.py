"""
Node dispatch - Route each node to the handler registered for its kind.

The registry is a plain kind -> handler table. Handlers are looked up once
per run (``NodeDispatcher.bind``) so a registry change mid-run cannot make
two nodes of the same kind behave differently.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from ifcflow.graph.edge import GraphSpec
from ifcflow.graph.errors import NodeExecutionError, WorkflowError
from ifcflow.graph.node import FunctionHandler, MetadataSink, NodeContext, NodeHandler, NodeSpec
from ifcflow.services import Services

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """
    Table of node handlers keyed by kind.

    Example:
        registry = HandlerRegistry()
        registry.register(FilterHandler())
        registry.register_function("parameterNode", lambda ctx: ctx.prop("value", ""))
    """

    def __init__(self):
        self._handlers: dict[str, NodeHandler] = {}

    def register(self, handler: NodeHandler) -> NodeHandler:
        if not handler.kind:
            raise ValueError(f"Handler {handler!r} has no kind")
        if handler.kind in self._handlers:
            logger.debug(f"Replacing handler for kind '{handler.kind}'")
        self._handlers[handler.kind] = handler
        return handler

    def register_function(
        self,
        kind: str,
        func: Callable[[NodeContext], Any],
        input_ports: tuple[str, ...] = ("input",),
        output_type: str = "any",
    ) -> NodeHandler:
        """Register a plain sync or async function as the handler for a kind."""
        return self.register(
            FunctionHandler(kind, func, input_ports=input_ports, output_type=output_type)
        )

    def unregister(self, kind: str) -> bool:
        return self._handlers.pop(kind, None) is not None

    def get(self, kind: str) -> NodeHandler | None:
        return self._handlers.get(kind)

    def kinds(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, kind: object) -> bool:
        return kind in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


class NodeDispatcher:
    """Build the handler context for a node and run its handler."""

    def __init__(self, registry: HandlerRegistry, services: Services | None = None):
        self.registry = registry
        self.services = services

    def bind(self, graph: GraphSpec) -> dict[str, NodeHandler | None]:
        """Resolve the handler of every node in the graph."""
        bound: dict[str, NodeHandler | None] = {}
        for node in graph.nodes:
            handler = self.registry.get(node.kind)
            if handler is None:
                logger.warning(f"⚠ Unknown node kind '{node.kind}' for node '{node.id}'")
            bound[node.id] = handler
        return bound

    async def dispatch(
        self,
        node: NodeSpec,
        handler: NodeHandler | None,
        inputs: dict[str, Any],
        sink: MetadataSink | None = None,
        cancel_event: asyncio.Event | None = None,
        run_id: str = "",
    ) -> Any:
        """
        Execute one node.

        Returns the handler's result, or None for a node kind with no
        handler. Handler exceptions are wrapped in NodeExecutionError with
        the original exception as ``__cause__``.
        """
        if handler is None:
            logger.debug(f"No handler for kind '{node.kind}', node '{node.id}' yields None")
            return None

        ctx = NodeContext(
            node_id=node.id,
            kind=node.kind,
            properties=node.properties,
            inputs=inputs,
            sink=sink,
            cancel_event=cancel_event,
            services=self.services,
            run_id=run_id,
        )

        try:
            return await handler.execute(ctx)
        except WorkflowError:
            raise
        except Exception as e:
            raise NodeExecutionError(node.id, node.kind, e) from e
