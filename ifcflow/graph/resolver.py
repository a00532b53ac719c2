"""Input resolution: map a node's incoming edges to a port -> result dict."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ifcflow.graph.edge import GraphSpec
from ifcflow.graph.errors import UnknownNodeReferenceError

logger = logging.getLogger(__name__)

Evaluate = Callable[[str], Awaitable[Any]]


class InputResolver:
    """
    Pull-based resolver.

    Upstream results come from the evaluate callback, which answers from the
    run's cache or computes the source node on demand. The resolver never
    caches anything itself.

    When two edges feed the same port the later edge in graph order wins.
    """

    def __init__(self, graph: GraphSpec, evaluate: Evaluate):
        self.graph = graph
        self._evaluate = evaluate
        self._known_ids = set(graph.node_ids())

    async def resolve(self, node_id: str) -> dict[str, Any]:
        inputs: dict[str, Any] = {}

        for edge in self.graph.get_incoming_edges(node_id):
            if edge.source not in self._known_ids:
                raise UnknownNodeReferenceError(edge.source, referenced_by=node_id)

            value = await self._evaluate(edge.source)

            if edge.target_port in inputs:
                logger.debug(
                    f"Port '{edge.target_port}' of node '{node_id}' fed by several edges; "
                    f"'{edge.source}' overwrites the earlier value"
                )
            inputs[edge.target_port] = value

        return inputs
