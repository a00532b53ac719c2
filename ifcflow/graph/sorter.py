"""
Topological ordering of workflow graphs.

Depth-first search from every node in the graph's natural order, following
outgoing edges. A node is placed at the front of the order once everything
downstream of it is placed, so every node precedes all of its consumers.
Re-entering a node that is still on the DFS path means the graph has a
cycle, which is rejected before any node runs.

The walk uses an explicit stack; the order is the same as the textbook
recursive version but does not depend on the interpreter recursion limit.
"""

import logging
from collections.abc import Iterator

from ifcflow.graph.edge import GraphSpec
from ifcflow.graph.errors import CyclicGraphError

logger = logging.getLogger(__name__)


def build_adjacency(graph: GraphSpec) -> dict[str, list[str]]:
    """Map each node id to the ids it feeds, in edge order."""
    adjacency: dict[str, list[str]] = {node.id: [] for node in graph.nodes}
    for edge in graph.edges:
        # Edges out of unknown nodes are reported at resolution time
        if edge.source in adjacency:
            adjacency[edge.source].append(edge.target)
    return adjacency


def topological_sort(graph: GraphSpec) -> list[str]:
    """
    Return node ids in dependency order.

    Deterministic for a given graph. Edge targets that are not nodes of the
    graph still appear in the order so the run can report them.

    Raises:
        CyclicGraphError: the graph contains a directed cycle
    """
    adjacency = build_adjacency(graph)

    visited: set[str] = set()
    on_stack: set[str] = set()
    path: list[str] = []
    post_order: list[str] = []

    for root in adjacency:
        if root in visited:
            continue

        stack: list[tuple[str, Iterator[str]]] = [(root, iter(adjacency[root]))]
        on_stack.add(root)
        path.append(root)

        while stack:
            node_id, children = stack[-1]
            for child in children:
                if child in on_stack:
                    cycle = path[path.index(child) :] + [child]
                    logger.error(f"✗ Cycle detected: {' -> '.join(cycle)}")
                    raise CyclicGraphError(cycle)
                if child not in visited:
                    stack.append((child, iter(adjacency.get(child, ()))))
                    on_stack.add(child)
                    path.append(child)
                    break
            else:
                stack.pop()
                path.pop()
                on_stack.discard(node_id)
                visited.add(node_id)
                post_order.append(node_id)

    post_order.reverse()
    logger.debug(f"Execution order: {post_order}")
    return post_order
