"""
Edge Protocol - How nodes connect in a workflow graph.

An edge carries the source node's result into one named input port of the
target node. Port names are free-form strings; the conventional ones are:

- "input":      the primary data stream (used when no port is given)
- "reference":  a second element set, e.g. for spatial queries or clashes
- "valueInput": a value fed into a property setter

The editor stores graphs in React Flow shape (``type`` / ``data`` on nodes,
``sourceHandle`` / ``targetHandle`` on edges); ``load_workflow_json`` turns
such a document into a GraphSpec.
"""

import json
from typing import Any

from pydantic import BaseModel, Field, field_validator

from ifcflow.graph.node import NodeSpec

DEFAULT_INPUT_PORT = "input"
DEFAULT_OUTPUT_PORT = "output"


class EdgeSpec(BaseModel):
    """
    Specification for a data-flow edge between two nodes.

    Example:
        EdgeSpec(source="walls", target="clash", target_port="reference")
    """

    id: str = ""
    source: str = Field(description="Source node ID")
    target: str = Field(description="Target node ID")
    source_port: str = Field(default=DEFAULT_OUTPUT_PORT, description="Output slot on the source")
    target_port: str = Field(
        default=DEFAULT_INPUT_PORT,
        description="Input slot on the target; the result lands in inputs[target_port]",
    )

    model_config = {"extra": "allow"}

    @field_validator("source_port", mode="before")
    @classmethod
    def _default_source_port(cls, value: Any) -> Any:
        return value or DEFAULT_OUTPUT_PORT

    @field_validator("target_port", mode="before")
    @classmethod
    def _default_target_port(cls, value: Any) -> Any:
        return value or DEFAULT_INPUT_PORT

    def describe(self) -> str:
        return self.id or f"{self.source}->{self.target}:{self.target_port}"


class GraphSpec(BaseModel):
    """
    Complete specification of a workflow graph.

    Nodes are kept in their natural (editor) order, which the topological
    sorter uses as its traversal order. The graph may be cyclic when built;
    acyclicity is only checked when a run starts.
    """

    id: str = "workflow"
    name: str = ""
    description: str = ""
    nodes: list[NodeSpec] = Field(default_factory=list, description="All node specifications")
    edges: list[EdgeSpec] = Field(default_factory=list, description="All edge specifications")

    model_config = {"extra": "allow"}

    def get_node(self, node_id: str) -> NodeSpec | None:
        """Get a node by ID."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def node_ids(self) -> list[str]:
        return [node.id for node in self.nodes]

    def get_outgoing_edges(self, node_id: str) -> list[EdgeSpec]:
        """Get all edges leaving a node."""
        return [edge for edge in self.edges if edge.source == node_id]

    def get_incoming_edges(self, node_id: str) -> list[EdgeSpec]:
        """Get all edges entering a node, in graph edge order."""
        return [edge for edge in self.edges if edge.target == node_id]

    def validate(self) -> list[str]:
        """Validate the graph structure. Cycles are reported by the sorter."""
        errors = []

        seen: set[str] = set()
        for node in self.nodes:
            if node.id in seen:
                errors.append(f"Duplicate node ID: '{node.id}'")
            seen.add(node.id)
            if not node.kind:
                errors.append(f"Node '{node.id}' has no kind")

        for edge in self.edges:
            if edge.source not in seen:
                errors.append(f"Edge '{edge.describe()}' references missing source '{edge.source}'")
            if edge.target not in seen:
                errors.append(f"Edge '{edge.describe()}' references missing target '{edge.target}'")

        return errors


def load_workflow_json(document: dict[str, Any] | str) -> GraphSpec:
    """
    Build a GraphSpec from an editor document.

    Accepts either the parsed dict or its JSON text. Node properties come
    from ``data.properties``; the source node's ``data.file`` and
    ``data.modelInfo`` are folded into the properties so handlers only need
    to look in one place.
    """
    if isinstance(document, str):
        document = json.loads(document)

    nodes = []
    for raw in document.get("nodes", []):
        data = raw.get("data") or {}
        properties = dict(raw.get("properties") or data.get("properties") or {})
        for key in ("file", "modelInfo"):
            if data.get(key) is not None and key not in properties:
                properties[key] = data[key]
        nodes.append(
            NodeSpec(
                id=str(raw["id"]),
                kind=raw.get("kind") or raw.get("type") or "",
                properties=properties,
                label=data.get("label", "") or "",
            )
        )

    edges = []
    for raw in document.get("edges", []):
        edges.append(
            EdgeSpec(
                id=str(raw.get("id", "") or ""),
                source=str(raw["source"]),
                target=str(raw["target"]),
                source_port=raw.get("source_port", raw.get("sourceHandle")),
                target_port=raw.get("target_port", raw.get("targetHandle")),
            )
        )

    return GraphSpec(
        id=str(document.get("id") or "workflow"),
        name=document.get("name", "") or "",
        description=document.get("description", "") or "",
        nodes=nodes,
        edges=edges,
    )
