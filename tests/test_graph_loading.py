"""
Tests for building graphs from editor documents and validating them.
"""

import json

from ifcflow.graph.edge import EdgeSpec, GraphSpec, load_workflow_json
from ifcflow.graph.node import NodeSpec

EDITOR_DOCUMENT = {
    "id": "wf-1",
    "name": "Wall takeoff",
    "nodes": [
        {
            "id": "model",
            "type": "ifcNode",
            "position": {"x": 0, "y": 0},
            "data": {"label": "Model", "file": "house.json", "properties": {}},
        },
        {
            "id": "clash",
            "type": "analysisNode",
            "data": {"properties": {"analysisType": "clash", "tolerance": 5}},
        },
    ],
    "edges": [
        {"id": "e1", "source": "model", "target": "clash", "sourceHandle": None, "targetHandle": "input"},
        {"id": "e2", "source": "model", "target": "clash", "targetHandle": "reference"},
    ],
}


def test_editor_document_is_converted():
    graph = load_workflow_json(EDITOR_DOCUMENT)

    assert graph.id == "wf-1"
    assert graph.name == "Wall takeoff"
    assert graph.get_node("model").kind == "ifcNode"
    assert graph.get_node("model").properties == {"file": "house.json"}
    assert graph.get_node("model").label == "Model"
    assert graph.get_node("clash").properties == {"analysisType": "clash", "tolerance": 5}

    first, second = graph.edges
    assert first.source_port == "output"
    assert first.target_port == "input"
    assert second.target_port == "reference"


def test_json_text_is_accepted():
    graph = load_workflow_json(json.dumps(EDITOR_DOCUMENT))
    assert graph.node_ids() == ["model", "clash"]


def test_kind_and_port_names_are_accepted():
    graph = load_workflow_json(
        {
            "nodes": [
                {"id": "a", "kind": "parameterNode", "properties": {"value": 1}},
                {"id": "b", "kind": "watchNode"},
            ],
            "edges": [{"source": "a", "target": "b", "target_port": "input"}],
        }
    )

    assert graph.id == "workflow"
    assert graph.get_node("a").properties == {"value": 1}
    assert graph.get_incoming_edges("b")[0].source == "a"
    assert graph.get_outgoing_edges("a")[0].target == "b"


def test_validate_reports_structural_problems():
    graph = GraphSpec(
        nodes=[NodeSpec(id="a", kind="ifcNode"), NodeSpec(id="a", kind=""), NodeSpec(id="b", kind="")],
        edges=[EdgeSpec(source="a", target="ghost"), EdgeSpec(id="e9", source="nowhere", target="b")],
    )

    errors = graph.validate()

    assert "Duplicate node ID: 'a'" in errors
    assert "Node 'b' has no kind" in errors
    assert "Edge 'a->ghost:input' references missing target 'ghost'" in errors
    assert "Edge 'e9' references missing source 'nowhere'" in errors


def test_valid_graph_has_no_errors():
    graph = load_workflow_json(EDITOR_DOCUMENT)
    assert graph.validate() == []
