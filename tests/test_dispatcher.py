"""
Tests for the handler registry and node dispatch.
"""

import pytest

from ifcflow.graph.dispatcher import HandlerRegistry, NodeDispatcher
from ifcflow.graph.edge import GraphSpec
from ifcflow.graph.errors import NodeExecutionError, UnknownNodeReferenceError
from ifcflow.graph.node import FunctionHandler, NodeContext, NodeHandler, NodeSpec
from ifcflow.services import Services


# ---- Fake handlers ----
class EchoHandler(NodeHandler):
    kind = "echoNode"

    async def execute(self, ctx: NodeContext):
        return {"input": ctx.input(), "props": dict(ctx.properties)}


class RaisingHandler(NodeHandler):
    kind = "raisingNode"

    def __init__(self, error):
        self.error = error

    async def execute(self, ctx: NodeContext):
        raise self.error


# ---- Fake sink ----
class ListSink:
    def __init__(self):
        self.reports = []

    def report(self, node_id, **patch):
        self.reports.append((node_id, patch))


def test_register_and_lookup():
    registry = HandlerRegistry()
    handler = registry.register(EchoHandler())

    assert registry.get("echoNode") is handler
    assert "echoNode" in registry
    assert len(registry) == 1
    assert registry.kinds() == ["echoNode"]


def test_register_handler_without_kind_fails():
    class Nameless(NodeHandler):
        async def execute(self, ctx):
            return None

    with pytest.raises(ValueError):
        HandlerRegistry().register(Nameless())


def test_unregister():
    registry = HandlerRegistry()
    registry.register(EchoHandler())

    assert registry.unregister("echoNode") is True
    assert registry.unregister("echoNode") is False
    assert registry.get("echoNode") is None


def test_register_function_wraps_in_function_handler():
    registry = HandlerRegistry()
    handler = registry.register_function("constNode", lambda ctx: 42)

    assert isinstance(handler, FunctionHandler)
    assert handler.is_async is False


def test_bind_maps_unknown_kinds_to_none():
    registry = HandlerRegistry()
    registry.register(EchoHandler())
    graph = GraphSpec(
        nodes=[NodeSpec(id="a", kind="echoNode"), NodeSpec(id="b", kind="mysteryNode")]
    )

    bound = NodeDispatcher(registry).bind(graph)

    assert isinstance(bound["a"], EchoHandler)
    assert bound["b"] is None


@pytest.mark.asyncio
async def test_dispatch_passes_inputs_and_properties():
    dispatcher = NodeDispatcher(HandlerRegistry())
    node = NodeSpec(id="a", kind="echoNode", properties={"x": 1})

    result = await dispatcher.dispatch(node, EchoHandler(), {"input": [1, 2]})

    assert result == {"input": [1, 2], "props": {"x": 1}}


@pytest.mark.asyncio
async def test_dispatch_without_handler_returns_none():
    dispatcher = NodeDispatcher(HandlerRegistry())
    node = NodeSpec(id="a", kind="mysteryNode")

    assert await dispatcher.dispatch(node, None, {"input": 1}) is None


@pytest.mark.asyncio
async def test_dispatch_wraps_handler_errors():
    dispatcher = NodeDispatcher(HandlerRegistry())
    node = NodeSpec(id="x", kind="raisingNode")
    boom = RuntimeError("boom")

    with pytest.raises(NodeExecutionError) as exc_info:
        await dispatcher.dispatch(node, RaisingHandler(boom), {})

    assert exc_info.value.original is boom
    assert exc_info.value.__cause__ is boom
    assert exc_info.value.node_id == "x"
    assert "boom" in str(exc_info.value)


@pytest.mark.asyncio
async def test_dispatch_does_not_wrap_workflow_errors():
    dispatcher = NodeDispatcher(HandlerRegistry())
    node = NodeSpec(id="x", kind="raisingNode")

    with pytest.raises(UnknownNodeReferenceError):
        await dispatcher.dispatch(node, RaisingHandler(UnknownNodeReferenceError("ghost")), {})


@pytest.mark.asyncio
async def test_context_carries_sink_and_services():
    services = Services()
    sink = ListSink()
    seen = {}

    async def handler(ctx: NodeContext):
        seen["services"] = ctx.services
        ctx.report_progress(50, "halfway")
        return "done"

    dispatcher = NodeDispatcher(HandlerRegistry(), services)
    node = NodeSpec(id="a", kind="fnNode")

    result = await dispatcher.dispatch(node, FunctionHandler("fnNode", handler), {}, sink=sink)

    assert result == "done"
    assert seen["services"] is services
    assert sink.reports == [
        ("a", {"loading": True, "progress_percentage": 50, "progress_message": "halfway"})
    ]


@pytest.mark.asyncio
async def test_sync_function_returning_awaitable_is_awaited():
    async def produce():
        return "late"

    handler = FunctionHandler("fnNode", lambda ctx: produce())
    ctx = NodeContext(node_id="a", kind="fnNode")

    assert await handler.execute(ctx) == "late"


def test_prop_treats_none_as_missing():
    ctx = NodeContext(node_id="a", kind="k", properties={"x": None, "y": 0})

    assert ctx.prop("x", "default") == "default"
    assert ctx.prop("y", "default") == 0
    assert ctx.prop("z") is None
