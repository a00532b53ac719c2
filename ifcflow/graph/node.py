"""
Node Protocol - The building block of IFC workflows.

A node is a typed processing step: "load a model", "filter walls",
"sum areas". The node spec only carries configuration; the behaviour lives
in a NodeHandler registered for the node's kind.

Every handler exposes one coroutine:

    async def execute(self, ctx: NodeContext) -> Any

Handlers for pure, in-memory work return immediately; handlers that load
models or talk to a geometry viewer suspend on I/O and report progress
through ``ctx.report_progress``. Plain functions (sync or async) are
wrapped in a FunctionHandler so the dispatcher sees a single interface.

Failure contract:
- raise       -> fatal, the run aborts with NodeExecutionError
- return soft_error("...") -> a ``{"error": ...}`` value that flows
  downstream as ordinary data
"""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from ifcflow.services import Services


class NodeSpec(BaseModel):
    """
    Specification for a node in a workflow graph.

    Example:
        NodeSpec(
            id="filter-walls",
            kind="filterNode",
            properties={"property": "type", "operator": "equals", "value": "IfcWall"},
        )
    """

    id: str
    kind: str = Field(description="Handler kind, e.g. 'ifcNode' or 'filterNode'")
    properties: dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form configuration interpreted by the handler",
    )
    label: str = ""

    model_config = {"extra": "allow"}


@dataclass(frozen=True)
class TaggedResult:
    """A result whose payload shape downstream consumers need to tell apart."""

    type: str
    value: Any

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "value": self.value}


def soft_error(message: str, **extra: Any) -> dict[str, Any]:
    """Build a soft error value: cached and passed downstream, never raised."""
    return {"error": message, **extra}


def is_soft_error(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("error"), str)


class MetadataSink(Protocol):
    """Anything that accepts UI metadata patches for a node."""

    def report(self, node_id: str, **patch: Any) -> None: ...


@dataclass
class NodeContext:
    """
    Everything a handler needs to execute one node.

    ``inputs`` maps target port name to the upstream result. ``sink`` is
    write-only from the handler's point of view; the engine never reads
    the metadata back.
    """

    node_id: str
    kind: str
    properties: dict[str, Any] = field(default_factory=dict)
    inputs: dict[str, Any] = field(default_factory=dict)
    sink: MetadataSink | None = None
    cancel_event: asyncio.Event | None = None
    services: Services | None = None
    run_id: str = ""

    def input(self, port: str = "input", default: Any = None) -> Any:
        return self.inputs.get(port, default)

    def prop(self, name: str, default: Any = None) -> Any:
        value = self.properties.get(name)
        return default if value is None else value

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def report(self, **patch: Any) -> None:
        if self.sink is not None:
            self.sink.report(self.node_id, **patch)

    def report_progress(self, percentage: float, message: str | None = None) -> None:
        self.report(loading=True, progress_percentage=percentage, progress_message=message)


class NodeHandler(ABC):
    """
    Strategy for one node kind.

    Subclasses set the class attributes and implement ``execute``.
    """

    kind: str = ""
    input_ports: tuple[str, ...] = ("input",)
    output_type: str = "any"
    is_async: bool = False

    @abstractmethod
    async def execute(self, ctx: NodeContext) -> Any:
        """Run the node and return its result."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind!r})"


class FunctionHandler(NodeHandler):
    """
    Adapt a plain function into a handler.

    The function receives the NodeContext and may be sync or async; a sync
    function that returns an awaitable is awaited as well.

    Example:
        registry.register(FunctionHandler("parameterNode", lambda ctx: ctx.prop("value", "")))
    """

    def __init__(
        self,
        kind: str,
        func: Callable[[NodeContext], Any],
        input_ports: tuple[str, ...] = ("input",),
        output_type: str = "any",
    ):
        self.kind = kind
        self.func = func
        self.input_ports = input_ports
        self.output_type = output_type
        self.is_async = inspect.iscoroutinefunction(func)

    async def execute(self, ctx: NodeContext) -> Any:
        result = self.func(ctx)
        if inspect.isawaitable(result):
            result = await result
        return result
