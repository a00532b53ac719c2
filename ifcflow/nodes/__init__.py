"""
Built-in node kinds of the IFC workflow editor.

    registry = create_default_registry()
    executor = WorkflowExecutor(graph, registry=registry)
"""

from ifcflow.graph.dispatcher import HandlerRegistry
from ifcflow.graph.node import NodeHandler
from ifcflow.nodes.analysis import AnalysisHandler
from ifcflow.nodes.elements import (
    ClassificationHandler,
    FilterHandler,
    PropertyHandler,
    RelationshipHandler,
    SpatialHandler,
    TransformHandler,
)
from ifcflow.nodes.model import GeometryHandler, IfcModelHandler
from ifcflow.nodes.output import (
    ExportHandler,
    ParameterHandler,
    ViewerHandler,
    WatchHandler,
)
from ifcflow.nodes.quantity import QuantityHandler

BUILTIN_HANDLERS: tuple[type[NodeHandler], ...] = (
    IfcModelHandler,
    GeometryHandler,
    FilterHandler,
    TransformHandler,
    QuantityHandler,
    PropertyHandler,
    ClassificationHandler,
    SpatialHandler,
    RelationshipHandler,
    AnalysisHandler,
    ExportHandler,
    ParameterHandler,
    WatchHandler,
    ViewerHandler,
)


def register_builtin_handlers(registry: HandlerRegistry) -> HandlerRegistry:
    """Register one instance of every built-in handler."""
    for handler_cls in BUILTIN_HANDLERS:
        registry.register(handler_cls())
    return registry


def create_default_registry() -> HandlerRegistry:
    return register_builtin_handlers(HandlerRegistry())


__all__ = [
    "BUILTIN_HANDLERS",
    "register_builtin_handlers",
    "create_default_registry",
    "IfcModelHandler",
    "GeometryHandler",
    "FilterHandler",
    "TransformHandler",
    "QuantityHandler",
    "PropertyHandler",
    "ClassificationHandler",
    "SpatialHandler",
    "RelationshipHandler",
    "AnalysisHandler",
    "ExportHandler",
    "ParameterHandler",
    "WatchHandler",
    "ViewerHandler",
]
