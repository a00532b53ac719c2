"""Shared plumbing for the built-in node handlers."""

import logging
from abc import abstractmethod
from typing import Any

from ifcflow.config import RuntimeConfig
from ifcflow.graph.node import NodeContext, NodeHandler, is_soft_error
from ifcflow.ifc.elements import as_elements
from ifcflow.services import Services

logger = logging.getLogger(__name__)


def as_bool(value: Any) -> bool:
    """Editor properties arrive as real booleans or as "true"/"false" strings."""
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def services_of(ctx: NodeContext) -> Services:
    return ctx.services if ctx.services is not None else Services(config=RuntimeConfig())


def require_elements(ctx: NodeContext, value: Any) -> list[dict[str, Any]]:
    elements = as_elements(value)
    if elements is None:
        raise TypeError(
            f"{ctx.kind} '{ctx.node_id}' expects elements or a model, got {type(value).__name__}"
        )
    return elements


class ElementHandler(NodeHandler):
    """
    Base for synchronous handlers that transform the element list on "input".

    A missing input yields ``empty_result()``; a soft error from upstream is
    passed through untouched.
    """

    output_type = "elements"

    def empty_result(self) -> Any:
        return []

    @abstractmethod
    def transform(self, ctx: NodeContext, elements: list[dict[str, Any]]) -> Any:
        """Result for a non-empty, error-free element list."""

    async def execute(self, ctx: NodeContext) -> Any:
        upstream = ctx.input()
        if upstream is None:
            logger.warning(f"⚠ No input provided to {self.kind} {ctx.node_id}")
            return self.empty_result()
        if is_soft_error(upstream):
            return upstream
        return self.transform(ctx, require_elements(ctx, upstream))
