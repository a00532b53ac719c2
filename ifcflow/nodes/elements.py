"""Synchronous element transform nodes."""

import logging
from typing import Any

from ifcflow.graph.node import NodeContext, is_soft_error
from ifcflow.ifc.elements import as_elements, to_float
from ifcflow.ifc.filtering import filter_elements
from ifcflow.ifc.geometry import transform_elements
from ifcflow.ifc.properties import (
    manage_classifications,
    manage_properties,
    property_value_from_result,
)
from ifcflow.ifc.spatial import query_relationships, spatial_query
from ifcflow.nodes.base import ElementHandler, as_bool

logger = logging.getLogger(__name__)


class FilterHandler(ElementHandler):
    kind = "filterNode"

    def transform(self, ctx: NodeContext, elements: list[dict[str, Any]]) -> Any:
        return filter_elements(
            elements,
            ctx.prop("property", ""),
            ctx.prop("operator", "equals"),
            ctx.prop("value", ""),
        )


class TransformHandler(ElementHandler):
    kind = "transformNode"

    def transform(self, ctx: NodeContext, elements: list[dict[str, Any]]) -> Any:
        def axes(prefix: str, default: float) -> tuple[float, float, float]:
            return tuple(to_float(ctx.prop(f"{prefix}{axis}"), default) for axis in "XYZ")

        return transform_elements(
            elements,
            translation=axes("translate", 0.0),
            rotation=axes("rotate", 0.0),
            scale=axes("scale", 1.0),
        )


class PropertyHandler(ElementHandler):
    """
    propertyNode: get, set, add or remove one property on every element.

    With ``useValueInput`` the value comes from the "valueInput" port; a
    property result there is reduced to a single value.
    """

    kind = "propertyNode"
    input_ports = ("input", "valueInput")
    output_type = "propertyResults"

    def empty_result(self) -> Any:
        return {"elements": []}

    async def execute(self, ctx: NodeContext) -> Any:
        upstream = ctx.input()
        if upstream is None:
            logger.warning(f"⚠ No input provided to property node {ctx.node_id}")
            return self.empty_result()
        if is_soft_error(upstream):
            return upstream

        elements = as_elements(upstream)
        if elements is None:
            logger.warning(
                f"⚠ Unexpected input for property node {ctx.node_id}: {type(upstream).__name__}"
            )
            return self.empty_result()
        return self.transform(ctx, elements)

    def transform(self, ctx: NodeContext, elements: list[dict[str, Any]]) -> Any:
        value = ctx.prop("propertyValue", "")
        if as_bool(ctx.prop("useValueInput", False)) and ctx.input("valueInput") is not None:
            value = property_value_from_result(ctx.input("valueInput"))

        updated = manage_properties(
            elements,
            action=str(ctx.prop("action", "get")),
            property_name=ctx.prop("propertyName", ""),
            property_value=value,
            target_pset=ctx.prop("targetPset", "any"),
        )
        return {"elements": updated}


class ClassificationHandler(ElementHandler):
    kind = "classificationNode"

    def transform(self, ctx: NodeContext, elements: list[dict[str, Any]]) -> Any:
        return manage_classifications(
            elements,
            system=ctx.prop("system", "uniclass"),
            action=ctx.prop("action", "get"),
            code=ctx.prop("code", ""),
        )


class SpatialHandler(ElementHandler):
    kind = "spatialNode"
    input_ports = ("input", "reference")

    def transform(self, ctx: NodeContext, elements: list[dict[str, Any]]) -> Any:
        reference = ctx.input("reference")
        if is_soft_error(reference):
            return reference
        return spatial_query(
            elements,
            as_elements(reference) or [],
            query_type=ctx.prop("queryType", "contained"),
            distance=to_float(ctx.prop("distance"), 1.0),
        )


class RelationshipHandler(ElementHandler):
    kind = "relationshipNode"

    def transform(self, ctx: NodeContext, elements: list[dict[str, Any]]) -> Any:
        return query_relationships(
            elements,
            relation_type=ctx.prop("relationType", "containment"),
            direction=ctx.prop("direction", "outgoing"),
        )
