"""Output-side nodes: export, watch, viewer and parameter."""

import logging
from typing import Any

from ifcflow.graph.node import NodeContext, NodeHandler, TaggedResult, is_soft_error, soft_error
from ifcflow.ifc.elements import as_elements
from ifcflow.ifc.export import DEFAULT_COLUMNS, EXPORT_FORMATS, export_data
from ifcflow.ifc.properties import unique_property_values
from ifcflow.nodes.base import services_of

logger = logging.getLogger(__name__)


class ExportHandler(NodeHandler):
    """
    exportNode: serialize element properties as CSV, JSON or Excel.

    "ifc" produces an export request wrapping the elements with the source
    model's metadata; writing the IFC file is left to the host application.
    """

    kind = "exportNode"
    output_type = "export"

    async def execute(self, ctx: NodeContext) -> Any:
        upstream = ctx.input()
        if upstream is None:
            logger.warning(f"⚠ No input provided to export node {ctx.node_id}")
            return ""
        if is_soft_error(upstream):
            return upstream

        export_format = str(ctx.prop("format", "csv")).lower()
        file_name = ctx.prop("fileName", "export")
        elements = as_elements(upstream) or []

        if export_format == "ifc":
            return self._ifc_export(ctx, elements, file_name)
        if export_format not in EXPORT_FORMATS:
            return soft_error(f"Unsupported export format: {export_format}")

        return export_data(
            elements, export_format, file_name, ctx.prop("properties", DEFAULT_COLUMNS)
        )

    def _ifc_export(self, ctx: NodeContext, elements: list[dict[str, Any]], file_name: str) -> Any:
        source = services_of(ctx).last_loaded_model
        if not source or not source.get("name"):
            return soft_error("Cannot export IFC: Source model not found.")
        return TaggedResult(
            "ifcExport",
            {
                "exportFileName": f"{file_name}.ifc",
                "originalFileName": source["name"],
                "model": {**source, "elements": elements},
            },
        )


def _value_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, str):
        return "string"
    return "object"


def _has_geometry(elements: list[Any]) -> bool:
    first = elements[0]
    if not isinstance(first, dict):
        return False
    if not str(first.get("type") or "").upper().startswith("IFC"):
        return False
    simplified = (first.get("properties") or {}).get("hasSimplifiedGeometry")
    return bool(first.get("geometry") or simplified)


def summarize_for_display(value: Any) -> tuple[str, Any, int]:
    """
    Classify a result for the watch panel.

    Returns (display type, processed value, item count). Geometry element
    lists and property results are condensed into summaries.
    """
    if isinstance(value, TaggedResult):
        payload = value.value
        if isinstance(payload, dict) and "clashes" in payload:
            count = int(payload.get("clashes") or 0)
        elif isinstance(payload, dict):
            count = len(payload.get("groups") or payload)
        else:
            count = len(payload) if isinstance(payload, list) else 0
        return value.type, payload, count

    if isinstance(value, list):
        if value and _has_geometry(value):
            geometry_types: dict[str, int] = {}
            for element in value:
                geometry_types[element.get("type")] = geometry_types.get(element.get("type"), 0) + 1
            summary = {
                "elements": value,
                "elementCount": len(value),
                "geometryTypes": geometry_types,
                "hasGeometry": True,
            }
            return "geometryResult", summary, len(value)
        return "array", value, len(value)

    if isinstance(value, dict):
        elements = value.get("elements")
        if isinstance(elements, list) and elements and isinstance(elements[0], dict):
            first_info = elements[0].get("propertyInfo")
            if first_info:
                with_property = [e for e in elements if (e.get("propertyInfo") or {}).get("exists")]
                first = with_property[0]["propertyInfo"] if with_property else first_info
                summary = {
                    "propertyName": first.get("name"),
                    "psetName": first.get("psetName"),
                    "found": bool(with_property),
                    "totalElements": len(elements),
                    "elementsWithProperty": len(with_property),
                    "type": _value_type(first.get("value")),
                    "uniqueValues": unique_property_values(with_property),
                    "elements": [
                        {
                            "id": e.get("id"),
                            "expressId": e.get("expressId"),
                            "type": e.get("type"),
                            "GlobalId": (e.get("properties") or {}).get("GlobalId"),
                            "Name": (e.get("properties") or {}).get("Name"),
                            "value": e["propertyInfo"].get("value"),
                        }
                        for e in with_property
                    ],
                }
                return "propertyResults", summary, len(with_property)
        return "object", value, len(value)

    return _value_type(value), value, 0


class WatchHandler(NodeHandler):
    """watchNode: show what flows through an edge and pass it on."""

    kind = "watchNode"
    output_type = "any"

    async def execute(self, ctx: NodeContext) -> Any:
        upstream = ctx.input()
        if upstream is None:
            ctx.report(display=None)
            return None

        display_type, processed, count = summarize_for_display(upstream)
        ctx.report(display={"type": display_type, "value": processed, "count": count})
        return processed


class ViewerHandler(NodeHandler):
    """viewerNode: hand the input to the 3D view unchanged."""

    kind = "viewerNode"

    async def execute(self, ctx: NodeContext) -> Any:
        return ctx.input()


class ParameterHandler(NodeHandler):
    kind = "parameterNode"
    input_ports = ()
    output_type = "value"

    async def execute(self, ctx: NodeContext) -> Any:
        value = ctx.properties.get("value")
        return "" if value is None else value
