"""Clash detection and spatial analysis node."""

import inspect
import logging
from typing import Any

from ifcflow.graph.node import NodeContext, NodeHandler, TaggedResult, is_soft_error, soft_error
from ifcflow.ifc.analysis import (
    detect_clashes_by_bounds,
    element_key,
    spatial_metrics,
    summarize_clashes,
)
from ifcflow.ifc.elements import as_elements, to_float
from ifcflow.nodes.base import services_of

logger = logging.getLogger(__name__)

NO_IDS_MESSAGE = "Could not extract valid element IDs for clash detection"


def _has_ids(elements: list[dict[str, Any]]) -> bool:
    return any(element_key(element) is not None for element in elements)


class AnalysisHandler(NodeHandler):
    """
    analysisNode.

    analysisType "clash" checks "input" against "reference". The attached
    geometry viewer does the geometric test; without one, element bounds
    are compared. analysisType "spatial" reports area, volume or occupancy
    metrics for "input".

    Problems with the inputs come back as soft errors so the editor can
    show them on the node without aborting the workflow.
    """

    kind = "analysisNode"
    input_ports = ("input", "reference")
    output_type = "clashResults"
    is_async = True

    async def execute(self, ctx: NodeContext) -> Any:
        upstream = ctx.input()
        if is_soft_error(upstream):
            return upstream

        analysis_type = ctx.prop("analysisType", "clash")
        if analysis_type == "clash":
            return await self._clash(ctx)
        if analysis_type == "spatial":
            elements = as_elements(upstream)
            if not elements:
                return soft_error("No elements to analyze")
            return spatial_metrics(elements, ctx.prop("metric", "area"))

        return soft_error(f"Unknown analysis type: {analysis_type}")

    async def _clash(self, ctx: NodeContext) -> Any:
        services = services_of(ctx)
        elements_a = as_elements(ctx.input()) or []
        elements_b = as_elements(ctx.input("reference")) or []

        if not elements_a:
            return soft_error("No primary elements provided", clashes=0, details=[])
        if not elements_b:
            return soft_error("No reference elements provided", clashes=0, details=[])

        tolerance = to_float(ctx.prop("tolerance"), services.config.clash_tolerance)
        viewer = services.viewer

        if viewer is None:
            if not _has_ids(elements_a) or not _has_ids(elements_b):
                return soft_error(NO_IDS_MESSAGE, clashes=0, details=[])
            logger.info(
                f"Bounding-box clash check: {len(elements_a)} vs {len(elements_b)} elements "
                f"(tolerance {tolerance}mm)"
            )
            raw = detect_clashes_by_bounds(elements_a, elements_b, tolerance)
        else:
            if not viewer.is_ready():
                logger.warning("⚠ Clash check skipped: viewer is not ready")
                return {
                    "status": "viewer_not_ready",
                    "message": "Viewer is initializing or loading geometry.",
                    "clashes": 0,
                    "details": [],
                }

            ids_a = [el["expressId"] for el in elements_a if el.get("expressId") is not None]
            ids_b = [el["expressId"] for el in elements_b if el.get("expressId") is not None]
            if not ids_a or not ids_b:
                return soft_error(NO_IDS_MESSAGE, clashes=0, details=[])

            ctx.report(
                loading=True, progress_message=f"Checking {len(ids_a)} × {len(ids_b)} elements"
            )
            try:
                raw = viewer.detect_clashes(ids_a, ids_b, tolerance)
                if inspect.isawaitable(raw):
                    raw = await raw
            except Exception as e:
                logger.error(f"✗ Geometric clash detection failed for {ctx.node_id}: {e}")
                return soft_error(
                    "Failed to perform geometric clash detection", clashes=0, details=[]
                )

        summary = summarize_clashes(raw, elements_a, elements_b)
        summary["tolerance"] = tolerance
        summary["showIn3DViewer"] = services.config.show_clashes
        logger.info(f"Clash check found {summary['clashes']} clashes")
        return TaggedResult("clashResults", summary)
