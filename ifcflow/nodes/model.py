"""Model source and geometry extraction nodes."""

import logging
from typing import Any

from ifcflow.graph.node import NodeContext, NodeHandler, is_soft_error
from ifcflow.ifc.geometry import extract_geometry, flag_simplified_geometry
from ifcflow.nodes.base import as_bool, services_of

logger = logging.getLogger(__name__)

NO_MODEL_MESSAGE = "No IFC file loaded. Please load an IFC file first."


def normalize_model(value: Any) -> dict[str, Any]:
    """Coerce a loader result into a model dict with an ``elements`` list."""
    if isinstance(value, list):
        return {"id": "model", "name": "IFC Model", "elements": list(value)}
    if not isinstance(value, dict):
        raise TypeError(f"Model loader returned {type(value).__name__}, expected a model")
    model = dict(value)
    if not isinstance(model.get("elements"), list):
        model["elements"] = []
    return model


class IfcModelHandler(NodeHandler):
    """
    ifcNode: produce the model the rest of the workflow works on.

    Sources, in order: ``modelInfo`` already attached to the node, the
    ``file`` loaded through the model loader, the last model loaded in this
    session, and finally an empty model carrying ``errorMessage``.
    """

    kind = "ifcNode"
    input_ports = ()
    output_type = "model"
    is_async = True

    async def execute(self, ctx: NodeContext) -> Any:
        services = services_of(ctx)
        model_info = ctx.prop("modelInfo")
        file = ctx.prop("file")

        if model_info:
            logger.info(f"Using model info attached to {ctx.node_id}")
            return normalize_model(model_info)

        if file is not None:
            if services.loader is None:
                raise RuntimeError("Failed to load IFC file: no model loader configured")
            try:
                loaded = await services.loader.load(
                    file,
                    on_progress=lambda percentage, message=None: ctx.report_progress(
                        percentage, message
                    ),
                )
            except Exception as e:
                raise RuntimeError(f"Failed to load IFC file: {e}") from e
            model = normalize_model(loaded)
            services.remember_model(model)
            logger.info(f"IFC node processed with {len(model['elements'])} elements")
            return model

        if services.last_loaded_model is not None:
            model = normalize_model(services.last_loaded_model)
            logger.info(f"Using last loaded model '{model.get('id')}'")
            return model

        logger.warning(f"⚠ {NO_MODEL_MESSAGE}")
        return {
            "id": "empty-model",
            "name": "No IFC Data",
            "elements": [],
            "errorMessage": NO_MODEL_MESSAGE,
        }


class GeometryHandler(NodeHandler):
    """
    geometryNode: select elements by category, or extract real geometry
    through the viewer when ``useActualGeometry`` is set.
    """

    kind = "geometryNode"
    output_type = "elements"
    is_async = True

    async def execute(self, ctx: NodeContext) -> Any:
        element_type = ctx.prop("elementType", "all")
        include_openings = str(ctx.prop("includeOpenings", "true")).lower() != "false"

        if as_bool(ctx.prop("useActualGeometry", False)):
            return await self._extract_actual(ctx, element_type, include_openings)

        upstream = ctx.input()
        if is_soft_error(upstream):
            return upstream
        return extract_geometry(upstream, element_type, include_openings)

    async def _extract_actual(
        self, ctx: NodeContext, element_type: str, include_openings: bool
    ) -> list[dict[str, Any]]:
        model = ctx.input()
        if model is None:
            raise ValueError(f"No input provided to geometry node {ctx.node_id}")
        if not isinstance(model, dict) or not model.get("file"):
            raise ValueError(
                f"Input to geometry node {ctx.node_id} is not a valid IFC model with file reference"
            )

        viewer = services_of(ctx).viewer
        if viewer is None:
            raise RuntimeError("No geometry viewer configured for actual geometry extraction")

        ctx.report(
            loading=True,
            progress_percentage=5,
            progress_message="Starting geometry extraction...",
            error=None,
        )
        try:
            elements = await viewer.extract_geometry(
                model,
                {"elementType": element_type, "includeOpenings": include_openings},
                on_progress=lambda percentage, message=None: ctx.report_progress(
                    percentage, message or "Processing..."
                ),
            )
        except Exception as e:
            ctx.report(loading=False, progress_percentage=None, progress_message=None, error=str(e))
            raise

        ctx.report(loading=False, progress_percentage=None, progress_message=None)
        return flag_simplified_geometry(elements)
