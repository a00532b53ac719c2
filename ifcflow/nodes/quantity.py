"""Quantity takeoff node."""

import logging
from typing import Any

from ifcflow.graph.node import NodeContext, NodeHandler, TaggedResult, is_soft_error
from ifcflow.ifc.quantities import DEFAULT_UNITS, extract_quantities
from ifcflow.nodes.base import require_elements, services_of

logger = logging.getLogger(__name__)


class QuantityHandler(NodeHandler):
    """
    quantityNode: sum lengths, areas, volumes, weights or counts.

    Delegates to the quantity worker when one is configured (the worker's
    message id is stored on the node metadata for correlation); otherwise
    computes locally from the element quantity sets.
    """

    kind = "quantityNode"
    output_type = "quantityResults"
    is_async = True

    async def execute(self, ctx: NodeContext) -> Any:
        quantity_type = ctx.prop("quantityType", "area")
        group_by = ctx.prop("groupBy", "none")
        unit = ctx.prop("unit", "")

        upstream = ctx.input()
        if upstream is None:
            logger.warning(f"⚠ No input provided to quantity node {ctx.node_id}")
            empty = extract_quantities([], quantity_type, group_by, unit)
            return TaggedResult("quantityResults", empty)
        if is_soft_error(upstream):
            return upstream

        worker = services_of(ctx).quantity_worker
        if worker is None:
            elements = require_elements(ctx, upstream)
            return TaggedResult(
                "quantityResults", extract_quantities(elements, quantity_type, group_by, unit)
            )

        ctx.report(loading=True, progress_message=f"Extracting {quantity_type} quantities...")
        data = await worker.extract(
            upstream,
            quantity_type,
            group_by,
            on_message_id=lambda message_id: ctx.report(message_id=message_id),
        )
        data = {
            "groups": data.get("groups", {}),
            "unit": unit or data.get("unit") or DEFAULT_UNITS.get(quantity_type, ""),
            "total": data.get("total", 0),
        }
        return TaggedResult("quantityResults", data)
